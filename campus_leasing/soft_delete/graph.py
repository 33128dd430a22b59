"""
Declarative dependency graph of the soft-deletable entity types.

Each node names its parent (followed upwards when a child is restored) and the
children it owns (revived when the owner is restored). The restore routine in
``LifecycleService`` walks this graph instead of hard-coding each type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from ..store.mixins import SoftDeleteMixin
from ..store.models import (
    Block,
    BusinessArea,
    Campus,
    Company,
    CompanyDocument,
    CompanyScoreEntry,
    Lease,
    Unit,
)


class ChildMode(str, Enum):
    """How an owner revives a type of child."""

    ALL = "ALL"  # every soft-deleted child
    LATEST = "LATEST"  # only the most recently deleted, and only if none is active


class Lookup(str, Enum):
    """How a restore request identifies its target row."""

    BY_ID = "BY_ID"
    LATEST_FOR_PARENT = "LATEST_FOR_PARENT"


@dataclass(frozen=True)
class ParentLink:
    entity_type: str
    foreign_key: str


@dataclass(frozen=True)
class ChildLink:
    entity_type: str
    foreign_key: str
    mode: ChildMode = ChildMode.ALL


@dataclass(frozen=True)
class EntityNode:
    """One soft-deletable entity type and its place in the hierarchy."""

    entity_type: str
    model: Type[SoftDeleteMixin]
    label: str
    name_column: Optional[str] = "name"
    parent: Optional[ParentLink] = None
    children: Tuple[ChildLink, ...] = field(default_factory=tuple)
    lookup: Lookup = Lookup.BY_ID
    listed: bool = True
    # Restoring this node also revives the children its parent owns
    revives_siblings: bool = False

    @property
    def audit_name(self) -> str:
        """Entity type as written to the audit trail (CAMPUS, BUSINESS_AREA)."""
        return self.entity_type.upper()

    @property
    def name_from_parent(self) -> bool:
        return self.name_column is None and self.parent is not None


ENTITY_GRAPH: Dict[str, EntityNode] = {
    node.entity_type: node
    for node in (
        EntityNode("campus", Campus, "campus"),
        EntityNode(
            "block",
            Block,
            "block",
            parent=ParentLink("campus", "campus_id"),
        ),
        EntityNode(
            "unit",
            Unit,
            "unit",
            name_column="number",
            parent=ParentLink("block", "block_id"),
        ),
        EntityNode(
            "company",
            Company,
            "company",
            children=(
                ChildLink("document", "company_id"),
                ChildLink("score", "company_id"),
                ChildLink("lease", "company_id", ChildMode.LATEST),
            ),
        ),
        # A lease is shown under its company's name and restored by company id
        EntityNode(
            "lease",
            Lease,
            "lease",
            name_column=None,
            parent=ParentLink("company", "company_id"),
            lookup=Lookup.LATEST_FOR_PARENT,
            revives_siblings=True,
        ),
        EntityNode(
            "document",
            CompanyDocument,
            "document",
            parent=ParentLink("company", "company_id"),
            listed=False,
        ),
        EntityNode(
            "score",
            CompanyScoreEntry,
            "score entry",
            name_column="type",
            parent=ParentLink("company", "company_id"),
            listed=False,
        ),
        EntityNode("business_area", BusinessArea, "business area"),
    )
}

_ALIASES = {
    "campuses": "campus",
    "blocks": "block",
    "units": "unit",
    "companies": "company",
    "leases": "lease",
    "documents": "document",
    "scores": "score",
    "business_areas": "business_area",
}


def resolve_node(entity_type: str) -> EntityNode:
    """
    Look up a node by type name, plural route segment or audit name.

    Raises:
        ValueError: The type is not soft-deletable
    """
    key = entity_type.strip().lower().replace("-", "_")
    key = _ALIASES.get(key, key)
    try:
        return ENTITY_GRAPH[key]
    except KeyError:
        raise ValueError(f"Unknown entity type: {entity_type}") from None


def ancestors_of(node: EntityNode) -> Tuple[EntityNode, ...]:
    """Ancestor nodes from the immediate parent up to the root."""
    chain = []
    current = node
    while current.parent is not None:
        current = ENTITY_GRAPH[current.parent.entity_type]
        chain.append(current)
    return tuple(chain)
