"""
Soft Delete Module - cascade-aware deletion and restoration.

Provides the entity dependency graph and the lifecycle service that restores
deleted rows together with their ancestors and owned dependents.
"""

from .graph import (
    ENTITY_GRAPH,
    ChildLink,
    ChildMode,
    EntityNode,
    Lookup,
    ParentLink,
    ancestors_of,
    resolve_node,
)
from .services import LifecycleService

__all__ = [
    # Graph
    "ENTITY_GRAPH",
    "EntityNode",
    "ParentLink",
    "ChildLink",
    "ChildMode",
    "Lookup",
    "resolve_node",
    "ancestors_of",
    # Services
    "LifecycleService",
]
