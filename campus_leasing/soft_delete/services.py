"""
Service layer for soft delete and restore operations.

Provides the graph-walking restore routine, single-row soft delete, the merged
listing of deleted entities and business-area revival.
"""

import logging
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..audit_trail.context import log_extra
from ..audit_trail.models import Actor, AuditAction
from ..audit_trail.recorder import AuditRecorder
from ..exceptions import InvalidStateError, NotFoundError
from ..store.database import Store
from ..store.mixins import SoftDeleteMixin
from ..store.models import BusinessArea, Company, Lease, Unit
from ..store.schemas import (
    BlockOut,
    BusinessAreaIn,
    BusinessAreaOut,
    CampusOut,
    CompanyOut,
    DeletedItem,
    LeaseOut,
    UnitOut,
)
from .graph import ENTITY_GRAPH, ChildLink, ChildMode, EntityNode, Lookup, resolve_node

logger = logging.getLogger(__name__)

Revived = List[Tuple[EntityNode, SoftDeleteMixin]]

_SCHEMAS = {
    "campus": CampusOut,
    "block": BlockOut,
    "unit": UnitOut,
    "company": CompanyOut,
    "business_area": BusinessAreaOut,
}


def _restorable(entity_type: str) -> EntityNode:
    node = resolve_node(entity_type)
    has_schema = node.entity_type in _SCHEMAS or node.model is Lease
    if not has_schema:
        raise ValueError(f"A {node.label} cannot be restored on its own")
    return node


class LifecycleService:
    """
    Soft delete and restore across the campus and company hierarchies.

    Restoring a child first restores any deleted ancestor (cascade-up);
    restoring an owner revives the children it owns (cascade-down). Each call
    runs in one store transaction so a failure leaves nothing half-restored.
    Unit occupancy is never written here.
    """

    def __init__(self, store: Store, recorder: Optional[AuditRecorder] = None):
        """
        Initialize the lifecycle service.

        Args:
            store: Open store
            recorder: Audit recorder; one on ``store`` when omitted
        """
        self.store = store
        self.recorder = recorder or AuditRecorder(store)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(
        self, entity_type: str, entity_id: str, actor: Optional[Actor] = None
    ) -> BaseModel:
        """
        Restore a soft-deleted entity and everything its state depends on.

        For a lease, ``entity_id`` is the company id and the most recently
        deleted lease of that company is restored.

        Args:
            entity_type: Entity type (campus, block, unit, company, lease, ...)
            entity_id: ID of the entity (company id for leases)
            actor: Acting user

        Returns:
            The re-fetched entity in its public shape

        Raises:
            NotFoundError: The target is absent or has nothing to restore
            InvalidStateError: The target is already active
            StoreError: The transaction failed; nothing was changed
        """
        node = _restorable(entity_type)

        with self.store.transaction() as session:
            target = self._load_target(session, node, entity_id)
            revived = self._revive(session, node, target)
            target_id = target.id
            name = self._display_name(session, node, target)

        cascaded = [
            {"type": child_node.entity_type, "id": row.id}
            for child_node, row in revived
            if row is not target
        ]
        self.recorder.record(
            node.audit_name,
            AuditAction.RESTORE,
            self._restore_details(node, name, len(cascaded)),
            impact={
                "target": {"type": node.entity_type, "id": target_id},
                "revived": cascaded,
            },
            actor=actor,
        )
        logger.info(
            "Restored %s %s with %d dependent rows",
            node.label,
            target_id,
            len(cascaded),
            extra=log_extra(),
        )

        return self.fetch(node.entity_type, target_id)

    def _load_target(
        self, session: Session, node: EntityNode, entity_id: str
    ) -> SoftDeleteMixin:
        """Lock the restore target after checking it exists and is deleted."""
        if node.lookup is Lookup.LATEST_FOR_PARENT:
            return self._load_latest_for_parent(session, node, entity_id)

        row = self._lock(session, node, entity_id)
        if row is None:
            logger.warning(
                "Restore rejected: %s %s not found",
                node.label,
                entity_id,
                extra=log_extra(),
            )
            raise NotFoundError(node.label, entity_id)
        if row.deleted_at is None:
            logger.warning(
                "Restore rejected: %s %s is already active",
                node.label,
                entity_id,
                extra=log_extra(),
            )
            raise InvalidStateError(node.label, entity_id, "is already active")
        return row

    def _load_latest_for_parent(
        self, session: Session, node: EntityNode, parent_id: str
    ) -> SoftDeleteMixin:
        assert node.parent is not None  # nosec B101
        parent_node = ENTITY_GRAPH[node.parent.entity_type]
        model = node.model
        foreign_key = getattr(model, node.parent.foreign_key)

        if self._lock(session, parent_node, parent_id) is None:
            logger.warning(
                "Restore rejected: %s %s not found",
                parent_node.label,
                parent_id,
                extra=log_extra(),
            )
            raise NotFoundError(parent_node.label, parent_id)

        active = session.scalar(
            select(func.count())
            .select_from(model)
            .where(foreign_key == parent_id, model.deleted_at.is_(None))
        )
        if active:
            logger.warning(
                "Restore rejected: %s %s already has an active %s",
                parent_node.label,
                parent_id,
                node.label,
                extra=log_extra(),
            )
            raise InvalidStateError(
                parent_node.label, parent_id, f"already has an active {node.label}"
            )

        row = session.scalars(
            select(model)
            .where(foreign_key == parent_id, model.deleted_at.is_not(None))
            .order_by(model.deleted_at.desc())
            .limit(1)
            .with_for_update()
        ).first()
        if row is None:
            logger.warning(
                "Restore rejected: %s %s has no deleted %s",
                parent_node.label,
                parent_id,
                node.label,
                extra=log_extra(),
            )
            raise NotFoundError(
                parent_node.label, parent_id, f"has no deleted {node.label}"
            )
        return row

    def _revive(
        self, session: Session, node: EntityNode, target: SoftDeleteMixin
    ) -> Revived:
        """
        Clear deletion timestamps for the target and what it depends on.

        Order: deleted ancestors root-down, then the target, then owned
        children of every revived owner. A node flagged ``revives_siblings``
        also revives its parent's children when the parent was active.

        Returns:
            Every row whose timestamp was cleared, target included
        """
        ancestors: Revived = []
        owner: Optional[Tuple[EntityNode, SoftDeleteMixin]] = None
        current_node, current_row = node, target
        while current_node.parent is not None:
            link = current_node.parent
            parent_node = ENTITY_GRAPH[link.entity_type]
            parent_id = getattr(current_row, link.foreign_key)
            parent_row = self._lock(session, parent_node, parent_id)
            if parent_row is None:
                raise NotFoundError(parent_node.label, parent_id)
            if owner is None:
                owner = (parent_node, parent_row)
            if parent_row.deleted_at is not None:
                ancestors.append((parent_node, parent_row))
            current_node, current_row = parent_node, parent_row

        revived: Revived = []
        for ancestor_node, ancestor_row in reversed(ancestors):
            ancestor_row.clear_deleted()
            revived.append((ancestor_node, ancestor_row))
        target.clear_deleted()
        revived.append((node, target))
        session.flush()

        owners = list(revived)
        if node.revives_siblings and owner is not None:
            if all(row is not owner[1] for _, row in owners):
                owners.append(owner)

        for owner_node, owner_row in owners:
            revived.extend(self._cascade_down(session, owner_node, owner_row))
        return revived

    def _cascade_down(
        self, session: Session, owner_node: EntityNode, owner: SoftDeleteMixin
    ) -> Revived:
        revived: Revived = []
        for link in owner_node.children:
            child_node = ENTITY_GRAPH[link.entity_type]
            for row in self._deleted_children(session, child_node, link, owner.id):
                row.clear_deleted()
                revived.append((child_node, row))
        session.flush()

        for child_node, row in list(revived):
            revived.extend(self._cascade_down(session, child_node, row))
        return revived

    def _deleted_children(
        self, session: Session, child_node: EntityNode, link: ChildLink, owner_id: str
    ) -> List[SoftDeleteMixin]:
        model = child_node.model
        foreign_key = getattr(model, link.foreign_key)

        if link.mode is ChildMode.LATEST:
            active = session.scalar(
                select(func.count())
                .select_from(model)
                .where(foreign_key == owner_id, model.deleted_at.is_(None))
            )
            if active:
                return []
            latest = session.scalars(
                select(model)
                .where(foreign_key == owner_id, model.deleted_at.is_not(None))
                .order_by(model.deleted_at.desc())
                .limit(1)
                .with_for_update()
            ).first()
            return [latest] if latest is not None else []

        return list(
            session.scalars(
                select(model)
                .where(foreign_key == owner_id, model.deleted_at.is_not(None))
                .with_for_update()
            )
        )

    @staticmethod
    def _restore_details(node: EntityNode, name: str, cascaded: int) -> str:
        details = f"{node.label.capitalize()} '{name}' restored."
        if cascaded:
            details += f" {cascaded} dependent records restored with it."
        return details

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    def soft_delete(
        self, entity_type: str, entity_id: str, actor: Optional[Actor] = None
    ) -> None:
        """
        Mark a single row deleted. Nothing cascades.

        Args:
            entity_type: Entity type
            entity_id: ID of the row
            actor: Acting user

        Raises:
            NotFoundError: The row is absent or already deleted
            StoreError: The update failed
        """
        node = resolve_node(entity_type)

        with self.store.transaction() as session:
            row = self._lock(session, node, entity_id)
            if row is None or row.deleted_at is not None:
                logger.warning(
                    "Delete rejected: %s %s not found or already deleted",
                    node.label,
                    entity_id,
                    extra=log_extra(),
                )
                raise NotFoundError(node.label, entity_id)
            row.mark_deleted()
            name = self._display_name(session, node, row)
            rollback_id = self._restore_key(node, row)

        self.recorder.record(
            node.audit_name,
            AuditAction.DELETE,
            f"{node.label.capitalize()} '{name}' deleted (soft delete).",
            rollback_data={"entityType": node.entity_type, "id": rollback_id},
            impact={"deleted": [{"type": node.entity_type, "id": entity_id}]},
            actor=actor,
        )
        logger.info("Soft deleted %s %s", node.label, entity_id, extra=log_extra())

    @staticmethod
    def _restore_key(node: EntityNode, row: SoftDeleteMixin) -> str:
        """Id a later restore request for this row must carry."""
        if node.lookup is Lookup.LATEST_FOR_PARENT and node.parent is not None:
            return str(getattr(row, node.parent.foreign_key))
        return str(row.id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, entity_type: str, entity_id: str) -> BaseModel:
        """
        Read an entity in its public shape, whatever its deletion state.

        For a lease, ``entity_id`` may be the lease id.

        Raises:
            NotFoundError: No row with that id exists
        """
        node = _restorable(entity_type)

        with self.store.session() as session:
            row = session.get(node.model, entity_id)
            if row is None:
                raise NotFoundError(node.label, entity_id)
            if isinstance(row, Lease):
                unit = session.get(Unit, row.unit_id) if row.unit_id else None
                return LeaseOut.from_row(row, unit)
            return _SCHEMAS[node.entity_type].model_validate(row)

    def current_lease(self, company_id: str) -> LeaseOut:
        """
        The active lease of a company, or its draft while a unit is pending.

        A company with no active lease but a contract template is shown as
        the synthetic ``PENDING`` lease built from that template.

        Raises:
            NotFoundError: The company is absent or deleted, or has neither
                an active lease nor a contract template
        """
        with self.store.session() as session:
            company = session.scalars(
                Company.select_active().where(Company.id == company_id)
            ).first()
            if company is None:
                raise NotFoundError("company", company_id)

            lease = session.scalars(
                Lease.select_active()
                .where(Lease.company_id == company_id)
                .order_by(Lease.created_at.desc())
                .limit(1)
            ).first()
            if lease is not None:
                unit = session.get(Unit, lease.unit_id) if lease.unit_id else None
                return LeaseOut.from_row(lease, unit)

            if not company.contract_template:
                raise NotFoundError("company", company_id, "has no active lease")

            unit = session.scalars(
                Unit.select_active().where(
                    or_(
                        Unit.company_id == company_id,
                        Unit.reservation_company_id == company_id,
                    )
                )
            ).first()
            return LeaseOut.pending(company, unit)

    def list_deleted(self) -> List[DeletedItem]:
        """
        Every soft-deleted row across the listed types, most recent first.

        Returns:
            Type-tagged items with id, display name and deletion time
        """
        items: List[DeletedItem] = []

        with self.store.session() as session:
            for node in ENTITY_GRAPH.values():
                if not node.listed:
                    continue
                model = node.model
                if node.name_from_parent:
                    assert node.parent is not None  # nosec B101
                    parent = ENTITY_GRAPH[node.parent.entity_type].model
                    stmt = select(model.id, parent.name, model.deleted_at).join(
                        parent, getattr(model, node.parent.foreign_key) == parent.id
                    )
                else:
                    stmt = select(
                        model.id, getattr(model, node.name_column), model.deleted_at
                    )
                stmt = stmt.where(model.deleted_at.is_not(None))

                for row_id, name, deleted_at in session.execute(stmt):
                    items.append(
                        DeletedItem(
                            id=row_id,
                            name=str(name),
                            deleted_at=deleted_at,
                            type=node.entity_type,
                        )
                    )

        items.sort(key=lambda item: item.deleted_at, reverse=True)
        return items

    # ------------------------------------------------------------------
    # Business areas
    # ------------------------------------------------------------------

    def create_business_area(
        self, name: Union[str, BusinessAreaIn], actor: Optional[Actor] = None
    ) -> BusinessAreaOut:
        """
        Create a business-area tag, reviving a soft-deleted one of the same name.

        Raises:
            InvalidStateError: An active tag with that name exists
        """
        if isinstance(name, BusinessAreaIn):
            payload = name
        else:
            payload = BusinessAreaIn(name=name)
        node = ENTITY_GRAPH["business_area"]

        with self.store.transaction() as session:
            row = session.scalars(
                select(BusinessArea)
                .where(func.lower(BusinessArea.name) == payload.name.lower())
                .with_for_update()
            ).first()
            if row is not None and row.deleted_at is None:
                logger.warning(
                    "Business area %r already exists", payload.name, extra=log_extra()
                )
                raise InvalidStateError(node.label, payload.name, "already exists")

            if row is not None:
                row.clear_deleted()
                action = AuditAction.RESTORE
            else:
                row = BusinessArea(name=payload.name)
                session.add(row)
                action = AuditAction.CREATE
            session.flush()
            result = BusinessAreaOut.model_validate(row)

        verb = "restored" if action is AuditAction.RESTORE else "created"
        self.recorder.record(
            node.audit_name,
            action,
            f"Business area '{result.name}' {verb}.",
            actor=actor,
        )
        logger.info("Business area %r %s", result.name, verb, extra=log_extra())
        return result

    def delete_business_area(self, name: str, actor: Optional[Actor] = None) -> None:
        """
        Soft delete an active business-area tag by name.

        Raises:
            NotFoundError: No active tag with that name exists
        """
        with self.store.session() as session:
            row_id = session.scalar(
                select(BusinessArea.id).where(
                    func.lower(BusinessArea.name) == name.strip().lower(),
                    BusinessArea.deleted_at.is_(None),
                )
            )
        if row_id is None:
            logger.warning("Business area %r not found", name, extra=log_extra())
            raise NotFoundError("business area", name)
        self.soft_delete("business_area", row_id, actor=actor)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock(
        session: Session, node: EntityNode, entity_id: Any
    ) -> Optional[SoftDeleteMixin]:
        model = node.model
        return session.scalars(
            select(model).where(model.id == entity_id).with_for_update()
        ).first()

    @staticmethod
    def _display_name(session: Session, node: EntityNode, row: SoftDeleteMixin) -> str:
        if node.name_from_parent and node.parent is not None:
            parent = session.get(
                ENTITY_GRAPH[node.parent.entity_type].model,
                getattr(row, node.parent.foreign_key),
            )
            return str(getattr(parent, "name", "")) if parent is not None else ""
        return str(getattr(row, node.name_column or "id"))
