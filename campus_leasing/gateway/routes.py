"""HTTP routes for restore, termination, soft delete and the audit trail."""

from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response, status

from .. import __version__
from ..audit_trail.models import Actor
from ..audit_trail.recorder import AuditRecorder
from ..audit_trail.rollback import RollbackService
from ..soft_delete.services import LifecycleService
from ..store.schemas import BusinessAreaIn
from ..termination import TerminationOrchestrator
from .dependencies import (
    get_current_actor,
    get_lifecycle,
    get_recorder,
    get_rollback,
    get_terminator,
    require_role,
)

restore_gate = require_role(setting="restore_roles")
termination_gate = require_role(setting="termination_roles")
admin_gate = require_role("ADMIN")


class RestoreCollection(str, Enum):
    campuses = "campuses"
    blocks = "blocks"
    units = "units"
    companies = "companies"


class StructureCollection(str, Enum):
    campuses = "campuses"
    blocks = "blocks"
    units = "units"


restore_router = APIRouter(prefix="/api/restore", tags=["restore"])


@restore_router.get("/deleted")
def list_deleted(
    actor: Actor = Depends(restore_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> List[Dict[str, Any]]:
    return [item.to_public() for item in lifecycle.list_deleted()]


# Declared before the generic route so "leases" is not read as a collection
@restore_router.post("/leases/{company_id}")
def restore_lease(
    company_id: str,
    actor: Actor = Depends(restore_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Dict[str, Any]:
    return lifecycle.restore("lease", company_id, actor).to_public()


@restore_router.post("/{collection}/{entity_id}")
def restore_entity(
    collection: RestoreCollection,
    entity_id: str,
    actor: Actor = Depends(restore_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Dict[str, Any]:
    return lifecycle.restore(collection.value, entity_id, actor).to_public()


lease_router = APIRouter(prefix="/api/leases", tags=["leases"])


@lease_router.get("/{company_id}")
def current_lease(
    company_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Dict[str, Any]:
    return lifecycle.current_lease(company_id).to_public()


@lease_router.delete(
    "/{company_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def terminate_lease(
    company_id: str,
    actor: Actor = Depends(termination_gate),
    terminator: TerminationOrchestrator = Depends(get_terminator),
) -> Response:
    terminator.terminate(company_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


business_area_router = APIRouter(prefix="/api/business-areas", tags=["business areas"])


@business_area_router.post("", status_code=status.HTTP_201_CREATED)
def create_business_area(
    payload: BusinessAreaIn,
    actor: Actor = Depends(termination_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Dict[str, Any]:
    return lifecycle.create_business_area(payload, actor).to_public()


@business_area_router.delete(
    "/{name}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response
)
def delete_business_area(
    name: str,
    actor: Actor = Depends(termination_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Response:
    lifecycle.delete_business_area(name, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


audit_router = APIRouter(prefix="/api/audit", tags=["audit"])


@audit_router.get("")
def list_audit_entries(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    actor: Actor = Depends(admin_gate),
    recorder: AuditRecorder = Depends(get_recorder),
) -> Dict[str, Any]:
    return recorder.list_entries(page, limit)


@audit_router.get("/{entry_id}/rollback-preview")
def preview_rollback(
    entry_id: str,
    actor: Actor = Depends(admin_gate),
    rollback: RollbackService = Depends(get_rollback),
) -> Dict[str, Any]:
    return rollback.preview(entry_id).model_dump(mode="json")


@audit_router.post("/{entry_id}/rollback")
def execute_rollback(
    entry_id: str,
    actor: Actor = Depends(admin_gate),
    rollback: RollbackService = Depends(get_rollback),
) -> Dict[str, Any]:
    return rollback.execute(entry_id, actor).to_public()


structure_router = APIRouter(prefix="/api", tags=["structure"])


@structure_router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "version": __version__}


@structure_router.delete(
    "/{collection}/{entity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
def soft_delete_entity(
    collection: StructureCollection,
    entity_id: str,
    actor: Actor = Depends(termination_gate),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> Response:
    lifecycle.soft_delete(collection.value, entity_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Order matters: specific prefixes before the catch-all structure routes
ROUTERS = (
    restore_router,
    lease_router,
    business_area_router,
    audit_router,
    structure_router,
)
