"""Request-scoped dependencies: the store, services and the acting user."""

import logging
from typing import Callable, Optional

from fastapi import Depends, Header, Request

from ..audit_trail.context import log_extra
from ..audit_trail.models import Actor
from ..audit_trail.recorder import AuditRecorder
from ..audit_trail.rollback import RollbackService
from ..config import LeasingConfig
from ..exceptions import AuthorizationError
from ..soft_delete.services import LifecycleService
from ..store.database import Store
from ..termination import TerminationOrchestrator

logger = logging.getLogger(__name__)


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_settings(request: Request) -> LeasingConfig:
    return request.app.state.config


def get_recorder(
    store: Store = Depends(get_store), config: LeasingConfig = Depends(get_settings)
) -> AuditRecorder:
    return AuditRecorder(store, config=config)


def get_lifecycle(
    store: Store = Depends(get_store), recorder: AuditRecorder = Depends(get_recorder)
) -> LifecycleService:
    return LifecycleService(store, recorder)


def get_terminator(
    store: Store = Depends(get_store), recorder: AuditRecorder = Depends(get_recorder)
) -> TerminationOrchestrator:
    return TerminationOrchestrator(store, recorder)


def get_rollback(
    recorder: AuditRecorder = Depends(get_recorder),
    lifecycle: LifecycleService = Depends(get_lifecycle),
) -> RollbackService:
    return RollbackService(recorder, lifecycle)


def get_current_actor(
    x_actor_username: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """
    Identity of the caller as established by the upstream auth layer.

    Override this dependency to plug in a different authentication scheme.

    Raises:
        AuthorizationError: No identity was supplied
    """
    if not x_actor_username:
        raise AuthorizationError(x_actor_role, "act without an identity")
    return Actor(username=x_actor_username, role=x_actor_role)


def require_role(
    *roles: str, setting: Optional[str] = None
) -> Callable[..., Actor]:
    """
    Build a dependency that admits only callers holding one of ``roles``.

    Args:
        *roles: Allowed role names
        setting: Name of a config field listing the allowed roles, used
            when no roles are given

    Returns:
        Dependency resolving to the admitted actor
    """

    def dependency(
        actor: Actor = Depends(get_current_actor),
        config: LeasingConfig = Depends(get_settings),
    ) -> Actor:
        allowed = {role.upper() for role in roles}
        if not allowed and setting:
            allowed = set(getattr(config, setting))
        if actor.role not in allowed:
            logger.warning(
                "Denied %s (role %s), requires one of %s",
                actor.username,
                actor.role,
                sorted(allowed),
                extra=log_extra(),
            )
            raise AuthorizationError(actor.role, "perform this operation")
        return actor

    return dependency
