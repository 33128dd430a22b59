"""
Rollback of audited actions.

Only direct restores are supported: a DELETE entry whose rollback payload
names an entity is undone by restoring that entity. Prior field values are
never reapplied.
"""

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..exceptions import RollbackNotSupportedError
from ..store.mixins import utcnow
from .context import log_extra
from .models import Actor, AuditAction, AuditEntry, RollbackPreview, RollbackSafety
from .recorder import AuditRecorder

if TYPE_CHECKING:
    from pydantic import BaseModel

    from ..soft_delete.services import LifecycleService

logger = logging.getLogger(__name__)


def _target(entry: AuditEntry) -> Optional[Dict[str, Any]]:
    data = entry.rollback_data or {}
    if data.get("entityType") and data.get("id"):
        return data
    return None


class RollbackService:
    """Preview and execute rollbacks of audit entries."""

    def __init__(self, recorder: AuditRecorder, lifecycle: "LifecycleService"):
        self.recorder = recorder
        self.lifecycle = lifecycle

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.recorder.config.rollback_window_days)

    def preview(self, entry_id: str) -> RollbackPreview:
        """
        Describe what rolling back an entry would do.

        The preview is UNSAFE when the entry has no usable payload or is older
        than the configured rollback window.

        Raises:
            NotFoundError: No entry with that id exists
        """
        entry = self.recorder.get(entry_id)
        target = _target(entry)

        if target is None:
            return RollbackPreview(
                type=RollbackSafety.UNSAFE,
                messages=["No rollback data is available for this action."],
            )

        label = str(target["entityType"]).replace("_", " ").capitalize()
        messages = [f"{label} {target['id']} will be restored."]
        safety = RollbackSafety.SAFE

        if entry.action != AuditAction.DELETE.value:
            safety = RollbackSafety.UNSAFE
            messages.append(f"{entry.action} actions cannot be rolled back.")

        if utcnow() - entry.timestamp > self.window:
            safety = RollbackSafety.UNSAFE
            messages.append(
                f"Entries older than {self.window.days} days cannot be rolled back."
            )

        return RollbackPreview(type=safety, messages=messages)

    def execute(self, entry_id: str, actor: Optional[Actor] = None) -> "BaseModel":
        """
        Undo a DELETE entry by restoring the entity its payload names.

        Returns:
            The restored entity in its public shape

        Raises:
            NotFoundError: No entry with that id exists
            RollbackNotSupportedError: The entry cannot be undone by a restore
            InvalidStateError: The entity is already active
        """
        preview = self.preview(entry_id)
        if not preview.is_safe:
            logger.warning(
                "Rollback of audit entry %s refused", entry_id, extra=log_extra()
            )
            raise RollbackNotSupportedError(entry_id, " ".join(preview.messages))

        target = _target(self.recorder.get(entry_id))
        assert target is not None  # nosec B101
        restored = self.lifecycle.restore(target["entityType"], target["id"], actor)
        logger.info("Rolled back audit entry %s", entry_id, extra=log_extra())
        return restored
