"""
Data models for audit trail functionality.

These models define the structure of audit entries, the acting user and
rollback previews.
"""

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..store.mixins import new_id, utcnow


class AuditAction(str, Enum):
    """Actions recorded for mutating operations."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


class RollbackSafety(str, Enum):
    SAFE = "SAFE"
    UNSAFE = "UNSAFE"


class Actor(BaseModel):
    """Identity of the caller, supplied by the external auth collaborator."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1, max_length=255)
    role: Optional[str] = Field(None, max_length=50)

    @field_validator("role")
    @classmethod
    def normalize_role(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else None


class AuditEntry(BaseModel):
    """
    Immutable audit trail entry.

    Each entry captures who acted, on what, when, and under which request
    trace, plus an optional rollback payload and impact summary.
    """

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    id: str = Field(default_factory=new_id, description="Unique identifier")
    trace_id: str = Field(
        default_factory=new_id, description="Trace id of the triggering request"
    )
    timestamp: datetime = Field(
        default_factory=utcnow, description="UTC timestamp of the action"
    )

    entity_type: str = Field(..., description="Type of entity affected")
    action: AuditAction = Field(..., description="Type of action performed")
    details: Optional[str] = Field(None, description="Human-readable description")

    user_name: str = Field(..., description="Actor identity")
    user_role: Optional[str] = Field(None, description="Actor role at time of action")

    rollback_data: Optional[Dict[str, Any]] = Field(
        None, description="Payload needed to reverse the action"
    )
    impact: Optional[Dict[str, Any]] = Field(
        None, description="Structured summary of the rows affected"
    )

    checksum: Optional[str] = Field(
        None, description="Checksum of the entry for integrity verification"
    )

    @field_validator("entity_type")
    @classmethod
    def upper_entity_type(cls, v: str) -> str:
        return v.upper()

    def calculate_checksum(self) -> str:
        """
        Calculate the SHA-256 checksum over the entry's immutable fields.

        Returns:
            Hex digest of the checksum
        """
        data = {
            "id": self.id,
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
            "entity_type": self.entity_type,
            "action": self.action,
            "details": self.details,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "rollback_data": self.rollback_data,
            "impact": self.impact,
        }

        # Sort keys for consistency
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()

    def with_checksum(self) -> "AuditEntry":
        return self.model_copy(update={"checksum": self.calculate_checksum()})

    def verify_checksum(self) -> bool:
        """Check the stored checksum against a fresh calculation."""
        return self.checksum is not None and self.checksum == self.calculate_checksum()


class RollbackPreview(BaseModel):
    """What a rollback of an audit entry would do, and whether it is allowed."""

    model_config = ConfigDict(use_enum_values=True)

    type: RollbackSafety
    messages: List[str] = Field(default_factory=list)

    @property
    def is_safe(self) -> bool:
        return self.type == RollbackSafety.SAFE.value
