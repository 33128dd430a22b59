"""Exceptions raised by the lifecycle, termination and audit components."""

from typing import Optional


class LeasingError(Exception):
    """Base exception for leasing operations."""

    status_code = 500

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ):
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message)


class NotFoundError(LeasingError):
    """Raised when the target is absent, or absent in the required state."""

    status_code = 404

    def __init__(self, entity_type: str, entity_id: str, detail: str = "not found"):
        super().__init__(
            f"{entity_type.capitalize()} {entity_id} {detail}",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class InvalidStateError(LeasingError):
    """Raised when the target exists but is in the wrong state for the request."""

    status_code = 400

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        super().__init__(
            f"{entity_type.capitalize()} {entity_id} {reason}",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class StoreError(LeasingError):
    """Raised when the underlying store fails, including constraint violations."""

    status_code = 500

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


class AuthorizationError(LeasingError):
    """Raised when the caller does not hold a role the operation requires."""

    status_code = 403

    def __init__(self, role: Optional[str], required: str):
        super().__init__(f"Role {role or 'anonymous'} may not {required}")


class RollbackNotSupportedError(LeasingError):
    """Raised when an audit entry cannot be reversed by a direct restore."""

    status_code = 400

    def __init__(self, entry_id: str, reason: str):
        super().__init__(
            f"Audit entry {entry_id} cannot be rolled back: {reason}",
            entity_type="audit",
            entity_id=entry_id,
        )
