"""
Configuration module for Campus Leasing.

Provides centralized configuration for the store, audit trail, gateway and CLI.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union, get_args, get_origin

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Caller roles understood by the gateway's role gate."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    VIEWER = "VIEWER"


class LeasingConfig(BaseModel):
    """Central configuration for the leasing service.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (LEASING_ prefix)
        3. Default values (lowest priority)

    Example:
        >>> config = LeasingConfig(
        ...     database_url="postgresql://leasing@localhost/leasing",
        ...     rollback_window_days=7,
        ... )

        Loading from environment:

        >>> import os
        >>> os.environ['LEASING_DATABASE_URL'] = 'sqlite:///./leasing.db'
        >>> os.environ['LEASING_AUDIT_ENABLED'] = 'true'
        >>> config = LeasingConfig.from_env()

    Environment Variables:
        - LEASING_APPLICATION_NAME
        - LEASING_DATABASE_URL
        - LEASING_LOG_LEVEL
        - LEASING_RESTORE_ROLES (comma separated)
    """

    # General settings
    application_name: str = Field(
        "Campus Leasing", description="Name of the application for audit trails"
    )
    environment: str = Field(
        "production",
        description="Environment (development, staging, production, test)",
    )
    log_level: str = Field("INFO", description="Minimum level for log output")

    # Store settings
    database_url: str = Field(
        "sqlite:///./data/leasing.db", description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(False, description="Echo SQL statements")

    # Audit trail settings
    audit_enabled: bool = Field(True, description="Enable audit trail logging")
    audit_default_actor: str = Field(
        "System", description="Actor recorded when a caller supplies none"
    )
    audit_default_role: str = Field(
        "ADMIN", description="Role recorded when a caller supplies none"
    )
    rollback_window_days: int = Field(
        7, description="Days during which an audit entry may be rolled back", gt=0
    )

    # Pagination
    pagination_default_limit: int = Field(
        50, description="Page size when none is requested", gt=0
    )
    pagination_max_limit: int = Field(
        10000, description="Largest page size a caller may request", gt=0
    )

    # Gateway role gates
    restore_roles: List[str] = Field(
        default_factory=lambda: [Role.ADMIN.value],
        description="Roles allowed to restore entities and review deletions",
    )
    termination_roles: List[str] = Field(
        default_factory=lambda: [Role.ADMIN.value, Role.MANAGER.value],
        description="Roles allowed to terminate leases and soft delete entities",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Environment must be one of: {', '.join(sorted(valid_environments))}"
            )
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("restore_roles", "termination_roles")
    @classmethod
    def normalize_roles(cls, v: List[str]) -> List[str]:
        """Upper-case role names and reject an empty gate."""
        roles = [role.strip().upper() for role in v if role.strip()]
        if not roles:
            raise ValueError("At least one role is required")
        return roles

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    @classmethod
    def from_env(cls, prefix: str = "LEASING_") -> "LeasingConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        import os

        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]

                field_type = field_info.annotation

                # Handle Optional types
                if get_origin(field_type) is Union:
                    args = get_args(field_type)
                    field_type = next(
                        (arg for arg in args if arg is not type(None)), str
                    )

                try:
                    if field_type == bool:
                        config_dict[field_name] = value.lower() in (
                            "true",
                            "1",
                            "yes",
                            "on",
                        )
                    elif field_type == int:
                        config_dict[field_name] = int(value)
                    elif get_origin(field_type) is list:
                        config_dict[field_name] = [
                            item.strip() for item in value.split(",")
                        ]
                    elif isinstance(field_type, type) and issubclass(field_type, Enum):
                        config_dict[field_name] = field_type(value)
                    else:
                        config_dict[field_name] = value
                except (ValueError, TypeError):
                    # Let model validation report the bad value
                    config_dict[field_name] = value

        return cls.model_validate(config_dict)


# Global configuration instance
_config: Optional[LeasingConfig] = None


def get_config() -> LeasingConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        try:
            _config = LeasingConfig.from_env()
        except ValueError:
            logging.getLogger(__name__).warning(
                "Invalid LEASING_* environment settings, using defaults",
                exc_info=True,
            )
            _config = LeasingConfig.model_validate({})

    return _config


def set_config(config: Optional[LeasingConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> LeasingConfig:
    """
    Configure the service with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = LeasingConfig(**kwargs)
    else:
        config_dict = _config.to_dict()
        config_dict.update(kwargs)
        _config = LeasingConfig(**config_dict)

    return _config
