"""
Configuration for ComponentDB.

Settings come from, in order of precedence:
1. Explicit constructor arguments
2. COMPONENTDB_* environment variables (optionally loaded from a .env file)
3. Defaults

Environment variables:
    COMPONENTDB_CREATE_INITIAL_VERSION   true/false (default true)
    COMPONENTDB_UPDATE_RELATIONSHIPS     true/false (default true)
    COMPONENTDB_LOG_LEVEL                e.g. INFO, DEBUG (default WARNING)
    COMPONENTDB_ALLOW_<FLAG>             overrides one permission flag, e.g.
                                         COMPONENTDB_ALLOW_NETWORK_REQUESTS=true
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from componentdb.core.models import Permissions


ENV_PREFIX = "COMPONENTDB_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    """Parse a boolean environment value."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


class RegistryConfig(BaseModel):
    """
    Settings for a ComponentRegistry.

    Example:
        config = RegistryConfig.from_env()
        registry = ComponentRegistry(config=config)
    """

    permissions: Permissions = Field(default_factory=Permissions, description="Default permissions")
    create_initial_version: bool = Field(
        default=True,
        description="Create a version on register when source code is present"
    )
    update_relationships: bool = Field(
        default=True,
        description="Infer parent and dependency edges on register"
    )
    log_level: str = Field(default="WARNING", description="Level for the componentdb logger")

    model_config = {"extra": "forbid"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is a known logging level."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_env(
        cls,
        dotenv_path: Optional[Union[str, Path]] = None,
        **overrides: Any,
    ) -> RegistryConfig:
        """
        Build a config from the environment.

        Args:
            dotenv_path: Optional .env file to load first (existing
                environment variables win over the file)
            **overrides: Explicit settings, highest precedence

        Returns:
            RegistryConfig
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path, override=False)

        values: dict[str, Any] = {}
        for field_name in ("create_initial_version", "update_relationships"):
            env_name = f"{ENV_PREFIX}{field_name.upper()}"
            raw = os.getenv(env_name)
            if raw is not None:
                values[field_name] = _parse_bool(env_name, raw)

        log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level

        permission_flags: dict[str, bool] = {}
        for flag in Permissions.model_fields:
            if not flag.startswith("allow_"):
                continue
            env_name = f"{ENV_PREFIX}{flag.upper()}"
            raw = os.getenv(env_name)
            if raw is not None:
                permission_flags[flag] = _parse_bool(env_name, raw)
        if permission_flags:
            values["permissions"] = Permissions().merge(permission_flags)

        values.update(overrides)
        return cls(**values)

    def apply_logging(self) -> None:
        """Set the level of the package logger. Installs no handlers."""
        logging.getLogger("componentdb").setLevel(self.log_level)
