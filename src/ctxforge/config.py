"""Runtime configuration for the context core.

This module provides the settings model that controls validation of render
functions, mutation rollback, persistence fallback policy, eviction and
logging, plus a loader reading them from the environment.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_TRUE_VALUES = ("true", "1", "yes")


class ContextSettings(BaseModel):
    """Settings for the context runtime.

    Attributes:
        strict_render: Detect render functions that mutate memory (tests/dev)
        transactional_mutations: Roll memory back when a handler fails
        fallback_on_corrupt_memory: Treat unreadable persisted memory as a
            cache miss instead of raising PersistenceError
        max_instances: Upper bound on live instances (None = unbounded)
        database_url: SQLAlchemy URL used by the SQL persistence adapter
        log_level: Logging level for setup_logging()
        json_logs: Emit JSON logs instead of console output

    Example:
        >>> settings = ContextSettings(strict_render=True, max_instances=1000)
    """

    model_config = ConfigDict(frozen=True)

    strict_render: bool = Field(default=False, description="Detect mutating renders")
    transactional_mutations: bool = Field(
        default=True, description="Roll back memory on failed mutations"
    )
    fallback_on_corrupt_memory: bool = Field(
        default=False, description="Recreate memory when persisted data is corrupt"
    )
    max_instances: Optional[int] = Field(
        default=None, ge=1, description="Live instance limit (None=unbounded)"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///:memory:", description="Persistence database URL"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=True, description="JSON log output")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize and validate the logging level name.

        Raises:
            ValueError: If the level is not a standard logging level
        """
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{value}'")
        return level


def get_default_settings() -> ContextSettings:
    """Get default settings suitable for local development and tests."""
    return ContextSettings()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def load_settings_from_env() -> ContextSettings:
    """Load settings from environment variables.

    Automatically loads variables from a .env file if present.

    Reads:
    - CTXFORGE_STRICT_RENDER: Detect mutating renders (true/false)
    - CTXFORGE_TRANSACTIONAL_MUTATIONS: Roll back failed mutations (true/false)
    - CTXFORGE_FALLBACK_ON_CORRUPT_MEMORY: Recreate corrupt memory (true/false)
    - CTXFORGE_MAX_INSTANCES: Live instance limit (empty = unbounded)
    - CTXFORGE_DATABASE_URL: SQLAlchemy URL for persistence
    - CTXFORGE_LOG_LEVEL: Logging level
    - CTXFORGE_JSON_LOGS: JSON log output (true/false)

    Returns:
        ContextSettings loaded from environment

    Example:
        >>> os.environ["CTXFORGE_MAX_INSTANCES"] = "500"
        >>> load_settings_from_env().max_instances
        500
    """
    load_dotenv()

    max_instances_str = os.getenv("CTXFORGE_MAX_INSTANCES", "").strip()
    max_instances = int(max_instances_str) if max_instances_str else None

    return ContextSettings(
        strict_render=_env_flag("CTXFORGE_STRICT_RENDER", "false"),
        transactional_mutations=_env_flag("CTXFORGE_TRANSACTIONAL_MUTATIONS", "true"),
        fallback_on_corrupt_memory=_env_flag("CTXFORGE_FALLBACK_ON_CORRUPT_MEMORY", "false"),
        max_instances=max_instances,
        database_url=os.getenv("CTXFORGE_DATABASE_URL", "sqlite+aiosqlite:///:memory:"),
        log_level=os.getenv("CTXFORGE_LOG_LEVEL", "INFO"),
        json_logs=_env_flag("CTXFORGE_JSON_LOGS", "true"),
    )
