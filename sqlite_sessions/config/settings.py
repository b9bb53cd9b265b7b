"""
Configuration management for the SQLite session store.

Settings come from ``SESSION_STORE_*`` environment variables and from
optional .env files; ``.env.<environment>`` overrides the base ``.env``.
Every field has a default, so an empty environment yields a working
store: ``sessions.sqlite3`` in the working directory, one day TTL, WAL
journaling and NORMAL synchronous mode.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from pydantic import Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlite_sessions.errors.exceptions import InvalidConfigurationError, InvalidTableNameError
from sqlite_sessions.session.connection import (
    DEFAULT_FILENAME,
    JOURNAL_MODES,
    SYNCHRONOUS_MODES,
)
from sqlite_sessions.session.schema import DEFAULT_TABLE, validate_table_name
from sqlite_sessions.session.store import ONE_DAY_MS

ENV_PREFIX = "SESSION_STORE_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Upper-cased choice fields and the values each accepts
_CHOICES = {
    "journal_mode": JOURNAL_MODES,
    "synchronous": SYNCHRONOUS_MODES,
    "log_level": LOG_LEVELS,
}


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """Environment named by the ENVIRONMENT variable; DEVELOPMENT if unset or unknown."""
    value = os.environ.get("ENVIRONMENT", "").strip().lower()
    try:
        return Environment(value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """The .env files for an environment that exist, later files winning."""
    candidates = (".env", f".env.{environment.value}")
    return tuple(path for path in candidates if Path(path).exists())


class StoreSettings(BaseSettings):
    """Session store settings loaded from environment variables."""

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Backing file
    dir: Optional[str] = Field(
        default=None,
        description="Directory of the database file; defaults to the working directory"
    )
    filename: str = Field(
        default=DEFAULT_FILENAME,
        description="Database file name; ':memory:' selects an in-memory database"
    )
    table: str = Field(
        default=DEFAULT_TABLE,
        description="Name of the session table"
    )

    # Expiry
    ttl_ms: int = Field(
        default=ONE_DAY_MS,
        gt=0,
        description="Default session time-to-live in milliseconds"
    )
    gc_interval_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Garbage collection interval in milliseconds; 0 disables, unset uses one day"
    )

    # SQLite pragmas
    journal_mode: str = Field(
        default="WAL",
        description="PRAGMA journal_mode: DELETE, TRUNCATE, PERSIST, MEMORY, WAL or OFF"
    )
    synchronous: str = Field(
        default="NORMAL",
        description="PRAGMA synchronous: OFF, NORMAL, FULL or EXTRA"
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Seconds to wait on a locked database before failing"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # HTTP integration
    cookie_name: str = Field(
        default="session_id",
        description="Name of the cookie carrying the session id"
    )
    cookie_secure: bool = Field(
        default=False,
        description="Mark the session cookie Secure"
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        try:
            return validate_table_name(v.strip())
        except InvalidTableNameError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("journal_mode", "synchronous", "log_level")
    @classmethod
    def validate_choice(cls, v: str, info: ValidationInfo) -> str:
        """Normalise to upper case and check against the accepted values."""
        allowed = _CHOICES[info.field_name]
        v = v.strip().upper()
        if v not in allowed:
            raise ValueError(f"{info.field_name} must be one of: {', '.join(allowed)}")
        return v

    @property
    def resolved_dir(self) -> str:
        """Directory of the database file, falling back to the working directory."""
        return self.dir or os.getcwd()


class ConfigurationError(InvalidConfigurationError):
    """
    Settings failed validation.

    Attributes:
        environment: The environment whose settings were being loaded
        invalid_fields: Field name to validation message, one per bad field
    """

    def __init__(self, environment: Environment, invalid_fields: dict):
        self.environment = environment
        self.invalid_fields = invalid_fields
        lines = [f"Invalid session store configuration for environment '{environment.value}':"]
        lines.extend(f"  - {ENV_PREFIX}{field.upper()}: {error}" for field, error in invalid_fields.items())
        super().__init__(
            "\n".join(lines),
            details={"environment": environment.value, "invalid_fields": invalid_fields},
        )


def create_settings_for_environment(environment: Optional[Environment] = None) -> StoreSettings:
    """
    Load StoreSettings for an environment.

    Args:
        environment: Environment override; detected from ENVIRONMENT when omitted.

    Raises:
        ConfigurationError: If any field fails validation.
    """
    if environment is None:
        environment = _detect_environment()

    try:
        return StoreSettings(
            _env_file=_get_env_files(environment) or None,
            environment=environment,
        )
    except ValidationError as e:
        invalid_fields = {
            ".".join(str(loc) for loc in error["loc"]): error["msg"]
            for error in e.errors()
        }
        raise ConfigurationError(environment, invalid_fields) from e


_settings_cache: Optional[StoreSettings] = None


def get_settings() -> StoreSettings:
    """Settings singleton, loaded on first use."""
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() reloads them."""
    global _settings_cache
    _settings_cache = None
