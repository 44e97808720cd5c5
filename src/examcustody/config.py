"""Configuration loading for examcustody.

Settings come from an optional ``examcustody.yaml`` and are then overridden by
environment variables::

    database:
      path: data/examcustody.db
      busy_timeout_ms: 5000
    tokens:
      secret: change-me
      max_age_hours: 24
    logging:
      dir: logs
      level: INFO
      console: true
      audit_file: custody-audit.log
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from examcustody.state_store.database import DEFAULT_BUSY_TIMEOUT_MS

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "examcustody.yaml"
DEV_TOKEN_SECRET = "examcustody-development-secret"

ENV_TOKEN_SECRET = "EXAMCUSTODY_TOKEN_SECRET"
ENV_DB_PATH = "EXAMCUSTODY_DB_PATH"
ENV_TOKEN_MAX_AGE_HOURS = "EXAMCUSTODY_TOKEN_MAX_AGE_HOURS"
ENV_LOG_DIR = "EXAMCUSTODY_LOG_DIR"
ENV_LOG_LEVEL = "EXAMCUSTODY_LOG_LEVEL"

DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class DatabaseConfig:
    """State store location and lock handling.

    ``busy_timeout_ms`` is how long a write waits for another scanner's
    transaction before failing with "database is locked".
    """

    path: str = "examcustody.db"
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS


@dataclass
class TokenConfig:
    """Identifier signing settings.

    ``max_age_hours`` of None disables expiry enforcement on decode.
    """

    secret: str = DEV_TOKEN_SECRET
    max_age_hours: float | None = None

    @property
    def is_development_secret(self) -> bool:
        return self.secret == DEV_TOKEN_SECRET


@dataclass
class LoggingConfig:
    """Log output settings."""

    dir: str = "logs"
    level: str = "INFO"
    console: bool = True
    file: str = "examcustody.log"
    audit_file: str = "custody-audit.log"
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = 5


@dataclass
class CustodyConfig:
    """Top-level examcustody configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustodyConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If a section is not a mapping or a value is invalid.
        """
        database_data = _section(data, "database")
        tokens_data = _section(data, "tokens")
        logging_data = _section(data, "logging")

        secret = tokens_data.get("secret", DEV_TOKEN_SECRET)
        if not isinstance(secret, str) or not secret:
            raise ConfigError("tokens.secret must be a non-empty string")

        return cls(
            database=DatabaseConfig(
                path=str(database_data.get("path", "examcustody.db")),
                busy_timeout_ms=_parse_int(
                    database_data.get("busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS),
                    "database.busy_timeout_ms",
                    minimum=0,
                ),
            ),
            tokens=TokenConfig(
                secret=secret,
                max_age_hours=_parse_max_age(tokens_data.get("max_age_hours")),
            ),
            logging=LoggingConfig(
                dir=str(logging_data.get("dir", "logs")),
                level=_parse_level(logging_data.get("level", "INFO")),
                console=bool(logging_data.get("console", True)),
                file=str(logging_data.get("file", "examcustody.log")),
                audit_file=str(logging_data.get("audit_file", "custody-audit.log")),
                max_bytes=_parse_int(
                    logging_data.get("max_bytes", DEFAULT_LOG_MAX_BYTES),
                    "logging.max_bytes",
                    minimum=1,
                ),
                backup_count=_parse_int(
                    logging_data.get("backup_count", 5), "logging.backup_count", minimum=0
                ),
            ),
        )

    def apply_env(self, environ: dict[str, str] | None = None) -> CustodyConfig:
        """Apply environment variable overrides in place.

        Args:
            environ: Environment mapping (defaults to ``os.environ``).

        Returns:
            This config, for chaining.

        Raises:
            ConfigError: If an override has an invalid value.
        """
        env = os.environ if environ is None else environ

        if secret := env.get(ENV_TOKEN_SECRET):
            self.tokens.secret = secret
        if db_path := env.get(ENV_DB_PATH):
            self.database.path = db_path
        if max_age := env.get(ENV_TOKEN_MAX_AGE_HOURS):
            self.tokens.max_age_hours = _parse_max_age(max_age)
        if log_dir := env.get(ENV_LOG_DIR):
            self.logging.dir = log_dir
        if log_level := env.get(ENV_LOG_LEVEL):
            self.logging.level = _parse_level(log_level)
        return self


def load_config(
    config_path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> CustodyConfig:
    """Load configuration from YAML (if present) plus environment overrides.

    Args:
        config_path: Path to a YAML file. When None, ``examcustody.yaml`` in the
            current directory is used if it exists.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If an explicit file doesn't exist or any file is invalid.
    """
    data: dict[str, Any] = {}

    if config_path is None:
        default_path = Path.cwd() / CONFIG_FILENAME
        path = default_path if default_path.exists() else None
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

    if path is not None:
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(
                f"Configuration must be a YAML mapping, got {type(loaded).__name__}"
            )
        data = loaded or {}

    config = CustodyConfig.from_dict(data).apply_env(environ)

    if config.tokens.is_development_secret:
        logger.warning(
            "Using the development token secret; set %s before issuing real tokens",
            ENV_TOKEN_SECRET,
        )

    return config


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def _parse_max_age(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"max_age_hours must be a number, got {value!r}") from e
    if hours <= 0:
        raise ConfigError(f"max_age_hours must be positive, got {hours:g}")
    return hours


def _parse_level(value: Any) -> str:
    level = str(value).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return level


def _parse_int(value: Any, name: str, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e
    if number < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {number}")
    return number
