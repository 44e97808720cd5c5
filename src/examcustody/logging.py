"""Logging setup for examcustody.

Two rotating files are written under the configured log directory:

- ``examcustody.log``: everything logged under the ``examcustody`` logger.
- ``custody-audit.log``: one line per chain-of-custody ledger entry, written
  through ``audit_logger()``. Audit lines also reach the main log when it
  logs at INFO or lower.

Scanned tokens are bearer credentials; pass them through ``mask_token``
before they reach a log line.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from examcustody.config import LoggingConfig

ROOT_LOGGER = "examcustody"
AUDIT_LOGGER = f"{ROOT_LOGGER}.audit"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
AUDIT_FORMAT = "%(asctime)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LoggingConfig | None = None, verbose: bool = False) -> logging.Logger:
    """Attach file (and optionally console) handlers to the examcustody logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        config: Logging section of the loaded configuration.
        verbose: Log at DEBUG regardless of the configured level.

    Returns:
        The root examcustody logger.
    """
    config = config or LoggingConfig()
    log_dir = Path(config.dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else logging.getLevelNamesMapping()[config.level]

    logger = logging.getLogger(ROOT_LOGGER)
    audit = logging.getLogger(AUDIT_LOGGER)
    _reset(logger)
    _reset(audit)
    logger.setLevel(level)
    # Ledger entries are recorded whatever the configured level is
    audit.setLevel(logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    main_path = log_dir / config.file
    logger.addHandler(_rotating(main_path, config, level, formatter))
    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    audit_path = log_dir / config.audit_file
    audit.addHandler(
        _rotating(audit_path, config, logging.INFO, logging.Formatter(AUDIT_FORMAT, DATE_FORMAT))
    )

    logger.info(
        "examcustody logging initialized (level=%s, file=%s, audit=%s)",
        logging.getLevelName(level),
        main_path,
        audit_path,
    )
    return logger


def audit_logger() -> logging.Logger:
    """Logger for chain-of-custody events."""
    return logging.getLogger(AUDIT_LOGGER)


def mask_token(token: str | None, visible: int = 8) -> str:
    """Shorten a scanned token for log output.

    Args:
        token: Token to mask.
        visible: Number of leading characters to keep.

    Returns:
        Masked token such as ``eyJ0eXBl...[412 chars]``.
    """
    if not token:
        return "<empty>"
    if len(token) <= visible:
        return "*" * len(token)
    return f"{token[:visible]}...[{len(token)} chars]"


def _rotating(
    path: Path, config: LoggingConfig, level: int, formatter: logging.Formatter
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
