"""CustodyEngine - wires the custody components around one database."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from examcustody.batches import BatchRegistry
from examcustody.catalog import CatalogReader
from examcustody.enrollment import RegistrationEnroller
from examcustody.identifiers import IdentifierCodec
from examcustody.ledger import CustodyLedger
from examcustody.state_store import Database
from examcustody.state_store.database import DEFAULT_BUSY_TIMEOUT_MS
from examcustody.submissions import SubmissionWorkflow

if TYPE_CHECKING:
    from examcustody.config import CustodyConfig

logger = logging.getLogger(__name__)


class CustodyEngine:
    """Owns the database and every component built on it.

    Creates tables on construction. Call ``close`` when done.
    """

    def __init__(
        self,
        db_path: str,
        secret_key: str,
        max_age_hours: float | None = None,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        """Initialize the engine.

        Args:
            db_path: SQLite database path, or ":memory:".
            secret_key: HMAC key for student and batch tokens.
            max_age_hours: Reject tokens older than this (optional).
            busy_timeout_ms: How long a write waits on a locked database.
        """
        self.db = Database(db_path, busy_timeout_ms=busy_timeout_ms)
        self.db.create_tables()

        self.codec = IdentifierCodec(secret_key, max_age_hours=max_age_hours)
        self.catalog = CatalogReader()
        self.ledger = CustodyLedger(self.db)
        self.registry = BatchRegistry(self.db, self.ledger, self.catalog)
        self.enroller = RegistrationEnroller(self.db, self.codec, self.catalog, self.registry)
        self.submissions = SubmissionWorkflow(
            self.db, self.codec, self.catalog, self.ledger, self.registry
        )
        logger.debug("Custody engine ready on %s", db_path)

    @classmethod
    def from_config(cls, config: CustodyConfig) -> CustodyEngine:
        """Build an engine from loaded configuration."""
        return cls(
            config.database.path,
            config.tokens.secret,
            max_age_hours=config.tokens.max_age_hours,
            busy_timeout_ms=config.database.busy_timeout_ms,
        )

    def close(self) -> None:
        """Close the database connection."""
        self.db.close()
