"""SQLite engine and session management for the custody state store.

Several invigilator scanners write to the same file during an exam, so
every connection runs in WAL mode and waits ``busy_timeout_ms`` for a
competing writer before giving up. Foreign keys are enforced on every
connection; SQLite leaves them off by default.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from examcustody.state_store.models import Base

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
DEFAULT_BUSY_TIMEOUT_MS = 5000


class Database:
    """Lazily created engine plus a session factory.

    Sessions use ``expire_on_commit=False``: components return ORM objects
    after closing their session and callers read them detached.
    """

    def __init__(
        self, db_path: str = "examcustody.db", busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    ) -> None:
        """Initialize the manager. No connection is opened until first use.

        Args:
            db_path: SQLite file path, or ":memory:" for a shared in-memory store.
            busy_timeout_ms: How long a connection waits on a locked database.
        """
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY

    @property
    def engine(self) -> Engine:
        """Get or create the engine."""
        if self._engine is None:
            url = f"sqlite:///{self.db_path}"
            if self.is_memory:
                # A single shared connection, visible to every session and thread
                self._engine = create_engine(
                    url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._engine = create_engine(url, connect_args={"check_same_thread": False})

            event.listen(self._engine, "connect", self._configure_connection)
            logger.debug(
                "Opened custody store %s (busy timeout %d ms)", self.db_path, self.busy_timeout_ms
            )
        return self._engine

    def _configure_connection(self, dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        cursor.close()

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._session_factory

    def create_tables(self) -> None:
        """Create catalog and custody tables that don't exist yet."""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        return self.session_factory()

    def pragma(self, name: str) -> object:
        """Read a connection PRAGMA such as ``journal_mode`` or ``busy_timeout``."""
        if not name.isidentifier():
            raise ValueError(f"Invalid PRAGMA name '{name}'")
        with self.engine.connect() as conn:
            return conn.execute(text(f"PRAGMA {name}")).scalar()

    def is_wal_mode(self) -> bool:
        """Whether the file is in WAL mode. In-memory stores report ``memory``."""
        return self.pragma("journal_mode") == "wal"

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
