"""CustodyLedger - append-only log of script and batch movements."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import event, func, select

from examcustody.logging import audit_logger
from examcustody.state_store import MovementType, ScriptMovement, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.orm import Session

    from examcustody.state_store import Database

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100
# Session.info key holding entries to audit once their transaction commits
PENDING_AUDIT_KEY = "custody_pending_audit"


class CustodyLedger:
    """Records who holds what, where and when.

    Entries are never updated or deleted. Other components call ``record``
    inside their own transaction so a state change and its ledger entry
    commit together; ``append`` is the standalone variant.

    Committed entries are also written to the custody audit log.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        event.listen(db.session_factory, "after_commit", _write_audit)
        event.listen(db.session_factory, "after_rollback", _discard_audit)

    def record(
        self,
        session: Session,
        movement_type: MovementType,
        *,
        to_user_id: str,
        script_id: str | None = None,
        batch_script_id: str | None = None,
        location: str = "",
        notes: str | None = None,
    ) -> ScriptMovement:
        """Add a movement to the caller's session and flush it.

        The entry's timestamp never precedes the latest entry already
        recorded for the same batch (or script, for entries with no batch),
        so per-batch history stays ordered even when clocks disagree.

        Args:
            session: Open session owned by the caller.
            movement_type: Kind of movement.
            to_user_id: Actor now holding the item.
            script_id: Script moved (None for batch-level events).
            batch_script_id: Batch concerned.
            location: Free-text location label.
            notes: Free-text note.

        Returns:
            The flushed ScriptMovement with its id assigned.
        """
        movement = ScriptMovement(
            type=movement_type.value,
            to_user_id=to_user_id,
            timestamp=self._next_timestamp(session, script_id, batch_script_id),
            location=location,
            script_id=script_id,
            batch_script_id=batch_script_id,
            notes=notes,
        )
        session.add(movement)
        session.flush()
        session.info.setdefault(PENDING_AUDIT_KEY, []).append(movement)
        logger.debug(
            "Ledger %s: %s -> %s (batch=%s, script=%s)",
            movement.id,
            movement_type.value,
            to_user_id,
            batch_script_id,
            script_id,
        )
        return movement

    def append(
        self,
        movement_type: MovementType,
        *,
        to_user_id: str,
        script_id: str | None = None,
        batch_script_id: str | None = None,
        location: str = "",
        notes: str | None = None,
    ) -> int:
        """Append a movement in its own transaction.

        No business rules are checked here.

        Returns:
            Id of the new entry.
        """
        session = self._db.get_session()
        try:
            movement = self.record(
                session,
                movement_type,
                to_user_id=to_user_id,
                script_id=script_id,
                batch_script_id=batch_script_id,
                location=location,
                notes=notes,
            )
            session.commit()
            return movement.id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def history_for(
        self, batch_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ScriptMovement]:
        """Movements recorded against a batch, most recent first.

        Args:
            batch_id: The batch's id.
            limit: Max entries to return.

        Returns:
            Entries ordered by timestamp then insertion order, descending.
        """
        session = self._db.get_session()
        try:
            stmt = (
                select(ScriptMovement)
                .where(ScriptMovement.batch_script_id == batch_id)
                .order_by(ScriptMovement.timestamp.desc(), ScriptMovement.id.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def history_for_script(
        self, script_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[ScriptMovement]:
        """Movements recorded against one script, most recent first."""
        session = self._db.get_session()
        try:
            stmt = (
                select(ScriptMovement)
                .where(ScriptMovement.script_id == script_id)
                .order_by(ScriptMovement.timestamp.desc(), ScriptMovement.id.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def _next_timestamp(
        self, session: Session, script_id: str | None, batch_script_id: str | None
    ) -> datetime:
        now = utcnow()
        if batch_script_id is not None:
            scope = ScriptMovement.batch_script_id == batch_script_id
        elif script_id is not None:
            scope = ScriptMovement.script_id == script_id
        else:
            return now
        latest = session.scalar(select(func.max(ScriptMovement.timestamp)).where(scope))
        if latest is not None and latest > now:
            return latest
        return now


def _write_audit(session: Session) -> None:
    audit = audit_logger()
    for movement in session.info.pop(PENDING_AUDIT_KEY, []):
        audit.info(
            "%s #%s batch=%s script=%s to=%s location=%r notes=%r",
            movement.type,
            movement.id,
            movement.batch_script_id or "-",
            movement.script_id or "-",
            movement.to_user_id,
            movement.location,
            movement.notes,
        )


def _discard_audit(session: Session) -> None:
    session.info.pop(PENDING_AUDIT_KEY, None)
