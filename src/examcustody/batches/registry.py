"""BatchRegistry - lifecycle and counters of script batches."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select, update

from examcustody.batches.exceptions import BatchTransitionError, ScriptTransitionError
from examcustody.batches.models import BatchCounts, BatchStatistics, percentage
from examcustody.state_store import (
    COLLECTED_STATUSES,
    BatchNotFoundError,
    BatchScript,
    BatchStatus,
    MovementType,
    Script,
    ScriptNotFoundError,
    ScriptStatus,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from examcustody.catalog import CatalogReader
    from examcustody.ledger import CustodyLedger
    from examcustody.state_store import Database

logger = logging.getLogger(__name__)

SEAL_LOCATION = "Exam Venue"
LECTURER_LOCATION = "Lecturer Office"

# Statuses that accept lecturer assignment
ASSIGNABLE_STATUSES = frozenset({BatchStatus.PENDING, BatchStatus.SEALED})

# Grading transitions reachable through update_status
GRADING_TRANSITIONS: dict[BatchStatus, BatchStatus] = {
    BatchStatus.WITH_LECTURER: BatchStatus.GRADING_IN_PROGRESS,
    BatchStatus.GRADING_IN_PROGRESS: BatchStatus.GRADING_COMPLETED,
}

GRADABLE_SCRIPT_STATUSES = frozenset(
    {ScriptStatus.RECEIVED_FOR_GRADING, ScriptStatus.GRADING_IN_PROGRESS}
)


class BatchRegistry:
    """Owns BatchScript containers, their status and their counters.

    Counters are a cache over the scripts table. They are recomputed with
    ``refresh_counts`` inside the same transaction as every write that can
    change them and are never incremented in place.
    """

    def __init__(self, db: Database, ledger: CustodyLedger, catalog: CatalogReader) -> None:
        self._db = db
        self._ledger = ledger
        self._catalog = catalog

    # --- Counters ---

    def count_scripts(self, session: Session, batch_id: str) -> BatchCounts:
        """Count a batch's collected and graded scripts from the scripts table."""
        stmt = select(
            func.count(Script.id).label("collected"),
            func.sum(case((Script.status == ScriptStatus.GRADED.value, 1), else_=0)).label(
                "graded"
            ),
        ).where(
            Script.batch_script_id == batch_id,
            Script.status.in_(COLLECTED_STATUSES),
        )
        row = session.execute(stmt).one()
        return BatchCounts(collected=row.collected or 0, graded=row.graded or 0)

    def refresh_counts(self, session: Session, batch: BatchScript) -> BatchCounts:
        """Rewrite a batch's cached counters inside the caller's transaction.

        ``scripts_submitted`` and ``scripts_collected`` always hold the same
        value; both columns are kept for existing readers.
        """
        session.flush()
        counts = self.count_scripts(session, batch.id)
        batch.scripts_submitted = counts.collected
        batch.scripts_collected = counts.collected
        batch.scripts_graded = counts.graded
        return counts

    def recompute_counts(self, batch_id: str) -> BatchScript:
        """Recompute a batch's counters from the scripts table.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
        """
        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            self.refresh_counts(session, batch)
            session.commit()
            session.refresh(batch)
            return batch
        finally:
            session.close()

    # --- Lifecycle ---

    def seal(self, batch_id: str, sealed_by: str, notes: str | None = None) -> BatchScript:
        """Seal a batch for dispatch.

        Sealing an already SEALED batch is a no-op and records nothing.

        Args:
            batch_id: The batch's id.
            sealed_by: Actor sealing the batch.
            notes: Optional note stored on the batch.

        Returns:
            The sealed batch.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
            BatchTransitionError: If the batch has already left the venue.
        """
        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            current = batch.batch_status

            if current == BatchStatus.SEALED:
                logger.info("Batch %s already sealed, nothing to do", batch_id)
                return batch
            if current != BatchStatus.PENDING:
                raise BatchTransitionError(
                    f"Batch '{batch_id}' is {current.value}; only PENDING batches can be sealed"
                )

            self.refresh_counts(session, batch)
            batch.status = BatchStatus.SEALED.value
            batch.sealed_at = utcnow()
            batch.sealed_by = sealed_by
            if notes is not None:
                batch.notes = notes

            self._ledger.record(
                session,
                MovementType.BATCH_SEALED,
                to_user_id=sealed_by,
                batch_script_id=batch.id,
                location=SEAL_LOCATION,
                notes=f"Batch sealed with {batch.scripts_submitted} scripts",
            )
            session.commit()
            session.refresh(batch)
            logger.info(
                "Sealed batch %s with %d scripts (by %s)",
                batch_id,
                batch.scripts_submitted,
                sealed_by,
            )
            return batch
        finally:
            session.close()

    def assign_to_lecturer(self, batch_id: str, lecturer_id: str, assigned_by: str) -> BatchScript:
        """Hand a batch and all of its scripts to a grading lecturer.

        The batch status, every script's holder and status, and the ledger
        entry are written in one transaction.

        Args:
            batch_id: The batch's id.
            lecturer_id: Lecturer receiving the batch.
            assigned_by: Actor performing the hand-over.

        Returns:
            The updated batch.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
            UserNotFoundError: If the lecturer doesn't exist.
            BatchTransitionError: If the batch is already with a lecturer.
        """
        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            current = batch.batch_status
            if current not in ASSIGNABLE_STATUSES:
                raise BatchTransitionError(
                    f"Batch '{batch_id}' is {current.value}; "
                    "only PENDING or SEALED batches can be assigned"
                )
            lecturer = self._catalog.get_user(session, lecturer_id)
            assigner = self._catalog.find_user(session, assigned_by)
            handed_by = assigner.full_name if assigner is not None else assigned_by

            now = utcnow()
            batch.assigned_lecturer_id = lecturer_id
            batch.status = BatchStatus.WITH_LECTURER.value
            batch.delivered_at = now

            self._ledger.record(
                session,
                MovementType.BATCH_TRANSFERRED,
                to_user_id=lecturer_id,
                batch_script_id=batch.id,
                location=LECTURER_LOCATION,
                notes=f"Batch assigned to {lecturer.full_name} by {handed_by}",
            )
            session.execute(
                update(Script)
                .where(Script.batch_script_id == batch.id)
                .values(
                    current_holder_id=lecturer_id,
                    status=ScriptStatus.RECEIVED_FOR_GRADING.value,
                    updated_at=now,
                )
                .execution_options(synchronize_session="fetch")
            )
            self.refresh_counts(session, batch)
            session.commit()
            session.refresh(batch)
            logger.info(
                "Assigned batch %s to lecturer %s (by %s)", batch_id, lecturer_id, assigned_by
            )
            return batch
        finally:
            session.close()

    def update_status(
        self, batch_id: str, status: BatchStatus, notes: str | None = None
    ) -> BatchScript:
        """Advance a batch through grading.

        Only ``WITH_LECTURER -> GRADING_IN_PROGRESS -> GRADING_COMPLETED`` is
        reachable here; sealing and assignment have their own operations.
        Requesting the current status is a no-op.

        Args:
            batch_id: The batch's id.
            status: Target status.
            notes: Optional note stored on the batch.

        Returns:
            The updated batch.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
            BatchTransitionError: If the transition is not allowed.
        """
        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            current = batch.batch_status

            if status == current:
                return batch
            if status == BatchStatus.SEALED:
                raise BatchTransitionError(f"Use seal to seal batch '{batch_id}'")
            if status == BatchStatus.WITH_LECTURER:
                raise BatchTransitionError(
                    f"Use assign_to_lecturer to hand batch '{batch_id}' to a lecturer"
                )
            if GRADING_TRANSITIONS.get(current) != status:
                raise BatchTransitionError(
                    f"Batch '{batch_id}' cannot move from {current.value} to {status.value}"
                )

            self._apply_status(session, batch, status)
            if notes is not None:
                batch.notes = notes

            movement_type = (
                MovementType.GRADING_COMPLETED
                if status == BatchStatus.GRADING_COMPLETED
                else MovementType.GRADING_STARTED
            )
            self._ledger.record(
                session,
                movement_type,
                to_user_id=self._holder_of(batch),
                batch_script_id=batch.id,
                location=LECTURER_LOCATION,
                notes=notes,
            )
            session.commit()
            session.refresh(batch)
            logger.info("Batch %s moved %s -> %s", batch_id, current.value, status.value)
            return batch
        finally:
            session.close()

    def override_status(
        self, batch_id: str, status: BatchStatus, actor_id: str, reason: str
    ) -> BatchScript:
        """Force a batch into any status, leaving an audit entry.

        Args:
            batch_id: The batch's id.
            status: Status to force.
            actor_id: Administrator performing the override.
            reason: Why the override was needed (required).

        Returns:
            The updated batch.

        Raises:
            ValueError: If no reason is given.
            BatchNotFoundError: If the batch doesn't exist.
        """
        if not reason or not reason.strip():
            raise ValueError("An override reason is required")

        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            previous = batch.status
            self._apply_status(session, batch, status)
            self._ledger.record(
                session,
                MovementType.STATUS_OVERRIDDEN,
                to_user_id=actor_id,
                batch_script_id=batch.id,
                notes=f"Status overridden from {previous} to {status.value}: {reason.strip()}",
            )
            session.commit()
            session.refresh(batch)
            logger.warning(
                "Batch %s status overridden %s -> %s by %s: %s",
                batch_id,
                previous,
                status.value,
                actor_id,
                reason,
            )
            return batch
        finally:
            session.close()

    def record_grading(self, script_id: str, lecturer_id: str) -> Script:
        """Mark a script as graded by the lecturer holding it.

        The first graded script moves a WITH_LECTURER batch to
        GRADING_IN_PROGRESS. No mark is recorded.

        Args:
            script_id: The script's id.
            lecturer_id: Lecturer who graded it.

        Returns:
            The graded script.

        Raises:
            ScriptNotFoundError: If the script doesn't exist.
            ScriptTransitionError: If the script is not held for grading by
                this lecturer.
        """
        session = self._db.get_session()
        try:
            script = session.get(Script, script_id)
            if script is None:
                raise ScriptNotFoundError(f"Script '{script_id}' not found")
            if script.script_status not in GRADABLE_SCRIPT_STATUSES:
                raise ScriptTransitionError(
                    f"Script '{script_id}' is {script.status}; "
                    "only scripts received for grading can be graded"
                )
            if script.current_holder_id != lecturer_id:
                raise ScriptTransitionError(
                    f"Script '{script_id}' is not held by lecturer '{lecturer_id}'"
                )

            now = utcnow()
            script.status = ScriptStatus.GRADED.value
            script.graded_by = lecturer_id
            script.graded_at = now

            batch = self.load_batch(session, script.batch_script_id)
            self._ledger.record(
                session,
                MovementType.SCRIPT_GRADED,
                to_user_id=lecturer_id,
                script_id=script.id,
                batch_script_id=batch.id,
                location=LECTURER_LOCATION,
                notes="Script graded",
            )
            if batch.batch_status == BatchStatus.WITH_LECTURER:
                self._apply_status(session, batch, BatchStatus.GRADING_IN_PROGRESS)
                self._ledger.record(
                    session,
                    MovementType.GRADING_STARTED,
                    to_user_id=lecturer_id,
                    batch_script_id=batch.id,
                    location=LECTURER_LOCATION,
                )
            self.refresh_counts(session, batch)
            session.commit()
            session.refresh(script)
            return script
        finally:
            session.close()

    # --- Queries ---

    def get_batch(self, batch_id: str) -> BatchScript:
        """Get batch by ID.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
        """
        session = self._db.get_session()
        try:
            return self.load_batch(session, batch_id)
        finally:
            session.close()

    def find_batch(
        self, session: Session, exam_entry_id: str, course_id: str
    ) -> BatchScript | None:
        """Look up the batch for an (exam entry, course) pair in an open session."""
        stmt = select(BatchScript).where(
            BatchScript.exam_entry_id == exam_entry_id,
            BatchScript.course_id == course_id,
        )
        return session.scalars(stmt).first()

    def get_batch_for_exam_entry(self, exam_entry_id: str, course_id: str) -> BatchScript:
        """Get the batch for an exam entry and course.

        Raises:
            BatchNotFoundError: If no batch has been provisioned.
        """
        session = self._db.get_session()
        try:
            batch = self.find_batch(session, exam_entry_id, course_id)
            if batch is None:
                raise BatchNotFoundError(
                    f"No batch for exam entry '{exam_entry_id}' and course '{course_id}'"
                )
            return batch
        finally:
            session.close()

    def list_batches(
        self,
        course_id: str | None = None,
        exam_entry_id: str | None = None,
        status: BatchStatus | None = None,
        assigned_lecturer_id: str | None = None,
    ) -> list[BatchScript]:
        """List batches with optional filters.

        Returns:
            Batches ordered by created_at descending (most recent first).
        """
        session = self._db.get_session()
        try:
            stmt = select(BatchScript)
            if course_id is not None:
                stmt = stmt.where(BatchScript.course_id == course_id)
            if exam_entry_id is not None:
                stmt = stmt.where(BatchScript.exam_entry_id == exam_entry_id)
            if status is not None:
                stmt = stmt.where(BatchScript.status == status.value)
            if assigned_lecturer_id is not None:
                stmt = stmt.where(BatchScript.assigned_lecturer_id == assigned_lecturer_id)
            stmt = stmt.order_by(BatchScript.created_at.desc(), BatchScript.id)
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def pending_assignment(self) -> list[BatchScript]:
        """Sealed batches not yet handed to a lecturer, oldest seal first."""
        session = self._db.get_session()
        try:
            stmt = (
                select(BatchScript)
                .where(
                    BatchScript.status == BatchStatus.SEALED.value,
                    BatchScript.assigned_lecturer_id.is_(None),
                )
                .order_by(BatchScript.sealed_at.asc())
            )
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def batches_for_lecturer(
        self, lecturer_id: str, status: BatchStatus | None = None
    ) -> list[BatchScript]:
        """Batches assigned to a lecturer, most recently delivered first."""
        session = self._db.get_session()
        try:
            stmt = select(BatchScript).where(BatchScript.assigned_lecturer_id == lecturer_id)
            if status is not None:
                stmt = stmt.where(BatchScript.status == status.value)
            stmt = stmt.order_by(BatchScript.delivered_at.desc())
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def statistics(self, batch_id: str) -> BatchStatistics:
        """Submission and grading progress, counted live from the scripts table.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
        """
        session = self._db.get_session()
        try:
            batch = self.load_batch(session, batch_id)
            counts = self.count_scripts(session, batch_id)
            return BatchStatistics(
                batch_id=batch.id,
                total_registered=batch.total_registered,
                scripts_submitted=counts.collected,
                scripts_collected=counts.collected,
                scripts_graded=counts.graded,
                pending=batch.total_registered - counts.collected,
                submission_rate=percentage(counts.collected, batch.total_registered),
                grading_progress=percentage(counts.graded, counts.collected),
                status=batch.batch_status,
            )
        finally:
            session.close()

    # --- Helpers ---

    def load_batch(self, session: Session, batch_id: str) -> BatchScript:
        """Load a batch in an open session (raises BatchNotFoundError)."""
        batch = session.get(BatchScript, batch_id)
        if batch is None:
            raise BatchNotFoundError(f"Batch '{batch_id}' not found")
        return batch

    def _apply_status(self, session: Session, batch: BatchScript, status: BatchStatus) -> None:
        batch.status = status.value
        if status == BatchStatus.GRADING_COMPLETED:
            batch.completed_at = utcnow()
        self.refresh_counts(session, batch)

    @staticmethod
    def _holder_of(batch: BatchScript) -> str:
        return batch.assigned_lecturer_id or batch.sealed_by or ""
