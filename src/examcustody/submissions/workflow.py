"""SubmissionWorkflow - what happens when an invigilator scans a script."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from examcustody.batches import ScriptTransitionError
from examcustody.catalog import StudentProfile
from examcustody.identifiers import IdentifierError
from examcustody.logging import mask_token
from examcustody.state_store import (
    Course,
    CustodyError,
    ExamEntry,
    ExamRegistration,
    InvalidProfileError,
    MovementType,
    Script,
    ScriptNotFoundError,
    ScriptStatus,
    UserRole,
    Venue,
    utcnow,
)
from examcustody.submissions.exceptions import (
    AlreadySubmittedError,
    BatchNotProvisionedError,
    NotRegisteredError,
)
from examcustody.submissions.models import (
    ActiveExam,
    BatchProgress,
    BulkItemResult,
    BulkSubmissionResult,
    ScanResult,
    StudentInfo,
    SubmissionRequest,
    SubmissionResult,
    SubmissionStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from examcustody.batches import BatchRegistry
    from examcustody.catalog import CatalogReader
    from examcustody.identifiers import IdentifierCodec
    from examcustody.ledger import CustodyLedger
    from examcustody.state_store import Database, ScriptMovement

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Exam Hall"
VERIFICATION_LOCATION = "Verification Area"
VERIFIABLE_STATUSES = frozenset({ScriptStatus.COLLECTED, ScriptStatus.SCANNED})


class SubmissionWorkflow:
    """Collects scripts from students and records them in the ledger."""

    def __init__(
        self,
        db: Database,
        codec: IdentifierCodec,
        catalog: CatalogReader,
        ledger: CustodyLedger,
        registry: BatchRegistry,
    ) -> None:
        self._db = db
        self._codec = codec
        self._catalog = catalog
        self._ledger = ledger
        self._registry = registry

    def submit(
        self,
        student_token: str,
        invigilator_id: str,
        exam_entry_id_hint: str | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> SubmissionResult:
        """Collect a student's script.

        The token is verified before anything is read or written. Everything
        after that (registration update, script creation, ledger entry and
        batch counters) commits as one transaction, so retrying a timed-out
        call either succeeds once or fails with AlreadySubmittedError.

        Args:
            student_token: Scanned student token.
            invigilator_id: Invigilator collecting the script.
            exam_entry_id_hint: Exam entry selected on the scanner. The
                token's own exam entry takes precedence.
            location: Where the script was collected. Defaults to the venue.
            notes: Optional note stored on the script.

        Returns:
            SubmissionResult with the new script and updated batch progress.

        Raises:
            IdentifierError: If the token is malformed, tampered or expired.
            NotRegisteredError: If the student isn't registered for the exam.
            AlreadySubmittedError: If the script was already collected.
            BatchNotProvisionedError: If the exam entry has no batch.
        """
        payload = self._codec.decode_student_token(student_token)
        student_id = payload.student_id
        exam_entry_id = payload.exam_entry_id
        if exam_entry_id_hint and exam_entry_id_hint != exam_entry_id:
            logger.warning(
                "Scanner selected exam entry %s but token %s is for %s; using the token",
                exam_entry_id_hint,
                mask_token(student_token),
                exam_entry_id,
            )

        session = self._db.get_session()
        try:
            registration = self._find_registration(session, student_id, exam_entry_id)
            if registration is None:
                raise NotRegisteredError(
                    f"Student '{student_id}' is not registered for exam entry '{exam_entry_id}'"
                )
            if registration.script_submitted:
                raise AlreadySubmittedError(
                    f"Script already submitted for student '{student_id}' "
                    f"in exam entry '{exam_entry_id}'"
                )

            now = utcnow()
            if not registration.is_present:
                registration.is_present = True
                registration.attendance_marked_at = now
                registration.attendance_marked_by = invigilator_id

            entry = self._catalog.get_exam_entry(session, exam_entry_id)
            batch = self._registry.find_batch(session, entry.id, registration.course_id)
            if batch is None:
                raise BatchNotProvisionedError(
                    f"No batch provisioned for exam entry '{exam_entry_id}'; "
                    "contact the exams officer"
                )

            script = Script(
                token=student_token,
                student_id=student_id,
                exam_entry_id=entry.id,
                batch_script_id=batch.id,
                current_holder_id=invigilator_id,
                notes=notes,
            )
            session.add(script)
            session.flush()

            student = self._catalog.find_user(session, student_id)
            venue = self._catalog.get_venue(session, entry.venue_id)
            self._ledger.record(
                session,
                MovementType.COLLECTED_FROM_STUDENT,
                to_user_id=invigilator_id,
                script_id=script.id,
                batch_script_id=batch.id,
                location=location or (venue.name if venue else None) or DEFAULT_LOCATION,
                notes=f"Collected from {student.full_name}" if student else "Script collected",
            )

            registration.script_submitted = True
            registration.script_submitted_at = now
            registration.submitted_to = invigilator_id
            registration.batch_script_id = batch.id
            registration.script_id = script.id

            self._registry.refresh_counts(session, batch)
            course = self._catalog.get_course(session, registration.course_id)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise AlreadySubmittedError(
                f"Script already submitted for student '{student_id}' "
                f"in exam entry '{exam_entry_id}'"
            ) from e
        finally:
            session.close()

        logger.info(
            "Collected script %s from student %s for exam entry %s (batch %s: %d/%d)",
            script.id,
            student_id,
            exam_entry_id,
            batch.id,
            batch.scripts_submitted,
            batch.total_registered,
        )
        return SubmissionResult(
            registration_id=registration.id,
            student_name=student.full_name if student else student_id,
            course_code=course.code if course else "",
            course_name=course.name if course else "",
            batch_script_id=batch.id,
            script_id=script.id,
            submitted_at=now,
            batch_stats=BatchProgress(
                total_registered=batch.total_registered,
                scripts_submitted=batch.scripts_submitted,
                remaining=batch.total_registered - batch.scripts_submitted,
            ),
        )

    def scan_student(self, student_token: str, today: date | None = None) -> ScanResult:
        """Preview a scanned student: who they are and what they sit today.

        Never raises for a bad token or unknown student; the reason is
        returned in the result instead. Nothing is written.

        Args:
            student_token: Scanned student token.
            today: Day to list exams for (defaults to the local date).

        Returns:
            ScanResult describing the student and today's exams.
        """
        try:
            payload = self._codec.decode_student_token(student_token)
        except IdentifierError as e:
            logger.info("Scan rejected token %s: %s", mask_token(student_token), e)
            return ScanResult(success=False, message=str(e))

        today = today or date.today()
        session = self._db.get_session()
        try:
            student = self._catalog.find_user(session, payload.student_id)
            profile = None
            if student is not None and student.role == UserRole.STUDENT.value:
                try:
                    profile = self._catalog.profile_of(student)
                except InvalidProfileError as e:
                    logger.warning("Student %s has an unreadable profile: %s", student.id, e)
            if student is None or not isinstance(profile, StudentProfile):
                return ScanResult(
                    success=False, message="Student not found or no profile available"
                )

            stmt = (
                select(ExamRegistration, ExamEntry, Course, Venue)
                .join(ExamEntry, ExamEntry.id == ExamRegistration.exam_entry_id)
                .join(Course, Course.id == ExamEntry.course_id)
                .outerjoin(Venue, Venue.id == ExamEntry.venue_id)
                .where(ExamRegistration.student_id == student.id, ExamEntry.exam_date == today)
                .order_by(ExamEntry.start_time)
            )
            active_exams = [
                ActiveExam(
                    exam_entry_id=entry.id,
                    course_id=entry.course_id,
                    course_code=course.code,
                    course_name=course.name,
                    exam_date=entry.exam_date,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    venue_name=venue.name if venue else None,
                    can_submit=registration.is_present and not registration.script_submitted,
                    already_submitted=registration.script_submitted,
                    is_present=registration.is_present,
                )
                for registration, entry, course, venue in session.execute(stmt)
            ]
        finally:
            session.close()

        can_submit = any(exam.can_submit for exam in active_exams)
        return ScanResult(
            success=True,
            message=(
                f"{len(active_exams)} active exam(s) found"
                if can_submit
                else "No active exams for submission"
            ),
            student_info=StudentInfo(
                student_id=student.id,
                first_name=student.first_name,
                last_name=student.last_name,
                index_number=profile.index_number,
                program_id=profile.program_id,
                level=profile.level,
            ),
            active_exams=active_exams,
            can_submit=can_submit,
        )

    def bulk_submit(
        self, submissions: list[SubmissionRequest], invigilator_id: str
    ) -> BulkSubmissionResult:
        """Submit a queue of scans, e.g. from a scanner that was offline.

        Each item is submitted independently; one failure does not stop
        the rest.

        Args:
            submissions: Queued scans.
            invigilator_id: Invigilator who collected them.

        Returns:
            BulkSubmissionResult with one entry per item, in order.
        """
        report = BulkSubmissionResult()
        for item in submissions:
            try:
                self.submit(
                    item.student_token,
                    invigilator_id,
                    exam_entry_id_hint=item.exam_entry_id,
                    location=item.location,
                    notes=item.notes,
                )
            except (IdentifierError, CustodyError) as e:
                report.results.append(BulkItemResult(False, str(e), item.student_token))
                continue
            except SQLAlchemyError:
                logger.exception(
                    "Bulk submission failed for token %s", mask_token(item.student_token)
                )
                report.results.append(
                    BulkItemResult(False, "Submission failed: database error", item.student_token)
                )
                continue
            report.results.append(
                BulkItemResult(True, "Submitted successfully", item.student_token)
            )

        logger.info(
            "Bulk submission by %s: %d succeeded, %d failed",
            invigilator_id,
            report.success_count,
            report.failure_count,
        )
        return report

    def verify(self, script_id: str, verified_by: str) -> Script:
        """Record a secondary check of a collected script.

        Args:
            script_id: The script's id.
            verified_by: Invigilator performing the check.

        Returns:
            The verified script.

        Raises:
            ScriptNotFoundError: If the script doesn't exist.
            ScriptTransitionError: If the script has already moved on.
        """
        session = self._db.get_session()
        try:
            script = session.get(Script, script_id)
            if script is None:
                raise ScriptNotFoundError(f"Script '{script_id}' not found")
            if script.script_status not in VERIFIABLE_STATUSES:
                raise ScriptTransitionError(
                    f"Script '{script_id}' is {script.status}; "
                    "only COLLECTED or SCANNED scripts can be verified"
                )

            script.status = ScriptStatus.VERIFIED.value
            script.current_holder_id = verified_by
            self._ledger.record(
                session,
                MovementType.VERIFIED_BY_INVIGILATOR,
                to_user_id=verified_by,
                script_id=script.id,
                batch_script_id=script.batch_script_id,
                location=VERIFICATION_LOCATION,
                notes="Script verified",
            )
            batch = self._registry.load_batch(session, script.batch_script_id)
            self._registry.refresh_counts(session, batch)
            session.commit()
            session.refresh(script)
            return script
        finally:
            session.close()

    def submission_status(self, student_id: str, exam_entry_id: str) -> SubmissionStatus | None:
        """Current submission state for a student and exam, or None if unregistered."""
        session = self._db.get_session()
        try:
            registration = self._find_registration(session, student_id, exam_entry_id)
            if registration is None:
                return None
            script = None
            if registration.script_id is not None:
                script = session.get(Script, registration.script_id)
            return SubmissionStatus(
                registration_id=registration.id,
                student_id=registration.student_id,
                exam_entry_id=registration.exam_entry_id,
                is_present=registration.is_present,
                script_submitted=registration.script_submitted,
                script_submitted_at=registration.script_submitted_at,
                batch_script_id=registration.batch_script_id,
                script_id=registration.script_id,
                script_status=script.status if script else None,
                current_holder_id=script.current_holder_id if script else None,
            )
        finally:
            session.close()

    def batch_history(self, batch_id: str, limit: int = 100) -> list[ScriptMovement]:
        """Ledger entries for a batch, most recent first.

        Raises:
            BatchNotFoundError: If the batch doesn't exist.
        """
        self._registry.get_batch(batch_id)
        return self._ledger.history_for(batch_id, limit=limit)

    @staticmethod
    def _find_registration(
        session: Session, student_id: str, exam_entry_id: str
    ) -> ExamRegistration | None:
        stmt = select(ExamRegistration).where(
            ExamRegistration.student_id == student_id,
            ExamRegistration.exam_entry_id == exam_entry_id,
        )
        return session.scalars(stmt).first()
