"""RegistrationEnroller - turns a published timetable into exam registrations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from tqdm import tqdm

from examcustody.batches import percentage
from examcustody.catalog import StudentProfile
from examcustody.enrollment.exceptions import AttendanceConflictError, EnrollmentConflictError
from examcustody.enrollment.models import (
    EnrollmentResult,
    EntryEnrollmentOutcome,
    MissingScript,
    RegistrationStatistics,
    TimetableEnrollmentResult,
)
from examcustody.state_store import (
    BatchScript,
    CustodyError,
    ExamRegistration,
    InvalidProfileError,
    RegistrationNotFoundError,
    User,
    generate_uuid,
    utcnow,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from examcustody.batches import BatchRegistry
    from examcustody.catalog import CatalogReader
    from examcustody.identifiers import IdentifierCodec
    from examcustody.state_store import Database, ExamEntry

logger = logging.getLogger(__name__)

# Rows per INSERT statement, well under SQLite's bound-parameter limit
INSERT_CHUNK_SIZE = 500
MAX_ATTEMPTS = 2


class RegistrationEnroller:
    """Creates one registration per eligible student plus the entry's batch."""

    def __init__(
        self,
        db: Database,
        codec: IdentifierCodec,
        catalog: CatalogReader,
        registry: BatchRegistry,
    ) -> None:
        self._db = db
        self._codec = codec
        self._catalog = catalog
        self._registry = registry

    # --- Enrollment ---

    def enroll_for_exam_entry(self, exam_entry_id: str) -> EnrollmentResult:
        """Register every eligible student for one exam entry.

        Safe to re-run: students already registered are skipped, the
        existing batch is reused and its ``total_registered`` refreshed.

        Args:
            exam_entry_id: The exam entry's id.

        Returns:
            EnrollmentResult with eligible and created counts.

        Raises:
            ExamEntryNotFoundError: If the exam entry doesn't exist.
            EnrollmentConflictError: If a concurrent run keeps winning the
                uniqueness race.
        """
        for attempt in range(1, MAX_ATTEMPTS + 1):
            session = self._db.get_session()
            try:
                result = self._enroll(session, exam_entry_id)
                session.commit()
                logger.info(
                    "Enrolled exam entry %s: %d eligible, %d new registrations, batch %s",
                    exam_entry_id,
                    result.eligible_students,
                    result.registrations_created,
                    result.batch_script_id,
                )
                return result
            except IntegrityError as e:
                session.rollback()
                if attempt == MAX_ATTEMPTS:
                    raise EnrollmentConflictError(
                        f"Enrollment for exam entry '{exam_entry_id}' conflicted with a "
                        "concurrent run; retry later"
                    ) from e
                logger.warning(
                    "Enrollment for exam entry %s hit a uniqueness conflict, retrying",
                    exam_entry_id,
                )
            finally:
                session.close()
        raise AssertionError("unreachable")

    def enroll_for_timetable(
        self, timetable_id: str, show_progress: bool = False
    ) -> TimetableEnrollmentResult:
        """Enroll every entry of a timetable, each in its own transaction.

        A failing entry is reported in the result and does not stop the run.

        Args:
            timetable_id: The timetable's id.
            show_progress: Whether to display a tqdm progress bar.

        Returns:
            TimetableEnrollmentResult with one outcome per entry.

        Raises:
            TimetableNotFoundError: If the timetable doesn't exist.
        """
        session = self._db.get_session()
        try:
            self._catalog.get_timetable(session, timetable_id)
            entry_ids = self._catalog.exam_entry_ids(session, timetable_id)
        finally:
            session.close()

        report = TimetableEnrollmentResult(timetable_id=timetable_id)
        for entry_id in tqdm(
            entry_ids, desc="Enrolling", unit="entry", disable=not show_progress
        ):
            try:
                result = self.enroll_for_exam_entry(entry_id)
            except CustodyError as e:
                logger.warning("Enrollment failed for exam entry %s: %s", entry_id, e)
                report.outcomes.append(
                    EntryEnrollmentOutcome(exam_entry_id=entry_id, success=False, message=str(e))
                )
                continue
            except SQLAlchemyError as e:
                logger.exception("Database error enrolling exam entry %s", entry_id)
                report.outcomes.append(
                    EntryEnrollmentOutcome(
                        exam_entry_id=entry_id,
                        success=False,
                        message=f"Database error: {e.__class__.__name__}",
                    )
                )
                continue
            report.outcomes.append(
                EntryEnrollmentOutcome(
                    exam_entry_id=entry_id,
                    success=True,
                    message=f"Created {result.registrations_created} registrations",
                    result=result,
                )
            )

        logger.info(
            "Timetable %s enrollment: %d/%d entries succeeded, %d registrations created",
            timetable_id,
            report.successful_entries,
            report.entries_processed,
            report.registrations_created,
        )
        return report

    def _enroll(self, session: Session, exam_entry_id: str) -> EnrollmentResult:
        entry = self._catalog.get_exam_entry(session, exam_entry_id)
        course = self._catalog.get_course(session, entry.course_id)
        if course is None:
            raise CustodyError(f"Course '{entry.course_id}' of exam entry not found")

        eligible = self._catalog.eligible_student_ids(session, entry)
        already = set(
            session.scalars(
                select(ExamRegistration.student_id).where(
                    ExamRegistration.exam_entry_id == entry.id
                )
            )
        )
        rows = [self._registration_row(entry, sid) for sid in eligible if sid not in already]
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            stmt = (
                sqlite_insert(ExamRegistration)
                .values(rows[start : start + INSERT_CHUNK_SIZE])
                .on_conflict_do_nothing(index_elements=["student_id", "exam_entry_id"])
            )
            session.execute(stmt)

        total = self._count_registrations(session, entry.id)

        batch = self._registry.find_batch(session, entry.id, entry.course_id)
        batches_created = 0
        if batch is None:
            batch_id = generate_uuid()
            batch = BatchScript(
                id=batch_id,
                exam_entry_id=entry.id,
                course_id=entry.course_id,
                batch_token=self._codec.encode_batch_token(
                    batch_id, entry.course_id, course.code, entry.id
                ),
                total_registered=total,
            )
            session.add(batch)
            session.flush()
            batches_created = 1
        else:
            batch.total_registered = total

        session.execute(
            update(ExamRegistration)
            .where(
                ExamRegistration.exam_entry_id == entry.id,
                ExamRegistration.batch_script_id.is_(None),
            )
            .values(batch_script_id=batch.id)
            .execution_options(synchronize_session=False)
        )

        return EnrollmentResult(
            exam_entry_id=entry.id,
            eligible_students=len(eligible),
            registrations_created=total - len(already),
            batch_scripts_created=batches_created,
            batch_script_id=batch.id,
        )

    def _registration_row(self, entry: ExamEntry, student_id: str) -> dict[str, object]:
        return {
            "id": generate_uuid(),
            "student_id": student_id,
            "exam_entry_id": entry.id,
            "course_id": entry.course_id,
            "student_token": self._codec.encode_student_token(
                student_id, entry.id, entry.course_id
            ),
            "is_present": False,
            "script_submitted": False,
            "created_at": utcnow(),
        }

    @staticmethod
    def _count_registrations(session: Session, exam_entry_id: str) -> int:
        stmt = select(func.count(ExamRegistration.id)).where(
            ExamRegistration.exam_entry_id == exam_entry_id
        )
        return session.scalar(stmt) or 0

    # --- Attendance and queries ---

    def mark_attendance(
        self,
        student_id: str,
        exam_entry_id: str,
        is_present: bool,
        marked_by: str,
        seat_number: str | None = None,
        notes: str | None = None,
    ) -> ExamRegistration:
        """Record whether a registered student is present.

        Args:
            student_id: The student's id.
            exam_entry_id: The exam entry's id.
            is_present: Attendance flag.
            marked_by: Invigilator recording attendance.
            seat_number: Optional seat assignment.
            notes: Optional note.

        Returns:
            The updated registration.

        Raises:
            RegistrationNotFoundError: If the student isn't registered.
            AttendanceConflictError: If marking absent after submission.
        """
        session = self._db.get_session()
        try:
            registration = self._find_registration(session, student_id, exam_entry_id)
            if registration is None:
                raise RegistrationNotFoundError(
                    f"Student '{student_id}' is not registered for exam entry '{exam_entry_id}'"
                )
            if not is_present and registration.script_submitted:
                raise AttendanceConflictError(
                    f"Student '{student_id}' has already submitted a script and "
                    "cannot be marked absent"
                )

            registration.is_present = is_present
            registration.attendance_marked_at = utcnow()
            registration.attendance_marked_by = marked_by
            if seat_number is not None:
                registration.seat_number = seat_number
            if notes is not None:
                registration.notes = notes

            session.commit()
            session.refresh(registration)
            return registration
        finally:
            session.close()

    def registrations_for_exam_entry(
        self,
        exam_entry_id: str,
        script_submitted: bool | None = None,
        is_present: bool | None = None,
    ) -> list[ExamRegistration]:
        """List registrations for an exam entry with optional filters.

        Returns:
            Registrations ordered by creation time.
        """
        session = self._db.get_session()
        try:
            stmt = select(ExamRegistration).where(ExamRegistration.exam_entry_id == exam_entry_id)
            if script_submitted is not None:
                stmt = stmt.where(ExamRegistration.script_submitted == script_submitted)
            if is_present is not None:
                stmt = stmt.where(ExamRegistration.is_present == is_present)
            stmt = stmt.order_by(ExamRegistration.created_at, ExamRegistration.id)
            return list(session.scalars(stmt).all())
        finally:
            session.close()

    def registration_statistics(self, exam_entry_id: str) -> RegistrationStatistics:
        """Attendance and submission counts for an exam entry.

        Raises:
            ExamEntryNotFoundError: If the exam entry doesn't exist.
        """
        session = self._db.get_session()
        try:
            self._catalog.get_exam_entry(session, exam_entry_id)
            stmt = select(
                func.count(ExamRegistration.id).label("total"),
                func.sum(case((ExamRegistration.is_present.is_(True), 1), else_=0)).label(
                    "present"
                ),
                func.sum(
                    case((ExamRegistration.script_submitted.is_(True), 1), else_=0)
                ).label("submitted"),
            ).where(ExamRegistration.exam_entry_id == exam_entry_id)
            row = session.execute(stmt).one()
        finally:
            session.close()

        total = int(row.total or 0)
        present = int(row.present or 0)
        submitted = int(row.submitted or 0)
        return RegistrationStatistics(
            exam_entry_id=exam_entry_id,
            total_registered=total,
            present=present,
            absent=total - present,
            submitted=submitted,
            pending=total - submitted,
            submission_rate=percentage(submitted, total),
            attendance_rate=percentage(present, total),
        )

    def missing_scripts(self, exam_entry_id: str) -> list[MissingScript]:
        """Students marked present whose script has not been collected.

        Returns:
            Rows ordered by student last name.
        """
        session = self._db.get_session()
        try:
            stmt = (
                select(ExamRegistration, User)
                .join(User, User.id == ExamRegistration.student_id)
                .where(
                    ExamRegistration.exam_entry_id == exam_entry_id,
                    ExamRegistration.is_present.is_(True),
                    ExamRegistration.script_submitted.is_(False),
                )
                .order_by(User.last_name, User.first_name)
            )
            missing: list[MissingScript] = []
            for registration, student in session.execute(stmt):
                missing.append(
                    MissingScript(
                        registration_id=registration.id,
                        student_id=student.id,
                        first_name=student.first_name,
                        last_name=student.last_name,
                        index_number=self._index_number(student),
                        seat_number=registration.seat_number,
                    )
                )
            return missing
        finally:
            session.close()

    def _index_number(self, student: User) -> str | None:
        try:
            profile = self._catalog.profile_of(student)
        except InvalidProfileError:
            logger.warning("Student %s has an unreadable profile", student.id)
            return None
        return profile.index_number if isinstance(profile, StudentProfile) else None

    @staticmethod
    def _find_registration(
        session: Session, student_id: str, exam_entry_id: str
    ) -> ExamRegistration | None:
        stmt = select(ExamRegistration).where(
            ExamRegistration.student_id == student_id,
            ExamRegistration.exam_entry_id == exam_entry_id,
        )
        return session.scalars(stmt).first()
