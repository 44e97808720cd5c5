"""CatalogReader - read-only lookups against the administration catalog."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from examcustody.catalog.profiles import RoleProfile, StudentProfile, parse_profile
from examcustody.state_store import (
    Course,
    CourseEnrollment,
    ExamEntry,
    ExamEntryNotFoundError,
    InvalidProfileError,
    Timetable,
    TimetableNotFoundError,
    User,
    UserNotFoundError,
    UserRole,
    Venue,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class CatalogReader:
    """Queries the catalog tables inside a caller-owned session.

    The custody engine never writes catalog rows; every method here is a
    plain read.
    """

    def get_exam_entry(self, session: Session, exam_entry_id: str) -> ExamEntry:
        """Load an exam entry.

        Raises:
            ExamEntryNotFoundError: If no entry has this id.
        """
        entry = session.get(ExamEntry, exam_entry_id)
        if entry is None:
            raise ExamEntryNotFoundError(f"Exam entry '{exam_entry_id}' not found")
        return entry

    def get_timetable(self, session: Session, timetable_id: str) -> Timetable:
        """Load a timetable.

        Raises:
            TimetableNotFoundError: If no timetable has this id.
        """
        timetable = session.get(Timetable, timetable_id)
        if timetable is None:
            raise TimetableNotFoundError(f"Timetable '{timetable_id}' not found")
        return timetable

    def exam_entry_ids(self, session: Session, timetable_id: str) -> list[str]:
        """Ids of a timetable's entries in schedule order."""
        stmt = (
            select(ExamEntry.id)
            .where(ExamEntry.timetable_id == timetable_id)
            .order_by(ExamEntry.exam_date, ExamEntry.start_time, ExamEntry.id)
        )
        return list(session.scalars(stmt))

    def get_course(self, session: Session, course_id: str) -> Course | None:
        return session.get(Course, course_id)

    def get_venue(self, session: Session, venue_id: str | None) -> Venue | None:
        if venue_id is None:
            return None
        return session.get(Venue, venue_id)

    def find_user(self, session: Session, user_id: str) -> User | None:
        return session.get(User, user_id)

    def get_user(self, session: Session, user_id: str) -> User:
        """Load a user.

        Raises:
            UserNotFoundError: If no user has this id.
        """
        user = session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found")
        return user

    def profile_of(self, user: User) -> RoleProfile:
        """Decode a user's role profile (raises InvalidProfileError)."""
        return parse_profile(user.role, user.profile)

    def eligible_student_ids(self, session: Session, entry: ExamEntry) -> list[str]:
        """Students eligible to sit an exam entry.

        Eligible means an ACTIVE enrollment in the entry's course for the
        entry's semester and, when the entry lists programs, a student
        profile in one of those programs.

        Args:
            session: Open session.
            entry: The exam entry.

        Returns:
            Student ids ordered by last then first name.
        """
        stmt = (
            select(User)
            .join(CourseEnrollment, CourseEnrollment.student_id == User.id)
            .where(
                CourseEnrollment.course_id == entry.course_id,
                CourseEnrollment.semester_id == entry.semester_id,
                CourseEnrollment.status == "ACTIVE",
                User.role == UserRole.STUDENT.value,
            )
            .order_by(User.last_name, User.first_name, User.id)
        )
        students = list(session.scalars(stmt).unique())

        program_ids = set(entry.program_id_list)
        if not program_ids:
            return [student.id for student in students]

        eligible: list[str] = []
        for student in students:
            try:
                profile = self.profile_of(student)
            except InvalidProfileError as e:
                logger.warning(
                    "Skipping student %s for exam entry %s: %s", student.id, entry.id, e
                )
                continue
            if isinstance(profile, StudentProfile) and profile.program_id in program_ids:
                eligible.append(student.id)
        return eligible
