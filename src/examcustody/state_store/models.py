"""SQLAlchemy models for the custody state store.

Two groups of tables share one metadata:

- Catalog tables (timetables, courses, venues, exam entries, users,
  enrollments) are owned by the surrounding administration system. The
  custody engine only reads them.
- Custody tables (registrations, batches, scripts, movements) are owned by
  the engine. Rows are never deleted.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, date, datetime  # noqa: TC003 - used at runtime for SQLAlchemy
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from examcustody.state_store.exceptions import InvalidExamEntryError


class UserRole(StrEnum):
    """Roles an actor can hold in the administration system."""

    STUDENT = "STUDENT"
    LECTURER = "LECTURER"
    INVIGILATOR = "INVIGILATOR"
    EXAMS_OFFICER = "EXAMS_OFFICER"
    ADMIN = "ADMIN"


class BatchStatus(StrEnum):
    """Lifecycle of a batch of scripts."""

    PENDING = "PENDING"
    SEALED = "SEALED"
    WITH_LECTURER = "WITH_LECTURER"
    GRADING_IN_PROGRESS = "GRADING_IN_PROGRESS"
    GRADING_COMPLETED = "GRADING_COMPLETED"


class ScriptStatus(StrEnum):
    """Lifecycle of a single answer booklet."""

    COLLECTED = "COLLECTED"
    VERIFIED = "VERIFIED"
    SCANNED = "SCANNED"
    DISPATCHED = "DISPATCHED"
    RECEIVED_FOR_GRADING = "RECEIVED_FOR_GRADING"
    GRADING_IN_PROGRESS = "GRADING_IN_PROGRESS"
    GRADED = "GRADED"


class MovementType(StrEnum):
    """Ledger entry types. Append new members at the end only."""

    COLLECTED_FROM_STUDENT = "COLLECTED_FROM_STUDENT"
    VERIFIED_BY_INVIGILATOR = "VERIFIED_BY_INVIGILATOR"
    BATCH_SEALED = "BATCH_SEALED"
    BATCH_TRANSFERRED = "BATCH_TRANSFERRED"
    GRADING_STARTED = "GRADING_STARTED"
    SCRIPT_GRADED = "SCRIPT_GRADED"
    GRADING_COMPLETED = "GRADING_COMPLETED"
    STATUS_OVERRIDDEN = "STATUS_OVERRIDDEN"


# Every status a script can hold once it has physically left the student.
COLLECTED_STATUSES: tuple[str, ...] = tuple(s.value for s in ScriptStatus)


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (SQLite stores no offset)."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# --- Catalog (read-only to the custody engine) ---


class Timetable(Base):
    """A published exam timetable for one semester."""

    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    semester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PUBLISHED")

    # Relationships
    exam_entries: Mapped[list[ExamEntry]] = relationship("ExamEntry", back_populates="timetable")


class Course(Base):
    """A course that sits exams."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    enrollments: Mapped[list[CourseEnrollment]] = relationship(
        "CourseEnrollment", back_populates="course"
    )


class Venue(Base):
    """An exam hall."""

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ExamEntry(Base):
    """One scheduled exam sitting within a timetable."""

    __tablename__ = "exam_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    venue_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("venues.id"), nullable=True
    )
    semester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    exam_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    end_time: Mapped[str] = mapped_column(String(5), nullable=False, default="12:00")
    # JSON-encoded list of program ids sitting this exam
    program_ids: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    # Relationships
    timetable: Mapped[Timetable] = relationship("Timetable", back_populates="exam_entries")
    course: Mapped[Course] = relationship("Course")
    venue: Mapped[Venue | None] = relationship("Venue")

    @property
    def program_id_list(self) -> list[str]:
        """Decode the stored program id list."""
        if not self.program_ids:
            return []
        try:
            programs = json.loads(self.program_ids)
        except json.JSONDecodeError as e:
            raise InvalidExamEntryError(
                f"Exam entry '{self.id}' has unreadable program ids: {e}"
            ) from e
        if not isinstance(programs, list):
            raise InvalidExamEntryError(f"Exam entry '{self.id}' program ids must be a list")
        return [str(p) for p in programs]


class User(Base):
    """An actor: student, lecturer, invigilator or administrator."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    # Role-specific fields as JSON, decoded by examcustody.catalog.profiles
    profile: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class CourseEnrollment(Base):
    """A student's enrollment in a course for a semester."""

    __tablename__ = "course_enrollments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    semester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    # Relationships
    student: Mapped[User] = relationship("User")
    course: Mapped[Course] = relationship("Course", back_populates="enrollments")


# --- Custody ---


class ExamRegistration(Base):
    """A student's registration for one exam entry."""

    __tablename__ = "exam_registrations"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_entry_id", name="uq_registration_student_entry"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    exam_entry_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exam_entries.id"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    student_token: Mapped[str] = mapped_column(Text, nullable=False)
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attendance_marked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    attendance_marked_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    seat_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    script_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    script_submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    submitted_to: Mapped[str | None] = mapped_column(String(36), nullable=True)
    batch_script_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("batch_scripts.id"), nullable=True
    )
    script_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("scripts.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    student: Mapped[User] = relationship("User")
    exam_entry: Mapped[ExamEntry] = relationship("ExamEntry")
    course: Mapped[Course] = relationship("Course")
    batch_script: Mapped[BatchScript | None] = relationship("BatchScript")
    script: Mapped[Script | None] = relationship("Script")

    def __init__(
        self,
        student_id: str,
        exam_entry_id: str,
        course_id: str,
        student_token: str,
        id: str | None = None,
        is_present: bool = False,
        script_submitted: bool = False,
        notes: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.exam_entry_id = exam_entry_id
        self.course_id = course_id
        self.student_token = student_token
        self.is_present = is_present
        self.script_submitted = script_submitted
        self.notes = notes

    def __repr__(self) -> str:
        return (
            f"<ExamRegistration(id={self.id!r}, student_id={self.student_id!r}, "
            f"exam_entry_id={self.exam_entry_id!r}, submitted={self.script_submitted!r})>"
        )


class BatchScript(Base):
    """Container tracking every script for one course within one exam entry.

    The ``scripts_*`` counters are a cache over the scripts table and are only
    ever written by ``BatchRegistry.refresh_counts``.
    """

    __tablename__ = "batch_scripts"
    __table_args__ = (
        UniqueConstraint("exam_entry_id", "course_id", name="uq_batch_entry_course"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    exam_entry_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exam_entries.id"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), nullable=False)
    batch_token: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    total_registered: Mapped[int] = mapped_column(Integer, nullable=False)
    scripts_submitted: Mapped[int] = mapped_column(Integer, nullable=False)
    scripts_collected: Mapped[int] = mapped_column(Integer, nullable=False)
    scripts_graded: Mapped[int] = mapped_column(Integer, nullable=False)
    sealed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sealed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    assigned_lecturer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    exam_entry: Mapped[ExamEntry] = relationship("ExamEntry")
    course: Mapped[Course] = relationship("Course")
    scripts: Mapped[list[Script]] = relationship("Script", back_populates="batch_script")

    def __init__(
        self,
        exam_entry_id: str,
        course_id: str,
        batch_token: str,
        total_registered: int,
        id: str | None = None,
        status: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.exam_entry_id = exam_entry_id
        self.course_id = course_id
        self.batch_token = batch_token
        self.total_registered = total_registered
        self.status = status if status is not None else BatchStatus.PENDING.value
        self.scripts_submitted = 0
        self.scripts_collected = 0
        self.scripts_graded = 0

    @property
    def batch_status(self) -> BatchStatus:
        """Get status as BatchStatus enum."""
        return BatchStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<BatchScript(id={self.id!r}, exam_entry_id={self.exam_entry_id!r}, "
            f"status={self.status!r})>"
        )


class Script(Base):
    """A physically submitted answer booklet."""

    __tablename__ = "scripts"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_entry_id", name="uq_script_student_entry"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    token: Mapped[str] = mapped_column(Text, nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    exam_entry_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exam_entries.id"), nullable=False
    )
    batch_script_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batch_scripts.id"), nullable=False
    )
    current_holder_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    graded_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    student: Mapped[User] = relationship("User")
    exam_entry: Mapped[ExamEntry] = relationship("ExamEntry")
    batch_script: Mapped[BatchScript] = relationship("BatchScript", back_populates="scripts")

    def __init__(
        self,
        token: str,
        student_id: str,
        exam_entry_id: str,
        batch_script_id: str,
        current_holder_id: str,
        id: str | None = None,
        status: str | None = None,
        notes: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.token = token
        self.student_id = student_id
        self.exam_entry_id = exam_entry_id
        self.batch_script_id = batch_script_id
        self.current_holder_id = current_holder_id
        self.status = status if status is not None else ScriptStatus.COLLECTED.value
        self.notes = notes

    @property
    def script_status(self) -> ScriptStatus:
        """Get status as ScriptStatus enum."""
        return ScriptStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<Script(id={self.id!r}, student_id={self.student_id!r}, status={self.status!r})>"
        )


class ScriptMovement(Base):
    """Immutable chain-of-custody record.

    ``script_id`` is None for batch-level events. The autoincrement id orders
    entries that share a timestamp.
    """

    __tablename__ = "script_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    script_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("scripts.id"), nullable=True, index=True
    )
    batch_script_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("batch_scripts.id"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    to_user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    script: Mapped[Script | None] = relationship("Script")
    batch_script: Mapped[BatchScript | None] = relationship("BatchScript")

    def __init__(
        self,
        type: str,
        to_user_id: str,
        timestamp: datetime,
        location: str = "",
        script_id: str | None = None,
        batch_script_id: str | None = None,
        notes: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.type = type
        self.to_user_id = to_user_id
        self.timestamp = timestamp
        self.location = location
        self.script_id = script_id
        self.batch_script_id = batch_script_id
        self.notes = notes

    @property
    def movement_type(self) -> MovementType:
        """Get type as MovementType enum."""
        return MovementType(self.type)

    def __repr__(self) -> str:
        return (
            f"<ScriptMovement(id={self.id!r}, type={self.type!r}, "
            f"batch_script_id={self.batch_script_id!r})>"
        )
