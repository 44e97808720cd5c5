"""State Store - persistent storage for registrations, batches, scripts and the ledger."""

from examcustody.state_store.database import Database
from examcustody.state_store.exceptions import (
    BatchNotFoundError,
    CustodyError,
    ExamEntryNotFoundError,
    InvalidExamEntryError,
    InvalidProfileError,
    RegistrationNotFoundError,
    ScriptNotFoundError,
    TimetableNotFoundError,
    UserNotFoundError,
)
from examcustody.state_store.models import (
    COLLECTED_STATUSES,
    BatchScript,
    BatchStatus,
    Course,
    CourseEnrollment,
    ExamEntry,
    ExamRegistration,
    MovementType,
    Script,
    ScriptMovement,
    ScriptStatus,
    Timetable,
    User,
    UserRole,
    Venue,
    generate_uuid,
    utcnow,
)

__all__ = [
    "COLLECTED_STATUSES",
    "BatchNotFoundError",
    "BatchScript",
    "BatchStatus",
    "Course",
    "CourseEnrollment",
    "CustodyError",
    "Database",
    "ExamEntry",
    "ExamEntryNotFoundError",
    "ExamRegistration",
    "InvalidExamEntryError",
    "InvalidProfileError",
    "MovementType",
    "RegistrationNotFoundError",
    "Script",
    "ScriptMovement",
    "ScriptNotFoundError",
    "ScriptStatus",
    "Timetable",
    "TimetableNotFoundError",
    "User",
    "UserNotFoundError",
    "UserRole",
    "Venue",
    "generate_uuid",
    "utcnow",
]
