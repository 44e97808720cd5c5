"""Enrollment - exam registrations and attendance."""

from examcustody.enrollment.enroller import RegistrationEnroller
from examcustody.enrollment.exceptions import AttendanceConflictError, EnrollmentConflictError
from examcustody.enrollment.models import (
    EnrollmentResult,
    EntryEnrollmentOutcome,
    MissingScript,
    RegistrationStatistics,
    TimetableEnrollmentResult,
)

__all__ = [
    "AttendanceConflictError",
    "EnrollmentConflictError",
    "EnrollmentResult",
    "EntryEnrollmentOutcome",
    "MissingScript",
    "RegistrationEnroller",
    "RegistrationStatistics",
    "TimetableEnrollmentResult",
]
