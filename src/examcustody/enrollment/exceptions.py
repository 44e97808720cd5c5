"""Exceptions for registration enrollment and attendance."""

from examcustody.state_store import CustodyError


class EnrollmentConflictError(CustodyError):
    """Raised when concurrent enrollment runs keep colliding on the same entry."""


class AttendanceConflictError(CustodyError):
    """Raised when attendance cannot be changed, e.g. marking absent after submission."""
