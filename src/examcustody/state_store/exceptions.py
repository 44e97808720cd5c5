"""Base exceptions for stored custody state."""


class CustodyError(Exception):
    """Base exception for custody engine errors."""


class TimetableNotFoundError(CustodyError):
    """Timetable with given ID does not exist."""


class ExamEntryNotFoundError(CustodyError):
    """Exam entry with given ID does not exist."""


class UserNotFoundError(CustodyError):
    """User with given ID does not exist."""


class InvalidExamEntryError(CustodyError):
    """An exam entry's stored data cannot be interpreted."""


class InvalidProfileError(CustodyError):
    """A user's role or profile data cannot be interpreted."""


class RegistrationNotFoundError(CustodyError):
    """No exam registration for the given student and exam entry."""


class BatchNotFoundError(CustodyError):
    """Batch with given ID does not exist."""


class ScriptNotFoundError(CustodyError):
    """Script with given ID does not exist."""
