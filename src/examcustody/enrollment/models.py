"""Result models for enrollment runs and registration queries."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class EnrollmentResult:
    """Outcome of enrolling one exam entry."""

    exam_entry_id: str
    eligible_students: int
    registrations_created: int
    batch_scripts_created: int
    batch_script_id: str


@dataclass
class EntryEnrollmentOutcome:
    """Per-entry outcome within a timetable-wide run."""

    exam_entry_id: str
    success: bool
    message: str
    result: EnrollmentResult | None = None


@dataclass
class TimetableEnrollmentResult:
    """Aggregate of a timetable-wide enrollment run.

    Totals only count entries that succeeded.
    """

    timetable_id: str
    outcomes: list[EntryEnrollmentOutcome] = field(default_factory=list)

    @property
    def entries_processed(self) -> int:
        return len(self.outcomes)

    @property
    def successful_entries(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed_entries(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def eligible_students(self) -> int:
        return sum(o.result.eligible_students for o in self.outcomes if o.result)

    @property
    def registrations_created(self) -> int:
        return sum(o.result.registrations_created for o in self.outcomes if o.result)

    @property
    def batch_scripts_created(self) -> int:
        return sum(o.result.batch_scripts_created for o in self.outcomes if o.result)


@dataclass
class RegistrationStatistics:
    """Attendance and submission counts for an exam entry."""

    exam_entry_id: str
    total_registered: int
    present: int
    absent: int
    submitted: int
    pending: int
    submission_rate: float
    attendance_rate: float


@dataclass
class MissingScript:
    """A student marked present whose script has not been collected."""

    registration_id: str
    student_id: str
    first_name: str
    last_name: str
    index_number: str | None
    seat_number: str | None
