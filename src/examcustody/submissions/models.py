"""Request and result models for the submission workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime  # noqa: TC003 - dataclass field types


@dataclass
class SubmissionRequest:
    """One scanned script, as queued by an offline scanner."""

    student_token: str
    exam_entry_id: str | None = None
    location: str | None = None
    notes: str | None = None


@dataclass
class BatchProgress:
    total_registered: int
    scripts_submitted: int
    remaining: int


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""

    registration_id: str
    student_name: str
    course_code: str
    course_name: str
    batch_script_id: str
    script_id: str
    submitted_at: datetime
    batch_stats: BatchProgress


@dataclass
class StudentInfo:
    student_id: str
    first_name: str
    last_name: str
    index_number: str
    program_id: str | None
    level: int | None


@dataclass
class ActiveExam:
    """A registration for an exam sitting today."""

    exam_entry_id: str
    course_id: str
    course_code: str
    course_name: str
    exam_date: date
    start_time: str
    end_time: str
    venue_name: str | None
    can_submit: bool
    already_submitted: bool
    is_present: bool


@dataclass
class ScanResult:
    """Read-only preview of a scanned student token."""

    success: bool
    message: str
    student_info: StudentInfo | None = None
    active_exams: list[ActiveExam] = field(default_factory=list)
    can_submit: bool = False


@dataclass
class BulkItemResult:
    success: bool
    message: str
    student_token: str


@dataclass
class BulkSubmissionResult:
    """Per-item outcomes of a bulk submission."""

    results: list[BulkItemResult] = field(default_factory=list)

    @property
    def total_submissions(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.success_count > 0


@dataclass
class SubmissionStatus:
    """Where a student's script for one exam currently stands."""

    registration_id: str
    student_id: str
    exam_entry_id: str
    is_present: bool
    script_submitted: bool
    script_submitted_at: datetime | None
    batch_script_id: str | None
    script_id: str | None
    script_status: str | None
    current_holder_id: str | None
