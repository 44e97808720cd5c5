"""Pydantic models for REST API."""

from datetime import date, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from examcustody.state_store import BatchStatus

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Enrollment models


class EnrollmentResultResponse(BaseModel):
    """Response model for enrolling one exam entry."""

    model_config = ConfigDict(from_attributes=True)

    exam_entry_id: str
    eligible_students: int
    registrations_created: int
    batch_scripts_created: int
    batch_script_id: str


class EntryOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exam_entry_id: str
    success: bool
    message: str
    result: EnrollmentResultResponse | None


class TimetableEnrollmentResponse(BaseModel):
    """Response model for a timetable-wide enrollment run."""

    model_config = ConfigDict(from_attributes=True)

    timetable_id: str
    entries_processed: int
    successful_entries: int
    failed_entries: int
    eligible_students: int
    registrations_created: int
    batch_scripts_created: int
    outcomes: list[EntryOutcomeResponse]


class RegistrationResponse(BaseModel):
    """Response model for an exam registration."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    exam_entry_id: str
    course_id: str
    student_token: str
    is_present: bool
    attendance_marked_at: datetime | None
    attendance_marked_by: str | None
    seat_number: str | None
    script_submitted: bool
    script_submitted_at: datetime | None
    submitted_to: str | None
    batch_script_id: str | None
    script_id: str | None
    notes: str | None
    created_at: datetime


class RegistrationStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exam_entry_id: str
    total_registered: int
    present: int
    absent: int
    submitted: int
    pending: int
    submission_rate: float
    attendance_rate: float


class MissingScriptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    registration_id: str
    student_id: str
    first_name: str
    last_name: str
    index_number: str | None
    seat_number: str | None


class AttendanceRequest(BaseModel):
    """Request model for marking attendance."""

    student_id: str = Field(..., min_length=1)
    exam_entry_id: str = Field(..., min_length=1)
    is_present: bool
    marked_by: str = Field(..., min_length=1)
    seat_number: str | None = Field(default=None, max_length=20)
    notes: str | None = None


# Submission models


class SubmitRequest(BaseModel):
    """Request model for submitting a scanned script."""

    student_token: str = Field(..., min_length=1)
    invigilator_id: str = Field(..., min_length=1)
    exam_entry_id: str | None = None
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class BulkSubmissionItem(BaseModel):
    student_token: str = Field(..., min_length=1)
    exam_entry_id: str | None = None
    location: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class BulkSubmitRequest(BaseModel):
    """Request model for a queue of offline scans."""

    invigilator_id: str = Field(..., min_length=1)
    submissions: list[BulkSubmissionItem]


class ScanRequest(BaseModel):
    student_token: str = Field(..., min_length=1)
    today: date | None = None


class VerifyRequest(BaseModel):
    verified_by: str = Field(..., min_length=1)


class BatchProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_registered: int
    scripts_submitted: int
    remaining: int


class SubmissionResultResponse(BaseModel):
    """Response model for a successful submission."""

    model_config = ConfigDict(from_attributes=True)

    registration_id: str
    student_name: str
    course_code: str
    course_name: str
    batch_script_id: str
    script_id: str
    submitted_at: datetime
    batch_stats: BatchProgressResponse


class BulkItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    message: str
    student_token: str


class BulkSubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    total_submissions: int
    success_count: int
    failure_count: int
    results: list[BulkItemResponse]


class StudentInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    first_name: str
    last_name: str
    index_number: str
    program_id: str | None
    level: int | None


class ActiveExamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class ScanResultResponse(BaseModel):
    """Response model for a student scan preview."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    message: str
    student_info: StudentInfoResponse | None
    active_exams: list[ActiveExamResponse]
    can_submit: bool


class ScriptResponse(BaseModel):
    """Response model for a script."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    exam_entry_id: str
    batch_script_id: str
    current_holder_id: str
    status: str
    graded_by: str | None
    graded_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


# Batch models


class BatchResponse(BaseModel):
    """Response model for a batch."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    exam_entry_id: str
    course_id: str
    batch_token: str
    status: str
    total_registered: int
    scripts_submitted: int
    scripts_collected: int
    scripts_graded: int
    sealed_by: str | None
    sealed_at: datetime | None
    assigned_lecturer_id: str | None
    delivered_at: datetime | None
    completed_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class BatchStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    total_registered: int
    scripts_submitted: int
    scripts_collected: int
    scripts_graded: int
    pending: int
    submission_rate: float
    grading_progress: float
    status: BatchStatus


class MovementResponse(BaseModel):
    """Response model for a ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    script_id: str | None
    batch_script_id: str | None
    type: str
    to_user_id: str
    location: str
    notes: str | None
    timestamp: datetime


class SealRequest(BaseModel):
    sealed_by: str = Field(..., min_length=1)
    notes: str | None = None


class AssignRequest(BaseModel):
    lecturer_id: str = Field(..., min_length=1)
    assigned_by: str = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: BatchStatus
    notes: str | None = None


class OverrideRequest(BaseModel):
    """Request model for an audited administrative status override."""

    status: BatchStatus
    actor_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=1000)


class GradeRequest(BaseModel):
    lecturer_id: str = Field(..., min_length=1)


def registration_to_response(registration: Any) -> RegistrationResponse:
    """Convert an ExamRegistration model to RegistrationResponse."""
    return RegistrationResponse.model_validate(registration)


def script_to_response(script: Any) -> ScriptResponse:
    """Convert a Script model to ScriptResponse."""
    return ScriptResponse.model_validate(script)


def batch_to_response(batch: Any) -> BatchResponse:
    """Convert a BatchScript model to BatchResponse."""
    return BatchResponse.model_validate(batch)


def movement_to_response(movement: Any) -> MovementResponse:
    """Convert a ScriptMovement model to MovementResponse."""
    return MovementResponse.model_validate(movement)
