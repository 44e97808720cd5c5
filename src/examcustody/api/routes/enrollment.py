"""Registration enrollment and attendance endpoints."""

from fastapi import APIRouter, Query

from examcustody.api.dependencies import EngineDep
from examcustody.api.models import (
    APIResponse,
    AttendanceRequest,
    EnrollmentResultResponse,
    MissingScriptResponse,
    RegistrationResponse,
    RegistrationStatisticsResponse,
    TimetableEnrollmentResponse,
    registration_to_response,
)

router = APIRouter(prefix="/enrollment", tags=["enrollment"])


@router.post("/timetables/{timetable_id}", response_model=APIResponse[TimetableEnrollmentResponse])
def enroll_timetable(
    timetable_id: str, engine: EngineDep
) -> APIResponse[TimetableEnrollmentResponse]:
    """Create registrations and batches for every entry of a timetable."""
    result = engine.enroller.enroll_for_timetable(timetable_id)
    return APIResponse(data=TimetableEnrollmentResponse.model_validate(result))


@router.post("/exam-entries/{exam_entry_id}", response_model=APIResponse[EnrollmentResultResponse])
def enroll_exam_entry(
    exam_entry_id: str, engine: EngineDep
) -> APIResponse[EnrollmentResultResponse]:
    """Create registrations and the batch for one exam entry."""
    result = engine.enroller.enroll_for_exam_entry(exam_entry_id)
    return APIResponse(data=EnrollmentResultResponse.model_validate(result))


@router.get(
    "/exam-entries/{exam_entry_id}/registrations",
    response_model=APIResponse[list[RegistrationResponse]],
)
def list_registrations(
    exam_entry_id: str,
    engine: EngineDep,
    script_submitted: bool | None = Query(default=None, description="Filter by submission"),
    is_present: bool | None = Query(default=None, description="Filter by attendance"),
) -> APIResponse[list[RegistrationResponse]]:
    """List registrations for an exam entry."""
    registrations = engine.enroller.registrations_for_exam_entry(
        exam_entry_id, script_submitted=script_submitted, is_present=is_present
    )
    return APIResponse(data=[registration_to_response(r) for r in registrations])


@router.get(
    "/exam-entries/{exam_entry_id}/statistics",
    response_model=APIResponse[RegistrationStatisticsResponse],
)
def registration_statistics(
    exam_entry_id: str, engine: EngineDep
) -> APIResponse[RegistrationStatisticsResponse]:
    """Attendance and submission counts for an exam entry."""
    stats = engine.enroller.registration_statistics(exam_entry_id)
    return APIResponse(data=RegistrationStatisticsResponse.model_validate(stats))


@router.get(
    "/exam-entries/{exam_entry_id}/missing-scripts",
    response_model=APIResponse[list[MissingScriptResponse]],
)
def missing_scripts(
    exam_entry_id: str, engine: EngineDep
) -> APIResponse[list[MissingScriptResponse]]:
    """Students present without a collected script."""
    missing = engine.enroller.missing_scripts(exam_entry_id)
    return APIResponse(data=[MissingScriptResponse.model_validate(m) for m in missing])


@router.post("/attendance", response_model=APIResponse[RegistrationResponse])
def mark_attendance(
    request: AttendanceRequest, engine: EngineDep
) -> APIResponse[RegistrationResponse]:
    """Mark a registered student present or absent."""
    registration = engine.enroller.mark_attendance(
        student_id=request.student_id,
        exam_entry_id=request.exam_entry_id,
        is_present=request.is_present,
        marked_by=request.marked_by,
        seat_number=request.seat_number,
        notes=request.notes,
    )
    return APIResponse(data=registration_to_response(registration))
