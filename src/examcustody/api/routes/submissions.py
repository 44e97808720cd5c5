"""Script submission endpoints used by invigilator scanners."""

from fastapi import APIRouter, status

from examcustody.api.dependencies import EngineDep
from examcustody.api.models import (
    APIResponse,
    BulkSubmissionResponse,
    BulkSubmitRequest,
    ScanRequest,
    ScanResultResponse,
    ScriptResponse,
    SubmissionResultResponse,
    SubmitRequest,
    VerifyRequest,
    script_to_response,
)
from examcustody.submissions import SubmissionRequest

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post(
    "",
    response_model=APIResponse[SubmissionResultResponse],
    status_code=status.HTTP_201_CREATED,
)
def submit_script(
    request: SubmitRequest, engine: EngineDep
) -> APIResponse[SubmissionResultResponse]:
    """Collect a script from a scanned student."""
    result = engine.submissions.submit(
        request.student_token,
        request.invigilator_id,
        exam_entry_id_hint=request.exam_entry_id,
        location=request.location,
        notes=request.notes,
    )
    return APIResponse(data=SubmissionResultResponse.model_validate(result))


@router.post("/bulk", response_model=APIResponse[BulkSubmissionResponse])
def bulk_submit(
    request: BulkSubmitRequest, engine: EngineDep
) -> APIResponse[BulkSubmissionResponse]:
    """Submit a queue of scans; failures are reported per item."""
    submissions = [
        SubmissionRequest(
            student_token=item.student_token,
            exam_entry_id=item.exam_entry_id,
            location=item.location,
            notes=item.notes,
        )
        for item in request.submissions
    ]
    result = engine.submissions.bulk_submit(submissions, request.invigilator_id)
    return APIResponse(data=BulkSubmissionResponse.model_validate(result))


@router.post("/scan", response_model=APIResponse[ScanResultResponse])
def scan_student(request: ScanRequest, engine: EngineDep) -> APIResponse[ScanResultResponse]:
    """Preview a scanned student and today's exams."""
    result = engine.submissions.scan_student(request.student_token, today=request.today)
    return APIResponse(data=ScanResultResponse.model_validate(result))


@router.post("/scripts/{script_id}/verify", response_model=APIResponse[ScriptResponse])
def verify_script(
    script_id: str, request: VerifyRequest, engine: EngineDep
) -> APIResponse[ScriptResponse]:
    """Record a secondary check of a collected script."""
    script = engine.submissions.verify(script_id, request.verified_by)
    return APIResponse(data=script_to_response(script))
