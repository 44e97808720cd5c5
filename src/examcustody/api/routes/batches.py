"""Batch lifecycle and query endpoints."""

from fastapi import APIRouter, Query

from examcustody.api.dependencies import EngineDep
from examcustody.api.models import (
    APIResponse,
    AssignRequest,
    BatchResponse,
    BatchStatisticsResponse,
    GradeRequest,
    MovementResponse,
    OverrideRequest,
    ScriptResponse,
    SealRequest,
    StatusUpdateRequest,
    batch_to_response,
    movement_to_response,
    script_to_response,
)
from examcustody.ledger import DEFAULT_HISTORY_LIMIT
from examcustody.state_store import BatchStatus

router = APIRouter(prefix="/batches", tags=["batches"])


@router.get("", response_model=APIResponse[list[BatchResponse]])
def list_batches(
    engine: EngineDep,
    course_id: str | None = Query(default=None, description="Filter by course ID"),
    exam_entry_id: str | None = Query(default=None, description="Filter by exam entry ID"),
    status: BatchStatus | None = Query(default=None, description="Filter by status"),
    lecturer_id: str | None = Query(default=None, description="Filter by assigned lecturer"),
) -> APIResponse[list[BatchResponse]]:
    """List batches with optional filters."""
    batches = engine.registry.list_batches(
        course_id=course_id,
        exam_entry_id=exam_entry_id,
        status=status,
        assigned_lecturer_id=lecturer_id,
    )
    return APIResponse(data=[batch_to_response(b) for b in batches])


@router.get("/pending-assignment", response_model=APIResponse[list[BatchResponse]])
def pending_assignment(engine: EngineDep) -> APIResponse[list[BatchResponse]]:
    """Sealed batches waiting for a lecturer."""
    return APIResponse(data=[batch_to_response(b) for b in engine.registry.pending_assignment()])


@router.get("/lecturers/{lecturer_id}", response_model=APIResponse[list[BatchResponse]])
def batches_for_lecturer(
    lecturer_id: str,
    engine: EngineDep,
    status: BatchStatus | None = Query(default=None, description="Filter by status"),
) -> APIResponse[list[BatchResponse]]:
    """Batches assigned to a lecturer."""
    batches = engine.registry.batches_for_lecturer(lecturer_id, status=status)
    return APIResponse(data=[batch_to_response(b) for b in batches])


@router.post("/scripts/{script_id}/grade", response_model=APIResponse[ScriptResponse])
def grade_script(
    script_id: str, request: GradeRequest, engine: EngineDep
) -> APIResponse[ScriptResponse]:
    """Mark a script as graded by the lecturer holding it."""
    script = engine.registry.record_grading(script_id, request.lecturer_id)
    return APIResponse(data=script_to_response(script))


@router.get("/{batch_id}", response_model=APIResponse[BatchResponse])
def get_batch(batch_id: str, engine: EngineDep) -> APIResponse[BatchResponse]:
    """Get a batch by ID."""
    return APIResponse(data=batch_to_response(engine.registry.get_batch(batch_id)))


@router.get("/{batch_id}/statistics", response_model=APIResponse[BatchStatisticsResponse])
def batch_statistics(batch_id: str, engine: EngineDep) -> APIResponse[BatchStatisticsResponse]:
    """Submission and grading progress of a batch."""
    stats = engine.registry.statistics(batch_id)
    return APIResponse(data=BatchStatisticsResponse.model_validate(stats))


@router.get("/{batch_id}/history", response_model=APIResponse[list[MovementResponse]])
def batch_history(
    batch_id: str,
    engine: EngineDep,
    limit: int = Query(default=DEFAULT_HISTORY_LIMIT, ge=1, le=1000),
) -> APIResponse[list[MovementResponse]]:
    """Chain-of-custody entries for a batch, most recent first."""
    movements = engine.submissions.batch_history(batch_id, limit=limit)
    return APIResponse(data=[movement_to_response(m) for m in movements])


@router.post("/{batch_id}/seal", response_model=APIResponse[BatchResponse])
def seal_batch(
    batch_id: str, request: SealRequest, engine: EngineDep
) -> APIResponse[BatchResponse]:
    """Seal a batch for dispatch."""
    batch = engine.registry.seal(batch_id, request.sealed_by, notes=request.notes)
    return APIResponse(data=batch_to_response(batch))


@router.post("/{batch_id}/assign", response_model=APIResponse[BatchResponse])
def assign_batch(
    batch_id: str, request: AssignRequest, engine: EngineDep
) -> APIResponse[BatchResponse]:
    """Hand a batch to a grading lecturer."""
    batch = engine.registry.assign_to_lecturer(batch_id, request.lecturer_id, request.assigned_by)
    return APIResponse(data=batch_to_response(batch))


@router.post("/{batch_id}/status", response_model=APIResponse[BatchResponse])
def update_batch_status(
    batch_id: str, request: StatusUpdateRequest, engine: EngineDep
) -> APIResponse[BatchResponse]:
    """Advance a batch through grading."""
    batch = engine.registry.update_status(batch_id, request.status, notes=request.notes)
    return APIResponse(data=batch_to_response(batch))


@router.post("/{batch_id}/override", response_model=APIResponse[BatchResponse])
def override_batch_status(
    batch_id: str, request: OverrideRequest, engine: EngineDep
) -> APIResponse[BatchResponse]:
    """Force a batch status with an audited reason."""
    batch = engine.registry.override_status(
        batch_id, request.status, request.actor_id, request.reason
    )
    return APIResponse(data=batch_to_response(batch))


@router.post("/{batch_id}/recompute", response_model=APIResponse[BatchResponse])
def recompute_counts(batch_id: str, engine: EngineDep) -> APIResponse[BatchResponse]:
    """Recompute batch counters from the scripts table."""
    return APIResponse(data=batch_to_response(engine.registry.recompute_counts(batch_id)))
