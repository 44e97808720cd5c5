"""Batches - sealed bundles of scripts and their grading lifecycle."""

from examcustody.batches.exceptions import BatchTransitionError, ScriptTransitionError
from examcustody.batches.models import BatchCounts, BatchStatistics, percentage
from examcustody.batches.registry import (
    ASSIGNABLE_STATUSES,
    GRADING_TRANSITIONS,
    BatchRegistry,
)

__all__ = [
    "ASSIGNABLE_STATUSES",
    "GRADING_TRANSITIONS",
    "BatchCounts",
    "BatchRegistry",
    "BatchStatistics",
    "BatchTransitionError",
    "ScriptTransitionError",
    "percentage",
]
