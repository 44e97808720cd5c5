"""Result models for batch queries."""

from __future__ import annotations

import math
from dataclasses import dataclass

from examcustody.state_store import BatchStatus


def percentage(numerator: int, denominator: int) -> float:
    """Percentage rounded half-up to 2 decimals; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    return math.floor(numerator / denominator * 100 * 100 + 0.5) / 100


@dataclass
class BatchCounts:
    """Live script counts for a batch."""

    collected: int
    graded: int


@dataclass
class BatchStatistics:
    """Submission and grading progress of one batch."""

    batch_id: str
    total_registered: int
    scripts_submitted: int
    scripts_collected: int
    scripts_graded: int
    pending: int
    submission_rate: float
    grading_progress: float
    status: BatchStatus
