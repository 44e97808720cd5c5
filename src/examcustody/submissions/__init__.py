"""Submissions - collecting scripts from students."""

from examcustody.submissions.exceptions import (
    AlreadySubmittedError,
    BatchNotProvisionedError,
    NotRegisteredError,
    SubmissionError,
)
from examcustody.submissions.models import (
    ActiveExam,
    BatchProgress,
    BulkItemResult,
    BulkSubmissionResult,
    ScanResult,
    StudentInfo,
    SubmissionRequest,
    SubmissionResult,
    SubmissionStatus,
)
from examcustody.submissions.workflow import SubmissionWorkflow

__all__ = [
    "ActiveExam",
    "AlreadySubmittedError",
    "BatchNotProvisionedError",
    "BatchProgress",
    "BulkItemResult",
    "BulkSubmissionResult",
    "NotRegisteredError",
    "ScanResult",
    "StudentInfo",
    "SubmissionError",
    "SubmissionRequest",
    "SubmissionResult",
    "SubmissionStatus",
    "SubmissionWorkflow",
]
