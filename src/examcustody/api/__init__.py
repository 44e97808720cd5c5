"""REST API for examcustody."""

from examcustody.api.app import app, create_app
from examcustody.api.models import (
    APIResponse,
    BatchResponse,
    RegistrationResponse,
    SubmissionResultResponse,
)

__all__ = [
    "APIResponse",
    "BatchResponse",
    "RegistrationResponse",
    "SubmissionResultResponse",
    "app",
    "create_app",
]
