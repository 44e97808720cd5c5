"""Identifiers - tamper-evident student and batch tokens."""

from examcustody.identifiers.codec import IdentifierCodec, format_timestamp, is_expired
from examcustody.identifiers.exceptions import (
    IdentifierError,
    InvalidTokenFormatError,
    TamperDetectedError,
    TokenExpiredError,
    TokenTypeMismatchError,
)
from examcustody.identifiers.models import BatchToken, StudentToken, TokenPayload, TokenType

__all__ = [
    "BatchToken",
    "IdentifierCodec",
    "IdentifierError",
    "InvalidTokenFormatError",
    "StudentToken",
    "TamperDetectedError",
    "TokenExpiredError",
    "TokenPayload",
    "TokenType",
    "TokenTypeMismatchError",
    "format_timestamp",
    "is_expired",
]
