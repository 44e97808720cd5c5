"""IdentifierCodec - tamper-evident tokens for scanners.

A token is base64-encoded JSON carrying its own HMAC, so a scanner-side
service can reject a forged or edited token without a database lookup::

    {"type": "STUDENT", "studentId": ..., "examEntryId": ..., "courseId": ...,
     "timestamp": "2026-05-04T08:30:00.000Z", "securityHash": "<hex>"}

The JSON keys are an external format already printed on admission slips and
must not change. Rotating the secret invalidates every issued token.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime
from typing import Any

from examcustody.identifiers.exceptions import (
    InvalidTokenFormatError,
    TamperDetectedError,
    TokenExpiredError,
    TokenTypeMismatchError,
)
from examcustody.identifiers.models import BatchToken, StudentToken, TokenPayload, TokenType

logger = logging.getLogger(__name__)

_STUDENT_FIELDS = ("studentId", "examEntryId", "courseId", "timestamp", "securityHash")
_BATCH_FIELDS = ("batchId", "courseId", "courseCode", "examEntryId", "timestamp", "securityHash")


def format_timestamp(moment: datetime | None = None) -> str:
    """Render a UTC instant as ISO-8601 with milliseconds and a Z suffix."""
    moment = moment or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_expired(timestamp: str, max_age_hours: float = 24, now: datetime | None = None) -> bool:
    """Check whether a token timestamp is older than ``max_age_hours``.

    Args:
        timestamp: ISO-8601 timestamp taken from a decoded token.
        max_age_hours: Maximum accepted age.
        now: Reference time (defaults to the current UTC time).

    Returns:
        True if the token is older than the limit.

    Raises:
        InvalidTokenFormatError: If the timestamp cannot be parsed.
    """
    try:
        issued = datetime.fromisoformat(timestamp)
    except ValueError as e:
        raise InvalidTokenFormatError(f"Invalid token timestamp '{timestamp}'") from e
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    age_hours = (now - issued).total_seconds() / 3600
    return age_hours > max_age_hours


class IdentifierCodec:
    """Encodes and verifies student and batch tokens.

    Stateless apart from the secret key. ``max_age_hours`` is opt-in: when
    unset, old tokens are accepted.
    """

    def __init__(self, secret_key: str, max_age_hours: float | None = None) -> None:
        """Initialize the codec.

        Args:
            secret_key: HMAC key shared by every process that verifies tokens.
            max_age_hours: Reject tokens older than this many hours (optional).
        """
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._key = secret_key.encode("utf-8")
        self.max_age_hours = max_age_hours

    # --- Encoding ---

    def encode_student_token(
        self,
        student_id: str,
        exam_entry_id: str,
        course_id: str,
        timestamp: str | None = None,
    ) -> str:
        """Mint a student token for one exam registration."""
        timestamp = timestamp or format_timestamp()
        payload = {
            "type": TokenType.STUDENT.value,
            "studentId": student_id,
            "examEntryId": exam_entry_id,
            "courseId": course_id,
            "timestamp": timestamp,
            "securityHash": self.student_hash(student_id, exam_entry_id, timestamp),
        }
        return _encode(payload)

    def encode_batch_token(
        self,
        batch_id: str,
        course_id: str,
        course_code: str,
        exam_entry_id: str,
        timestamp: str | None = None,
    ) -> str:
        """Mint a batch token. ``batch_id`` must be the id the batch is stored under."""
        timestamp = timestamp or format_timestamp()
        payload = {
            "type": TokenType.BATCH.value,
            "batchId": batch_id,
            "courseId": course_id,
            "courseCode": course_code,
            "examEntryId": exam_entry_id,
            "timestamp": timestamp,
            "securityHash": self.batch_hash(batch_id, course_id, timestamp),
        }
        return _encode(payload)

    def student_hash(self, student_id: str, exam_entry_id: str, timestamp: str) -> str:
        return self._hash(f"{student_id}-{exam_entry_id}-{timestamp}")

    def batch_hash(self, batch_id: str, course_id: str, timestamp: str) -> str:
        return self._hash(f"{batch_id}-{course_id}-{timestamp}")

    # --- Decoding ---

    def decode_and_verify(self, token: str, expected_type: TokenType) -> TokenPayload:
        """Decode a token and verify its security hash.

        Args:
            token: The scanned token string.
            expected_type: Token type the caller is prepared to handle.

        Returns:
            StudentToken or BatchToken matching ``expected_type``.

        Raises:
            InvalidTokenFormatError: If the token cannot be parsed.
            TokenTypeMismatchError: If the token is of another type.
            TamperDetectedError: If the recomputed hash differs.
            TokenExpiredError: If ``max_age_hours`` is set and the token is too old.
        """
        data = _decode(token)

        token_type = data.get("type")
        if token_type != expected_type.value:
            raise TokenTypeMismatchError(
                f"Invalid QR code type. Expected {expected_type.value} QR code."
            )

        payload: TokenPayload
        if expected_type is TokenType.STUDENT:
            fields = _require_fields(data, _STUDENT_FIELDS)
            payload = StudentToken(
                student_id=fields["studentId"],
                exam_entry_id=fields["examEntryId"],
                course_id=fields["courseId"],
                timestamp=fields["timestamp"],
                security_hash=fields["securityHash"],
            )
            expected_hash = self.student_hash(
                payload.student_id, payload.exam_entry_id, payload.timestamp
            )
        else:
            fields = _require_fields(data, _BATCH_FIELDS)
            payload = BatchToken(
                batch_id=fields["batchId"],
                course_id=fields["courseId"],
                course_code=fields["courseCode"],
                exam_entry_id=fields["examEntryId"],
                timestamp=fields["timestamp"],
                security_hash=fields["securityHash"],
            )
            expected_hash = self.batch_hash(payload.batch_id, payload.course_id, payload.timestamp)

        supplied_hash = payload.security_hash.encode("utf-8", "surrogatepass")
        if not hmac.compare_digest(expected_hash.encode("ascii"), supplied_hash):
            logger.warning("Rejected %s token with mismatching hash", expected_type.value)
            raise TamperDetectedError(
                "QR code security validation failed. Possible tampering detected."
            )

        if self.max_age_hours is not None and is_expired(payload.timestamp, self.max_age_hours):
            raise TokenExpiredError(
                f"QR code expired: issued {payload.timestamp}, "
                f"maximum age {self.max_age_hours:g} hours."
            )

        return payload

    def decode_student_token(self, token: str) -> StudentToken:
        """Decode and verify a student token."""
        payload = self.decode_and_verify(token, TokenType.STUDENT)
        assert isinstance(payload, StudentToken)
        return payload

    def decode_batch_token(self, token: str) -> BatchToken:
        """Decode and verify a batch token."""
        payload = self.decode_and_verify(token, TokenType.BATCH)
        assert isinstance(payload, BatchToken)
        return payload

    def _hash(self, message: str) -> str:
        data = message.encode("utf-8", "surrogatepass")
        return hmac.new(self._key, data, hashlib.sha256).hexdigest()


def _encode(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def _decode(token: str) -> dict[str, Any]:
    try:
        raw = base64.b64decode(token.strip(), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError, AttributeError) as e:
        raise InvalidTokenFormatError(f"Failed to decode QR code: {e}") from e
    if not isinstance(data, dict):
        raise InvalidTokenFormatError("Failed to decode QR code: payload is not an object")
    return data


def _require_fields(data: dict[str, Any], names: tuple[str, ...]) -> dict[str, str]:
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise InvalidTokenFormatError(f"QR code is missing fields: {', '.join(missing)}")
    return {name: str(data[name]) for name in names}
