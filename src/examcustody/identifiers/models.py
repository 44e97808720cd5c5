"""Decoded identifier payloads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TokenType(StrEnum):
    """Kinds of scannable identifiers."""

    STUDENT = "STUDENT"
    BATCH = "BATCH"


@dataclass(frozen=True)
class StudentToken:
    """Payload of a student exam token.

    Attributes:
        student_id: The student the token was issued to.
        exam_entry_id: The exam sitting the token admits to.
        course_id: Course of the exam entry.
        timestamp: ISO-8601 issue time, part of the signed message.
        security_hash: Hex HMAC-SHA-256 over student, entry and timestamp.
    """

    student_id: str
    exam_entry_id: str
    course_id: str
    timestamp: str
    security_hash: str

    @property
    def type(self) -> TokenType:
        return TokenType.STUDENT


@dataclass(frozen=True)
class BatchToken:
    """Payload of a batch token attached to a sealed script bundle."""

    batch_id: str
    course_id: str
    course_code: str
    exam_entry_id: str
    timestamp: str
    security_hash: str

    @property
    def type(self) -> TokenType:
        return TokenType.BATCH


TokenPayload = StudentToken | BatchToken
