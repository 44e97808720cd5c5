"""Typed role profiles decoded from the users.profile JSON column."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from examcustody.state_store import InvalidProfileError, UserRole


@dataclass(frozen=True)
class StudentProfile:
    index_number: str
    program_id: str | None = None
    level: int | None = None


@dataclass(frozen=True)
class LecturerProfile:
    staff_number: str | None = None
    department_id: str | None = None


@dataclass(frozen=True)
class AdminProfile:
    """Profile for invigilators, exams officers and administrators."""

    permissions: tuple[str, ...] = field(default_factory=tuple)


RoleProfile = StudentProfile | LecturerProfile | AdminProfile


def parse_profile(role: str, raw: str | None) -> RoleProfile:
    """Decode a stored profile for the given role.

    Args:
        role: The user's role value.
        raw: JSON text from the profile column (may be None).

    Returns:
        The profile dataclass matching the role.

    Raises:
        InvalidProfileError: If the role is unknown or the JSON is unusable.
    """
    try:
        user_role = UserRole(role)
    except ValueError as e:
        raise InvalidProfileError(f"Unknown user role '{role}'") from e

    data = _load(raw)

    match user_role:
        case UserRole.STUDENT:
            index_number = data.get("indexNumber")
            if not index_number:
                raise InvalidProfileError("Student profile is missing indexNumber")
            return StudentProfile(
                index_number=str(index_number),
                program_id=_optional_str(data.get("programId")),
                level=_level(data.get("level")),
            )
        case UserRole.LECTURER:
            return LecturerProfile(
                staff_number=_optional_str(data.get("staffNumber")),
                department_id=_optional_str(data.get("departmentId")),
            )
        case _:
            permissions = data.get("permissions") or []
            if not isinstance(permissions, list):
                raise InvalidProfileError("Profile permissions must be a list")
            return AdminProfile(permissions=tuple(str(p) for p in permissions))


def _load(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidProfileError(f"Profile is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidProfileError("Profile must be a JSON object")
    return data


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _level(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidProfileError(f"Student level must be a number, got {value!r}") from e
