"""Unit tests for role profile decoding."""

import json

import pytest

from examcustody.catalog import AdminProfile, LecturerProfile, StudentProfile, parse_profile
from examcustody.state_store import InvalidProfileError


@pytest.mark.unit
class TestParseProfile:
    """Tests for parse_profile."""

    def test_student_profile(self) -> None:
        """Student profiles decode index number, program and level."""
        profile = parse_profile(
            "STUDENT", '{"indexNumber": "UG-0042", "programId": "PROG-A", "level": 200}'
        )
        assert profile == StudentProfile(index_number="UG-0042", program_id="PROG-A", level=200)

    def test_student_without_program(self) -> None:
        """programId and level are optional."""
        profile = parse_profile("STUDENT", '{"indexNumber": 7}')
        assert profile == StudentProfile(index_number="7")

    def test_student_requires_index_number(self) -> None:
        """A student profile without indexNumber is rejected."""
        with pytest.raises(InvalidProfileError, match="indexNumber"):
            parse_profile("STUDENT", '{"programId": "PROG-A"}')

    @pytest.mark.parametrize("level", ["Level 100", [100], {"n": 1}])
    def test_student_level_must_be_numeric(self, level) -> None:
        """A level that isn't a number is reported as an invalid profile."""
        raw = json.dumps({"indexNumber": "UG-1", "level": level})
        with pytest.raises(InvalidProfileError, match="level"):
            parse_profile("STUDENT", raw)

    def test_numeric_string_level_accepted(self) -> None:
        """Levels stored as numeric strings are converted."""
        profile = parse_profile("STUDENT", '{"indexNumber": "UG-1", "level": "300"}')
        assert profile.level == 300

    def test_student_with_no_profile(self) -> None:
        """A missing student profile is rejected."""
        with pytest.raises(InvalidProfileError):
            parse_profile("STUDENT", None)

    def test_lecturer_profile(self) -> None:
        """Lecturer profiles decode staff number and department."""
        profile = parse_profile("LECTURER", '{"staffNumber": "STF-9", "departmentId": "CS"}')
        assert profile == LecturerProfile(staff_number="STF-9", department_id="CS")

    def test_lecturer_with_empty_profile(self) -> None:
        """Lecturer fields are optional."""
        assert parse_profile("LECTURER", None) == LecturerProfile()

    @pytest.mark.parametrize("role", ["INVIGILATOR", "EXAMS_OFFICER", "ADMIN"])
    def test_staff_roles_get_permissions(self, role: str) -> None:
        """Other roles decode to a permissions profile."""
        profile = parse_profile(role, '{"permissions": ["seal", "assign"]}')
        assert profile == AdminProfile(permissions=("seal", "assign"))

    def test_permissions_must_be_list(self) -> None:
        """A non-list permissions value is rejected."""
        with pytest.raises(InvalidProfileError):
            parse_profile("ADMIN", '{"permissions": "everything"}')

    def test_unknown_role(self) -> None:
        """Unknown roles are rejected."""
        with pytest.raises(InvalidProfileError, match="JANITOR"):
            parse_profile("JANITOR", "{}")

    def test_invalid_json(self) -> None:
        """Unparseable JSON is rejected."""
        with pytest.raises(InvalidProfileError):
            parse_profile("LECTURER", "{not json")

    def test_non_object_json(self) -> None:
        """A JSON array is not a profile."""
        with pytest.raises(InvalidProfileError):
            parse_profile("LECTURER", "[1, 2]")
