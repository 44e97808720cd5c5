"""Unit tests for State Store models."""

from datetime import datetime

import pytest

from examcustody.state_store.exceptions import InvalidExamEntryError
from examcustody.state_store.models import (
    COLLECTED_STATUSES,
    BatchScript,
    BatchStatus,
    ExamEntry,
    ExamRegistration,
    MovementType,
    Script,
    ScriptMovement,
    ScriptStatus,
    User,
)


@pytest.mark.unit
class TestStatusEnums:
    """Tests for the status enums."""

    def test_batch_status_values(self) -> None:
        """Batches move through five states."""
        assert [s.value for s in BatchStatus] == [
            "PENDING",
            "SEALED",
            "WITH_LECTURER",
            "GRADING_IN_PROGRESS",
            "GRADING_COMPLETED",
        ]

    def test_script_status_values(self) -> None:
        """Scripts have seven states, starting with COLLECTED."""
        assert len(ScriptStatus) == 7
        assert list(ScriptStatus)[0] == ScriptStatus.COLLECTED

    def test_movement_types_are_strings(self) -> None:
        """MovementType values are strings equal to their names."""
        for movement_type in MovementType:
            assert movement_type.value == movement_type.name

    def test_collected_statuses_cover_every_script_status(self) -> None:
        """A script counts as collected in every status it can hold."""
        assert set(COLLECTED_STATUSES) == {s.value for s in ScriptStatus}


@pytest.mark.unit
class TestExamRegistrationModel:
    """Tests for ExamRegistration model."""

    def test_registration_defaults(self) -> None:
        """New registrations are absent, unsubmitted and get an id."""
        registration = ExamRegistration(
            student_id="stu-1", exam_entry_id="entry-1", course_id="course-1", student_token="t"
        )
        assert registration.id
        assert registration.is_present is False
        assert registration.script_submitted is False
        assert registration.batch_script_id is None
        assert registration.script_id is None

    def test_registration_repr(self) -> None:
        """ExamRegistration has a useful repr."""
        registration = ExamRegistration(
            id="reg-1",
            student_id="stu-1",
            exam_entry_id="entry-1",
            course_id="course-1",
            student_token="t",
        )
        repr_str = repr(registration)
        assert "reg-1" in repr_str
        assert "stu-1" in repr_str


@pytest.mark.unit
class TestBatchScriptModel:
    """Tests for BatchScript model."""

    def test_batch_defaults(self) -> None:
        """New batches start PENDING with zero counters."""
        batch = BatchScript(
            exam_entry_id="entry-1", course_id="course-1", batch_token="t", total_registered=12
        )
        assert batch.id
        assert batch.batch_status == BatchStatus.PENDING
        assert batch.total_registered == 12
        assert batch.scripts_submitted == 0
        assert batch.scripts_collected == 0
        assert batch.scripts_graded == 0
        assert batch.sealed_at is None
        assert batch.assigned_lecturer_id is None

    def test_batch_status_property(self) -> None:
        """batch_status converts the stored value to the enum."""
        batch = BatchScript(
            exam_entry_id="entry-1",
            course_id="course-1",
            batch_token="t",
            total_registered=0,
            status=BatchStatus.SEALED.value,
        )
        assert batch.batch_status == BatchStatus.SEALED

    def test_batch_repr(self) -> None:
        """BatchScript has a useful repr."""
        batch = BatchScript(
            id="batch-1",
            exam_entry_id="entry-1",
            course_id="course-1",
            batch_token="t",
            total_registered=0,
        )
        assert "batch-1" in repr(batch)
        assert "PENDING" in repr(batch)


@pytest.mark.unit
class TestScriptModel:
    """Tests for Script model."""

    def test_script_starts_collected(self) -> None:
        """New scripts are COLLECTED and ungraded."""
        script = Script(
            token="t",
            student_id="stu-1",
            exam_entry_id="entry-1",
            batch_script_id="batch-1",
            current_holder_id="inv-1",
        )
        assert script.script_status == ScriptStatus.COLLECTED
        assert script.current_holder_id == "inv-1"
        assert script.graded_by is None
        assert script.graded_at is None


@pytest.mark.unit
class TestScriptMovementModel:
    """Tests for ScriptMovement model."""

    def test_movement_fields(self) -> None:
        """Batch-level movements carry no script id."""
        moment = datetime(2026, 6, 1, 9, 30)
        movement = ScriptMovement(
            type=MovementType.BATCH_SEALED.value,
            to_user_id="officer-1",
            timestamp=moment,
            location="Exam Venue",
            batch_script_id="batch-1",
        )
        assert movement.movement_type == MovementType.BATCH_SEALED
        assert movement.script_id is None
        assert movement.timestamp == moment

    def test_location_defaults_to_empty(self) -> None:
        """Location is never null."""
        movement = ScriptMovement(
            type=MovementType.GRADING_STARTED.value,
            to_user_id="lecturer-1",
            timestamp=datetime(2026, 6, 1),
        )
        assert movement.location == ""


@pytest.mark.unit
class TestCatalogModels:
    """Tests for catalog model helpers."""

    def test_user_full_name(self) -> None:
        """full_name joins first and last name."""
        user = User(first_name="Ada", last_name="Lovelace", role="LECTURER")
        assert user.full_name == "Ada Lovelace"

    def test_program_id_list(self) -> None:
        """program_ids JSON decodes to a list."""
        entry = ExamEntry(program_ids='["PROG-A", "PROG-B"]')
        assert entry.program_id_list == ["PROG-A", "PROG-B"]

    def test_program_id_list_empty(self) -> None:
        """Empty or missing program_ids means no restriction."""
        assert ExamEntry(program_ids="[]").program_id_list == []
        assert ExamEntry(program_ids="").program_id_list == []

    @pytest.mark.parametrize("raw", ["PROG-A, PROG-B", '{"program": "PROG-A"}'])
    def test_program_id_list_unreadable(self, raw: str) -> None:
        """Program ids that aren't a JSON list raise a custody error naming the entry."""
        entry = ExamEntry(id="entry-7", program_ids=raw)
        with pytest.raises(InvalidExamEntryError, match="entry-7"):
            _ = entry.program_id_list
