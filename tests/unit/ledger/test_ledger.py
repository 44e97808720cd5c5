"""Unit tests for CustodyLedger."""

from datetime import timedelta

import pytest

from examcustody.engine import CustodyEngine
from examcustody.state_store import MovementType, ScriptMovement, utcnow


@pytest.fixture
def batch_id(engine: CustodyEngine, seed) -> str:
    """An enrolled batch to attach entries to."""
    exam = seed(students=2)
    return engine.enroller.enroll_for_exam_entry(exam.exam_entry_id).batch_script_id


@pytest.mark.unit
class TestAppend:
    """Tests for append."""

    def test_append_returns_increasing_ids(self, engine: CustodyEngine, batch_id: str) -> None:
        """Entry ids increase with each append."""
        first = engine.ledger.append(
            MovementType.BATCH_SEALED, to_user_id="user-1", batch_script_id=batch_id
        )
        second = engine.ledger.append(
            MovementType.BATCH_TRANSFERRED, to_user_id="user-2", batch_script_id=batch_id
        )
        assert second > first

    def test_append_stores_fields(self, engine: CustodyEngine, batch_id: str) -> None:
        """All fields are stored as given."""
        engine.ledger.append(
            MovementType.BATCH_SEALED,
            to_user_id="user-1",
            batch_script_id=batch_id,
            location="Exam Venue",
            notes="Batch sealed with 0 scripts",
        )
        [entry] = engine.ledger.history_for(batch_id)

        assert entry.movement_type == MovementType.BATCH_SEALED
        assert entry.to_user_id == "user-1"
        assert entry.script_id is None
        assert entry.location == "Exam Venue"
        assert entry.notes == "Batch sealed with 0 scripts"

    def test_append_without_batch_or_script(self, engine: CustodyEngine) -> None:
        """No business rules: an unattached entry is accepted."""
        entry_id = engine.ledger.append(MovementType.STATUS_OVERRIDDEN, to_user_id="admin")
        assert entry_id > 0


@pytest.mark.unit
class TestHistoryFor:
    """Tests for history_for."""

    def test_most_recent_first(self, engine: CustodyEngine, batch_id: str) -> None:
        """History is ordered newest first."""
        ids = [
            engine.ledger.append(
                MovementType.GRADING_STARTED, to_user_id=f"user-{i}", batch_script_id=batch_id
            )
            for i in range(3)
        ]
        history = engine.ledger.history_for(batch_id)
        assert [m.id for m in history] == list(reversed(ids))

    def test_limit(self, engine: CustodyEngine, batch_id: str) -> None:
        """limit caps the number of entries."""
        for i in range(5):
            engine.ledger.append(
                MovementType.GRADING_STARTED, to_user_id=f"user-{i}", batch_script_id=batch_id
            )
        assert len(engine.ledger.history_for(batch_id, limit=2)) == 2

    def test_other_batches_excluded(self, engine: CustodyEngine, seed, batch_id: str) -> None:
        """Only the requested batch's entries are returned."""
        other = seed(students=1)
        other_batch = engine.enroller.enroll_for_exam_entry(other.exam_entry_id).batch_script_id
        engine.ledger.append(
            MovementType.BATCH_SEALED, to_user_id="user-1", batch_script_id=other_batch
        )
        assert engine.ledger.history_for(batch_id) == []

    def test_unknown_batch_is_empty(self, engine: CustodyEngine) -> None:
        """Unknown batch has no history."""
        assert engine.ledger.history_for("missing") == []


@pytest.mark.unit
class TestMonotonicTimestamps:
    """Entries for one batch never go back in time."""

    def test_new_entry_not_before_latest(self, engine: CustodyEngine, batch_id: str) -> None:
        """A clock running behind the latest entry reuses its timestamp."""
        future = utcnow() + timedelta(hours=1)
        session = engine.db.get_session()
        session.add(
            ScriptMovement(
                type=MovementType.BATCH_SEALED.value,
                to_user_id="user-1",
                timestamp=future,
                batch_script_id=batch_id,
            )
        )
        session.commit()
        session.close()

        engine.ledger.append(
            MovementType.BATCH_TRANSFERRED, to_user_id="user-2", batch_script_id=batch_id
        )
        latest, earlier = engine.ledger.history_for(batch_id)

        assert latest.movement_type == MovementType.BATCH_TRANSFERRED
        assert latest.timestamp == future
        assert earlier.timestamp == future

    def test_timestamps_non_decreasing(self, engine: CustodyEngine, batch_id: str) -> None:
        """A new entry never precedes the batch's latest entry."""
        for i in range(4):
            engine.ledger.append(
                MovementType.GRADING_STARTED, to_user_id=f"user-{i}", batch_script_id=batch_id
            )
        timestamps = [m.timestamp for m in reversed(engine.ledger.history_for(batch_id))]
        assert timestamps == sorted(timestamps)


@pytest.mark.unit
class TestHistoryForScript:
    def test_filters_by_script(self, engine: CustodyEngine, seed) -> None:
        """Script history only holds that script's entries."""
        exam = seed(students=2)
        engine.enroller.enroll_for_exam_entry(exam.exam_entry_id)
        tokens = [
            r.student_token
            for r in engine.enroller.registrations_for_exam_entry(exam.exam_entry_id)
        ]
        result = engine.submissions.submit(tokens[0], exam.invigilator_id)
        engine.submissions.submit(tokens[1], exam.invigilator_id)

        history = engine.ledger.history_for_script(result.script_id)

        assert len(history) == 1
        assert history[0].movement_type == MovementType.COLLECTED_FROM_STUDENT
        assert history[0].script_id == result.script_id
