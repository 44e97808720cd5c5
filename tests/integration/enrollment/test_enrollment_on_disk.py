"""Integration tests for enrollment against a file-backed database."""

import tempfile
from pathlib import Path

import pytest
from sqlalchemy import func, select

from examcustody.engine import CustodyEngine
from examcustody.state_store import ExamRegistration

SECRET = "integration-secret"


@pytest.fixture
def temp_db_path() -> str:
    """Create a temporary database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        return f.name


@pytest.fixture
def engine(temp_db_path: str) -> CustodyEngine:
    """Create a CustodyEngine on a temporary file."""
    e = CustodyEngine(temp_db_path, SECRET)
    yield e
    e.close()
    # Cleanup
    Path(temp_db_path).unlink(missing_ok=True)
    Path(f"{temp_db_path}-wal").unlink(missing_ok=True)
    Path(f"{temp_db_path}-shm").unlink(missing_ok=True)


@pytest.mark.integration
class TestLargeEnrollment:
    """Enrollment of cohorts larger than one insert chunk."""

    def test_large_cohort(self, engine: CustodyEngine, seed_into) -> None:
        """Every eligible student is registered exactly once."""
        exam = seed_into(engine.db, students=1200)

        result = engine.enroller.enroll_for_exam_entry(exam.exam_entry_id)

        assert result.registrations_created == 1200
        session = engine.db.get_session()
        try:
            count = session.scalar(
                select(func.count(func.distinct(ExamRegistration.student_id))).where(
                    ExamRegistration.exam_entry_id == exam.exam_entry_id
                )
            )
            unlinked = session.scalar(
                select(func.count()).select_from(ExamRegistration).where(
                    ExamRegistration.batch_script_id.is_(None)
                )
            )
        finally:
            session.close()
        assert count == 1200
        assert unlinked == 0

    def test_rerun_after_restart(self, temp_db_path: str, engine: CustodyEngine, seed_into) -> None:
        """A fresh engine on the same file sees the earlier run and creates nothing."""
        exam = seed_into(engine.db, students=5)
        first = engine.enroller.enroll_for_exam_entry(exam.exam_entry_id)

        restarted = CustodyEngine(temp_db_path, SECRET)
        try:
            second = restarted.enroller.enroll_for_exam_entry(exam.exam_entry_id)
        finally:
            restarted.close()

        assert second.registrations_created == 0
        assert second.batch_script_id == first.batch_script_id
