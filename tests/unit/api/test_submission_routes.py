"""Unit tests for submission routes."""

import base64
import json
from datetime import date

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from examcustody.engine import CustodyEngine


@pytest.fixture
def exam(engine: CustodyEngine, seed):
    """An enrolled exam with two students."""
    exam = seed(students=2)
    engine.enroller.enroll_for_exam_entry(exam.exam_entry_id)
    return exam


@pytest.fixture
def tokens(engine: CustodyEngine, exam) -> dict[str, str]:
    """Student tokens keyed by student id."""
    return {
        r.student_id: r.student_token
        for r in engine.enroller.registrations_for_exam_entry(exam.exam_entry_id)
    }


@pytest.mark.unit
class TestSubmitScript:
    """Tests for POST /api/v1/submissions."""

    def test_submit(self, client: TestClient, exam, tokens) -> None:
        """Submitting returns 201 with batch progress."""
        response = client.post(
            "/api/v1/submissions",
            json={
                "student_token": tokens[exam.student_ids[0]],
                "invigilator_id": exam.invigilator_id,
                "exam_entry_id": exam.exam_entry_id,
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert data["course_code"] == exam.course_code
        assert data["batch_stats"] == {
            "total_registered": 2,
            "scripts_submitted": 1,
            "remaining": 1,
        }

    def test_submit_twice_conflicts(self, client: TestClient, exam, tokens) -> None:
        """Second submission returns 409."""
        body = {"student_token": tokens[exam.student_ids[0]], "invigilator_id": "inv"}
        client.post("/api/v1/submissions", json=body)

        response = client.post("/api/v1/submissions", json=body)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert "already submitted" in response.json()["error"]

    def test_submit_tampered_token(self, client: TestClient, exam, tokens) -> None:
        """Tampered tokens return 400."""
        payload = json.loads(base64.b64decode(tokens[exam.student_ids[0]]))
        payload["studentId"] = exam.student_ids[1]
        forged = base64.b64encode(json.dumps(payload).encode()).decode()

        response = client.post(
            "/api/v1/submissions", json={"student_token": forged, "invigilator_id": "inv"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["data"] is None

    def test_submit_not_registered(
        self, client: TestClient, engine: CustodyEngine, exam
    ) -> None:
        """Valid token for an unregistered student returns 422."""
        token = engine.codec.encode_student_token("stranger", exam.exam_entry_id, exam.course_id)

        response = client.post(
            "/api/v1/submissions", json={"student_token": token, "invigilator_id": "inv"}
        )

        assert response.status_code == 422
        assert "not registered" in response.json()["error"]


@pytest.mark.unit
class TestBulkSubmit:
    """Tests for POST /api/v1/submissions/bulk."""

    def test_bulk_submit(self, client: TestClient, exam, tokens) -> None:
        """Per-item results are reported in order."""
        response = client.post(
            "/api/v1/submissions/bulk",
            json={
                "invigilator_id": exam.invigilator_id,
                "submissions": [
                    {"student_token": tokens[exam.student_ids[0]]},
                    {"student_token": "bogus"},
                    {"student_token": tokens[exam.student_ids[1]]},
                ],
            },
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["success"] is True
        assert data["total_submissions"] == 3
        assert data["success_count"] == 2
        assert data["failure_count"] == 1
        assert [r["success"] for r in data["results"]] == [True, False, True]


@pytest.mark.unit
class TestScanStudent:
    """Tests for POST /api/v1/submissions/scan."""

    def test_scan(self, client: TestClient, exam, tokens) -> None:
        """Scanning lists today's exams without submitting."""
        response = client.post(
            "/api/v1/submissions/scan",
            json={"student_token": tokens[exam.student_ids[0]], "today": date.today().isoformat()},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["success"] is True
        assert data["student_info"]["student_id"] == exam.student_ids[0]
        assert len(data["active_exams"]) == 1
        assert data["can_submit"] is False

    def test_scan_bad_token(self, client: TestClient) -> None:
        """Bad tokens are reported in the body, not as an error status."""
        response = client.post("/api/v1/submissions/scan", json={"student_token": "nope"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["success"] is False


@pytest.mark.unit
class TestVerifyScript:
    """Tests for POST /api/v1/submissions/scripts/{id}/verify."""

    def test_verify(self, client: TestClient, engine: CustodyEngine, exam, tokens) -> None:
        """Verifying a collected script marks it VERIFIED."""
        result = engine.submissions.submit(tokens[exam.student_ids[0]], exam.invigilator_id)

        response = client.post(
            f"/api/v1/submissions/scripts/{result.script_id}/verify",
            json={"verified_by": "checker"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["status"] == "VERIFIED"
        assert data["current_holder_id"] == "checker"

    def test_verify_missing_script(self, client: TestClient) -> None:
        """Unknown script returns 404."""
        response = client.post(
            "/api/v1/submissions/scripts/missing/verify", json={"verified_by": "checker"}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
