"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

import pytest

from examcustody.engine import CustodyEngine
from examcustody.state_store import (
    Course,
    CourseEnrollment,
    Database,
    ExamEntry,
    Timetable,
    User,
    UserRole,
    Venue,
    generate_uuid,
)

TEST_SECRET = "test-secret-key"
SEMESTER_ID = "semester-2026-1"


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


@dataclass
class SeededExam:
    """Ids of the catalog rows created by ``seed_exam``."""

    timetable_id: str
    exam_entry_id: str
    course_id: str
    course_code: str
    venue_id: str | None
    invigilator_id: str
    lecturer_id: str
    student_ids: list[str] = field(default_factory=list)
    other_student_ids: list[str] = field(default_factory=list)


def seed_exam(
    db: Database,
    *,
    students: int = 3,
    program_ids: list[str] | None = None,
    student_program: str = "PROG-A",
    other_program_students: int = 0,
    course_code: str | None = None,
    exam_date: date | None = None,
    timetable_id: str | None = None,
    with_venue: bool = True,
) -> SeededExam:
    """Create a timetable entry with enrolled students, an invigilator and a lecturer.

    Students in ``student_program`` come first (``student_ids``); students in
    a different program are listed in ``other_student_ids``.
    """
    session = db.get_session()
    try:
        if timetable_id is None:
            timetable = Timetable(id=generate_uuid(), name="Finals", semester_id=SEMESTER_ID)
            session.add(timetable)
            timetable_id = timetable.id

        code = course_code or f"CS{generate_uuid()[:4].upper()}"
        course = Course(id=generate_uuid(), code=code, name=f"Course {code}")
        venue = Venue(id=generate_uuid(), name="Main Hall") if with_venue else None
        session.add(course)
        if venue is not None:
            session.add(venue)

        entry = ExamEntry(
            id=generate_uuid(),
            timetable_id=timetable_id,
            course_id=course.id,
            venue_id=venue.id if venue else None,
            semester_id=SEMESTER_ID,
            exam_date=exam_date or date.today(),
            start_time="09:00",
            end_time="12:00",
            program_ids=json.dumps(program_ids or []),
        )
        session.add(entry)

        def add_student(index: int, program: str) -> str:
            student = User(
                id=generate_uuid(),
                first_name=f"Student{index}",
                last_name=f"{code}-Last{index:02d}",
                role=UserRole.STUDENT.value,
                profile=json.dumps(
                    {"indexNumber": f"{code}-{index:04d}", "programId": program, "level": 100}
                ),
            )
            session.add(student)
            session.add(
                CourseEnrollment(
                    id=generate_uuid(),
                    student_id=student.id,
                    course_id=course.id,
                    semester_id=SEMESTER_ID,
                    status="ACTIVE",
                )
            )
            return student.id

        student_ids = [add_student(i, student_program) for i in range(students)]
        other_ids = [
            add_student(students + i, "PROG-OTHER") for i in range(other_program_students)
        ]

        invigilator = User(
            id=generate_uuid(), first_name="Ivy", last_name="Gilator", role="INVIGILATOR"
        )
        lecturer = User(
            id=generate_uuid(),
            first_name="Ada",
            last_name="Lovelace",
            role=UserRole.LECTURER.value,
            profile=json.dumps({"staffNumber": "STF-1"}),
        )
        session.add_all([invigilator, lecturer])
        session.commit()

        return SeededExam(
            timetable_id=timetable_id,
            exam_entry_id=entry.id,
            course_id=course.id,
            course_code=code,
            venue_id=venue.id if venue else None,
            invigilator_id=invigilator.id,
            lecturer_id=lecturer.id,
            student_ids=student_ids,
            other_student_ids=other_ids,
        )
    finally:
        session.close()


# Shared fixtures


@pytest.fixture
def engine() -> CustodyEngine:
    """Create a CustodyEngine on an in-memory database."""
    e = CustodyEngine(":memory:", TEST_SECRET)
    yield e
    e.close()


@pytest.fixture
def seed(engine: CustodyEngine) -> Callable[..., SeededExam]:
    """Factory seeding catalog rows into the in-memory engine."""

    def _seed(**kwargs) -> SeededExam:
        return seed_exam(engine.db, **kwargs)

    return _seed


@pytest.fixture
def seed_into() -> Callable[..., SeededExam]:
    """Factory seeding catalog rows into any Database."""
    return seed_exam
