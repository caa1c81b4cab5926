"""Shared test fixtures — in-memory store, seeded reference data, incident manager."""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from examdesk.engine.incident_manager import IncidentManager
from examdesk.models import (
    Base,
    Course,
    Department,
    Exam,
    Faculty,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    Institution,
    Script,
    User,
    Venue,
)
from examdesk.models.base import utcnow


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database shared through a single connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def seed(session_factory) -> dict:
    """Two institutions, each with one exam; a script; a reporter and two staff users."""
    async with session_factory() as session:
        north = Institution(name="Northbridge University", code="NBU")
        south = Institution(name="Southgate Polytechnic", code="SGP")
        session.add_all([north, south])
        await session.flush()

        north_fac = Faculty(name="Engineering", institution_id=north.id)
        south_fac = Faculty(name="Applied Sciences", institution_id=south.id)
        session.add_all([north_fac, south_fac])
        await session.flush()

        north_dep = Department(name="Computer Engineering", faculty_id=north_fac.id)
        south_dep = Department(name="Laboratory Technology", faculty_id=south_fac.id)
        session.add_all([north_dep, south_dep])
        await session.flush()

        north_course = Course(code="CPE301", name="Digital Systems", department_id=north_dep.id)
        south_course = Course(code="LAB210", name="Instrumentation", department_id=south_dep.id)
        hall = Venue(name="Great Hall A", location="North Campus", capacity=300)
        session.add_all([north_course, south_course, hall])
        await session.flush()

        north_exam = Exam(
            title="Digital Systems Final",
            course_id=north_course.id,
            venue_id=hall.id,
            exam_date=datetime(2026, 6, 12, 9, 0),
        )
        south_exam = Exam(title="Instrumentation Midterm", course_id=south_course.id)
        session.add_all([north_exam, south_exam])
        await session.flush()

        script = Script(code="QR-CPE301-0001", student_id=5001, exam_id=north_exam.id)
        reporter = User(first_name="Ama", last_name="Mensah", email="ama@nbu.edu", role="INVIGILATOR")
        officer = User(first_name="Kofi", last_name="Owusu", email="kofi@nbu.edu", role="EXAMS_OFFICER")
        technician = User(first_name="Esi", last_name="Boateng", email="esi@nbu.edu", role="ADMIN")
        session.add_all([script, reporter, officer, technician])
        await session.commit()

        return {
            "north_institution_id": north.id,
            "south_institution_id": south.id,
            "north_exam_id": north_exam.id,
            "south_exam_id": south_exam.id,
            "venue_id": hall.id,
            "script_id": script.id,
            "reporter_id": reporter.id,
            "officer_id": officer.id,
            "technician_id": technician.id,
        }


@pytest.fixture
def manager(session_factory) -> IncidentManager:
    return IncidentManager(db_session_factory=session_factory)


@pytest.fixture
def insert_incident(session_factory, seed):
    """Insert an incident row directly, bypassing the lifecycle rules (for fixtures only)."""

    async def _insert(**overrides) -> int:
        fields = {
            "type": IncidentType.OTHER,
            "severity": IncidentSeverity.MEDIUM,
            "status": IncidentStatus.REPORTED,
            "title": "Incident",
            "description": "Something happened",
            "reported_by_id": seed["reporter_id"],
        }
        fields.update(overrides)
        if "days_ago" in fields:
            fields["created_at"] = utcnow() - timedelta(days=fields.pop("days_ago"))
        if fields["status"] in (IncidentStatus.RESOLVED, IncidentStatus.CLOSED):
            fields.setdefault("resolved_at", utcnow())
        async with session_factory() as session:
            incident = Incident(**fields)
            session.add(incident)
            await session.commit()
            return incident.id

    return _insert
