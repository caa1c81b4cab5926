"""Tests for the IncidentManager — exam incident lifecycle."""

import asyncio

import pytest
from sqlalchemy import select

from examdesk.engine.errors import (
    ErrorKind,
    IncidentConflictError,
    IncidentNotFoundError,
    IncidentValidationError,
)
from examdesk.models import Incident, IncidentStatus


async def _report(manager, seed, **overrides):
    fields = {
        "type": "NETWORK",
        "title": "Wifi down",
        "description": "Hall A offline",
        "reporter_id": seed["reporter_id"],
    }
    fields.update(overrides)
    return await manager.create_incident(**fields)


class TestCreateIncident:

    @pytest.mark.asyncio
    async def test_create_defaults(self, manager, seed):
        """Reported incidents start REPORTED, MEDIUM, unresolved."""
        result = await _report(manager, seed)

        assert result["severity"] == "MEDIUM"
        assert result["status"] == "REPORTED"
        assert result["reportedById"] == seed["reporter_id"]
        assert result["resolvedAt"] is None
        assert result["priority"] == "medium"
        assert result["daysOpen"] == 0
        assert result["reportedBy"]["firstName"] == "Ama"
        assert result["assignedTo"] is None

    @pytest.mark.asyncio
    async def test_create_with_exam_and_script_populates_relations(self, manager, seed):
        result = await _report(
            manager, seed,
            type="MISSING_SCRIPT",
            severity="HIGH",
            exam_id=seed["north_exam_id"],
            script_id=seed["script_id"],
        )

        assert result["severity"] == "HIGH"
        assert result["exam"]["course"]["code"] == "CPE301"
        assert result["exam"]["venue"]["name"] == "Great Hall A"
        assert result["script"] == {
            "id": seed["script_id"],
            "code": "QR-CPE301-0001",
            "studentId": 5001,
            "status": "GENERATED",
        }

    @pytest.mark.asyncio
    async def test_create_unknown_exam_is_not_found(self, manager, seed, session_factory):
        with pytest.raises(IncidentNotFoundError) as excinfo:
            await _report(manager, seed, exam_id=9999)

        assert excinfo.value.kind is ErrorKind.NOT_FOUND
        assert excinfo.value.message == "Exam not found"
        async with session_factory() as session:
            assert (await session.execute(select(Incident))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_create_unknown_script_is_not_found(self, manager, seed):
        with pytest.raises(IncidentNotFoundError, match="Script not found"):
            await _report(manager, seed, script_id=4242)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"type": None},
        {"type": "FIRE_DRILL"},
        {"severity": "URGENT"},
        {"title": "   "},
        {"description": ""},
    ])
    async def test_create_rejects_invalid_input(self, manager, seed, overrides):
        with pytest.raises(IncidentValidationError):
            await _report(manager, seed, **overrides)


class TestUpdateIncident:

    @pytest.mark.asyncio
    async def test_update_missing_incident(self, manager, seed):
        with pytest.raises(IncidentNotFoundError, match="Incident not found"):
            await manager.update_incident(404, {"title": "x"})

    @pytest.mark.asyncio
    async def test_update_only_touches_supplied_fields(self, manager, seed):
        created = await _report(manager, seed)
        updated = await manager.update_incident(created["id"], {"severity": "CRITICAL"})

        assert updated["severity"] == "CRITICAL"
        assert updated["priority"] == "critical"
        assert updated["title"] == "Wifi down"
        assert updated["status"] == "REPORTED"

    @pytest.mark.asyncio
    async def test_update_rechecks_exam(self, manager, seed):
        created = await _report(manager, seed)
        with pytest.raises(IncidentNotFoundError, match="Exam not found"):
            await manager.update_incident(created["id"], {"exam_id": 777})

    @pytest.mark.asyncio
    async def test_reporter_is_immutable(self, manager, seed):
        created = await _report(manager, seed)
        with pytest.raises(IncidentValidationError, match="reported_by_id"):
            await manager.update_incident(created["id"], {"reported_by_id": seed["officer_id"]})

    @pytest.mark.asyncio
    async def test_required_field_cannot_be_nulled(self, manager, seed):
        created = await _report(manager, seed)
        with pytest.raises(IncidentValidationError, match="severity cannot be null"):
            await manager.update_incident(created["id"], {"severity": None})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["RESOLVED", "CLOSED"])
    async def test_entering_terminal_status_sets_resolved_at(self, manager, seed, terminal):
        created = await _report(manager, seed)
        updated = await manager.update_incident(created["id"], {"status": terminal})

        assert updated["status"] == terminal
        assert updated["resolvedAt"] is not None
        assert "daysOpen" not in updated

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["RESOLVED", "CLOSED"])
    @pytest.mark.parametrize("reopened", ["REPORTED", "UNDER_INVESTIGATION"])
    async def test_reopen_clears_resolved_at(self, manager, seed, terminal, reopened):
        created = await _report(manager, seed)
        await manager.update_incident(created["id"], {"status": terminal})
        reopened_result = await manager.update_incident(created["id"], {"status": reopened})

        assert reopened_result["status"] == reopened
        assert reopened_result["resolvedAt"] is None
        assert reopened_result["daysOpen"] == 0

    @pytest.mark.asyncio
    async def test_non_status_update_keeps_resolved_at(self, manager, seed):
        created = await _report(manager, seed)
        resolved = await manager.resolve_incident(created["id"], "Router replaced")
        edited = await manager.update_incident(created["id"], {"title": "Wifi down in Hall A"})

        assert edited["status"] == "RESOLVED"
        assert edited["resolvedAt"] == resolved["resolvedAt"]


class TestAssignResolveClose:

    @pytest.mark.asyncio
    async def test_assign_sets_assignee_and_status(self, manager, seed):
        created = await _report(manager, seed)
        result = await manager.assign_incident(created["id"], seed["officer_id"])

        assert result["status"] == "UNDER_INVESTIGATION"
        assert result["assignedToId"] == seed["officer_id"]
        assert result["assignedTo"]["email"] == "kofi@nbu.edu"

    @pytest.mark.asyncio
    async def test_assign_from_closed_reopens(self, manager, seed):
        created = await _report(manager, seed)
        await manager.close_incident(created["id"])
        result = await manager.assign_incident(created["id"], seed["officer_id"])

        assert result["status"] == "UNDER_INVESTIGATION"
        assert result["resolvedAt"] is None

    @pytest.mark.asyncio
    async def test_assign_unknown_user(self, manager, seed):
        created = await _report(manager, seed)
        with pytest.raises(IncidentNotFoundError, match="Assigned user not found"):
            await manager.assign_incident(created["id"], 31337)

    @pytest.mark.asyncio
    async def test_assign_unknown_incident(self, manager, seed):
        with pytest.raises(IncidentNotFoundError, match="Incident not found"):
            await manager.assign_incident(31337, seed["officer_id"])

    @pytest.mark.asyncio
    async def test_resolve(self, manager, seed):
        created = await _report(manager, seed)
        await manager.assign_incident(created["id"], seed["officer_id"])
        result = await manager.resolve_incident(created["id"], "  Router replaced ")

        assert result["status"] == "RESOLVED"
        assert result["resolution"] == "Router replaced"
        assert result["resolvedAt"] is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resolution", ["", "   ", None])
    async def test_resolve_requires_text(self, manager, seed, resolution):
        created = await _report(manager, seed)
        with pytest.raises(IncidentValidationError, match="Resolution is required"):
            await manager.resolve_incident(created["id"], resolution)

    @pytest.mark.asyncio
    async def test_close(self, manager, seed):
        created = await _report(manager, seed)
        result = await manager.close_incident(created["id"])

        assert result["status"] == "CLOSED"
        assert result["resolvedAt"] is not None


class TestDeleteIncident:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["REPORTED", "UNDER_INVESTIGATION"])
    async def test_delete_open_incident_conflicts(self, manager, seed, status):
        created = await _report(manager, seed)
        await manager.update_incident(created["id"], {"status": status})

        with pytest.raises(IncidentConflictError) as excinfo:
            await manager.delete_incident(created["id"])

        assert excinfo.value.kind is ErrorKind.CONFLICT
        unchanged = await manager.get_incident(created["id"])
        assert unchanged["status"] == status

    @pytest.mark.asyncio
    async def test_delete_after_close(self, manager, seed):
        created = await _report(manager, seed)
        await manager.close_incident(created["id"])
        await manager.delete_incident(created["id"])

        with pytest.raises(IncidentNotFoundError):
            await manager.get_incident(created["id"])

    @pytest.mark.asyncio
    async def test_delete_missing(self, manager, seed):
        with pytest.raises(IncidentNotFoundError):
            await manager.delete_incident(12)


class TestLastWriteWins:
    """No version check: later writes silently replace earlier intent."""

    @pytest.mark.asyncio
    async def test_assign_after_resolve_overrides_resolution_status(self, manager, seed):
        created = await _report(manager, seed)
        await manager.resolve_incident(created["id"], "Router replaced")
        result = await manager.assign_incident(created["id"], seed["officer_id"])

        assert result["status"] == "UNDER_INVESTIGATION"
        assert result["resolvedAt"] is None
        # resolution text from the earlier write survives alongside the new status
        assert result["resolution"] == "Router replaced"

    @pytest.mark.asyncio
    async def test_concurrent_assignments_both_succeed(self, tmp_path):
        """Two racing assignments on a file-backed store: neither fails, one assignee remains."""
        from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

        from examdesk.engine.incident_manager import IncidentManager
        from examdesk.models import Base, User

        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, expire_on_commit=False)
        try:
            async with factory() as session:
                users = [
                    User(first_name="A", last_name="One", email="a@x.edu"),
                    User(first_name="B", last_name="Two", email="b@x.edu"),
                ]
                session.add_all(users)
                await session.commit()
                first, second = users[0].id, users[1].id

            race_manager = IncidentManager(db_session_factory=factory)
            created = await race_manager.create_incident(
                type="SECURITY", title="Leaked paper", description="Photo circulating", reporter_id=first,
            )

            results = await asyncio.gather(
                race_manager.assign_incident(created["id"], first),
                race_manager.assign_incident(created["id"], second),
            )

            assert {r["status"] for r in results} == {"UNDER_INVESTIGATION"}
            final = await race_manager.get_incident(created["id"])
            assert final["assignedToId"] in {first, second}
            assert final["status"] == "UNDER_INVESTIGATION"
        finally:
            await engine.dispose()


class TestGetIncident:

    @pytest.mark.asyncio
    async def test_get_incident_days_open(self, manager, insert_incident):
        incident_id = await insert_incident(days_ago=3)
        result = await manager.get_incident(incident_id)
        assert result["daysOpen"] == 3

    @pytest.mark.asyncio
    async def test_get_missing(self, manager, seed):
        with pytest.raises(IncidentNotFoundError):
            await manager.get_incident(1)

    @pytest.mark.asyncio
    async def test_status_stored_as_enum(self, manager, seed, session_factory):
        created = await _report(manager, seed)
        async with session_factory() as session:
            incident = await session.get(Incident, created["id"])
            assert incident.status is IncidentStatus.REPORTED
