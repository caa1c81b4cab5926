"""Incident Manager — exam incident lifecycle and queries.

Lifecycle: REPORTED -> (assign) UNDER_INVESTIGATION -> (resolve) RESOLVED
-> (close) CLOSED -> deletable. The generic update may move an incident to
any status; ``resolved_at`` follows the status, set on entering
RESOLVED/CLOSED and cleared when an incident is reopened.

Writes are plain last-write-wins: there is no version column, so two
concurrent assignments of the same incident both succeed and the later
commit is what remains.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from ..models.base import utcnow
from ..models.exam import Exam
from ..models.incident import (
    TERMINAL_STATUSES,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
)
from ..models.script import Script
from ..models.user import User
from ..utils.logging import get_logger
from .errors import (
    IncidentConflictError,
    IncidentNotFoundError,
    IncidentValidationError,
)
from .filters import IncidentQuery, build_predicates, compile_predicates
from .pagination import PageRequest, pagination_meta
from .projection import project_incident
from .stats import collect_stats

logger = get_logger("engine.incident_manager")

MUTABLE_FIELDS = frozenset({
    "type",
    "severity",
    "status",
    "title",
    "description",
    "exam_id",
    "script_id",
    "assigned_to_id",
    "resolution",
})
_REQUIRED_FIELDS = frozenset({"type", "severity", "status", "title", "description"})
_ENUM_FIELDS = {
    "type": IncidentType,
    "severity": IncidentSeverity,
    "status": IncidentStatus,
}

# Relation projection shared by every read.
RELATION_OPTIONS = (
    selectinload(Incident.exam).selectinload(Exam.course),
    selectinload(Incident.exam).selectinload(Exam.venue),
    selectinload(Incident.script),
    selectinload(Incident.reporter),
    selectinload(Incident.assignee),
)


def _coerce_enum(field: str, value):
    enum_cls = _ENUM_FIELDS[field]
    try:
        return enum_cls(value)
    except ValueError:
        raise IncidentValidationError(f"Invalid incident {field}", field=field, value=value) from None


def _require_text(field: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise IncidentValidationError(f"{field} is required", field=field)
    return value


class IncidentManager:
    """Manages the exam incident lifecycle against the relational store."""

    def __init__(self, db_session_factory=None):
        self._db_session_factory = db_session_factory

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _ensure_exists(session, model, entity: str, entity_id: Optional[int]) -> None:
        if entity_id is None:
            return
        found = (await session.execute(
            select(model.id).where(model.id == entity_id)
        )).scalar_one_or_none()
        if found is None:
            raise IncidentNotFoundError(entity, entity_id)

    async def _check_references(
        self,
        session,
        exam_id: Optional[int] = None,
        script_id: Optional[int] = None,
        assigned_to_id: Optional[int] = None,
    ) -> None:
        await self._ensure_exists(session, Exam, "Exam", exam_id)
        await self._ensure_exists(session, Script, "Script", script_id)
        await self._ensure_exists(session, User, "Assigned user", assigned_to_id)

    @staticmethod
    async def _load(session, incident_id: int) -> Optional[Incident]:
        return (await session.execute(
            select(Incident)
            .options(*RELATION_OPTIONS)
            .where(Incident.id == incident_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_incident(
        self,
        type,
        title: str,
        description: str,
        reporter_id: int,
        severity=None,
        exam_id: Optional[int] = None,
        script_id: Optional[int] = None,
    ) -> dict:
        """Report a new incident. Severity defaults to MEDIUM; status starts at REPORTED."""
        if type is None:
            raise IncidentValidationError("type is required", field="type")
        incident_type = _coerce_enum("type", type)
        _require_text("title", title)
        _require_text("description", description)
        severity = _coerce_enum("severity", severity) if severity is not None else IncidentSeverity.MEDIUM

        async with self._db_session_factory() as session:
            await self._check_references(session, exam_id=exam_id, script_id=script_id)

            incident = Incident(
                type=incident_type,
                severity=severity,
                status=IncidentStatus.REPORTED,
                title=title,
                description=description,
                exam_id=exam_id,
                script_id=script_id,
                reported_by_id=reporter_id,
            )
            session.add(incident)
            await session.commit()
            result = project_incident(await self._load(session, incident.id)).to_payload()

        logger.info(
            "incident_created",
            id=result["id"],
            type=incident_type.value,
            severity=severity.value,
            reporter_id=reporter_id,
        )
        return result

    async def update_incident(self, incident_id: int, changes: dict) -> dict:
        """Apply a partial update. Only the keys present in ``changes`` are written."""
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise IncidentValidationError(
                f"Cannot update field(s): {', '.join(sorted(unknown))}", fields=sorted(unknown)
            )

        values = {}
        for field, value in changes.items():
            if value is None and field in _REQUIRED_FIELDS:
                raise IncidentValidationError(f"{field} cannot be null", field=field)
            if value is not None and field in _ENUM_FIELDS:
                value = _coerce_enum(field, value)
            if field in ("title", "description"):
                _require_text(field, value)
            values[field] = value

        async with self._db_session_factory() as session:
            incident = await session.get(Incident, incident_id)
            if incident is None:
                raise IncidentNotFoundError("Incident", incident_id)

            await self._check_references(
                session,
                exam_id=values.get("exam_id"),
                script_id=values.get("script_id"),
                assigned_to_id=values.get("assigned_to_id"),
            )

            old_status = incident.status
            new_status = values.get("status")
            for field, value in values.items():
                setattr(incident, field, value)

            if new_status in TERMINAL_STATUSES:
                incident.resolved_at = utcnow()
            elif new_status is not None and old_status in TERMINAL_STATUSES:
                # Reopened
                incident.resolved_at = None

            await session.commit()
            result = project_incident(await self._load(session, incident_id)).to_payload()

        if new_status is not None and new_status != old_status:
            logger.info(
                "incident_status_updated", id=incident_id, old=old_status.value, new=new_status.value
            )
        else:
            logger.info("incident_updated", id=incident_id, fields=sorted(values))
        return result

    async def assign_incident(self, incident_id: int, assigned_to_id: int) -> dict:
        """Assign an incident to a user and move it to UNDER_INVESTIGATION."""
        async with self._db_session_factory() as session:
            await self._ensure_exists(session, User, "Assigned user", assigned_to_id)

        result = await self.update_incident(incident_id, {
            "assigned_to_id": assigned_to_id,
            "status": IncidentStatus.UNDER_INVESTIGATION,
        })
        logger.info("incident_assigned", id=incident_id, assigned_to_id=assigned_to_id)
        return result

    async def resolve_incident(self, incident_id: int, resolution: str) -> dict:
        """Resolve an incident with a non-empty resolution note."""
        if not isinstance(resolution, str) or not resolution.strip():
            raise IncidentValidationError("Resolution is required", field="resolution")
        return await self.update_incident(incident_id, {
            "status": IncidentStatus.RESOLVED,
            "resolution": resolution.strip(),
        })

    async def close_incident(self, incident_id: int) -> dict:
        """Close an incident, making it eligible for deletion."""
        return await self.update_incident(incident_id, {"status": IncidentStatus.CLOSED})

    async def delete_incident(self, incident_id: int) -> None:
        """Delete a resolved or closed incident."""
        async with self._db_session_factory() as session:
            incident = await session.get(Incident, incident_id)
            if incident is None:
                raise IncidentNotFoundError("Incident", incident_id)
            if incident.status not in TERMINAL_STATUSES:
                raise IncidentConflictError(
                    "Cannot delete incident that is not resolved or closed",
                    id=incident_id,
                    status=incident.status.value,
                )
            await session.delete(incident)
            await session.commit()

        logger.info("incident_deleted", id=incident_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_incident(self, incident_id: int) -> dict:
        """Get a single incident with its relations."""
        async with self._db_session_factory() as session:
            incident = await self._load(session, incident_id)
            if incident is None:
                raise IncidentNotFoundError("Incident", incident_id)
            return project_incident(incident).to_payload()

    async def list_incidents(
        self,
        query: Optional[IncidentQuery] = None,
        page: Optional[PageRequest] = None,
    ) -> dict:
        """Filtered, sorted, paginated listing: ``{"incidents": [...], "pagination": {...}}``."""
        query = query or IncidentQuery()
        page = page or PageRequest()
        clause = compile_predicates(build_predicates(query))

        count_stmt = select(func.count(Incident.id))
        find_stmt = (
            select(Incident)
            .options(*RELATION_OPTIONS)
            .order_by(*page.order_by())
            .offset(page.skip)
            .limit(page.take)
        )
        if clause is not None:
            count_stmt = count_stmt.where(clause)
            find_stmt = find_stmt.where(clause)

        async with self._db_session_factory() as session:
            total = (await session.execute(count_stmt)).scalar() or 0
            # Past the last row; also keeps OFFSET within the store's integer range
            if page.skip >= total:
                rows = []
            else:
                rows = (await session.execute(find_stmt)).scalars().all()
            incidents = [project_incident(row).to_payload() for row in rows]

        return {"incidents": incidents, "pagination": pagination_meta(page, total)}

    async def list_by_exam(self, exam_id: int, query=None, page=None) -> dict:
        return await self.list_incidents((query or IncidentQuery()).with_overrides(exam_id=exam_id), page)

    async def list_by_script(self, script_id: int, query=None, page=None) -> dict:
        return await self.list_incidents((query or IncidentQuery()).with_overrides(script_id=script_id), page)

    async def list_by_reporter(self, user_id: int, query=None, page=None) -> dict:
        return await self.list_incidents((query or IncidentQuery()).with_overrides(reported_by_id=user_id), page)

    async def list_by_assignee(self, user_id: int, query=None, page=None) -> dict:
        return await self.list_incidents((query or IncidentQuery()).with_overrides(assigned_to_id=user_id), page)

    async def get_stats(self) -> dict:
        """Grouped counts by status/severity/type plus summary totals."""
        async with self._db_session_factory() as session:
            return await collect_stats(session)
