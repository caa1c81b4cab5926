"""Read models for incidents.

The listing and detail endpoints always return the same shape: the incident
columns, a fixed subset of its relations, and the derived ``daysOpen`` and
``priority`` fields. The views are decoupled from the ORM classes so the
storage schema can change without touching the wire format.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..models.incident import Incident, IncidentSeverity, IncidentStatus, IncidentType
from .pagination import days_open, priority_for


class _View(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CourseView(_View):
    id: int
    code: str
    name: str


class VenueView(_View):
    id: int
    name: str
    location: Optional[str] = None
    capacity: int = 0


class ExamView(_View):
    id: int
    title: str
    status: str
    exam_date: Optional[datetime] = None
    course: Optional[CourseView] = None
    venue: Optional[VenueView] = None


class ScriptView(_View):
    id: int
    code: str
    student_id: int
    status: str


class UserSummary(_View):
    id: int
    first_name: str
    last_name: str
    email: str


class IncidentView(_View):
    id: int
    type: IncidentType
    severity: IncidentSeverity
    status: IncidentStatus
    title: str
    description: str
    exam_id: Optional[int] = None
    script_id: Optional[int] = None
    reported_by_id: int
    assigned_to_id: Optional[int] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    exam: Optional[ExamView] = None
    script: Optional[ScriptView] = None
    reported_by: Optional[UserSummary] = None
    assigned_to: Optional[UserSummary] = None

    days_open: Optional[int] = None
    priority: str

    def to_payload(self) -> dict:
        """JSON-ready camelCase dict. ``daysOpen`` is left out for resolved/closed incidents."""
        payload = self.model_dump(by_alias=True, mode="json")
        if payload["daysOpen"] is None:
            del payload["daysOpen"]
        return payload


def _maybe(view_cls, obj):
    return view_cls.model_validate(obj) if obj is not None else None


def project_incident(incident: Incident, now: Optional[datetime] = None) -> IncidentView:
    """Build the read model for an incident whose relations are already loaded."""
    return IncidentView(
        id=incident.id,
        type=incident.type,
        severity=incident.severity,
        status=incident.status,
        title=incident.title,
        description=incident.description,
        exam_id=incident.exam_id,
        script_id=incident.script_id,
        reported_by_id=incident.reported_by_id,
        assigned_to_id=incident.assigned_to_id,
        resolution=incident.resolution,
        resolved_at=incident.resolved_at,
        created_at=incident.created_at,
        updated_at=incident.updated_at,
        exam=_maybe(ExamView, incident.exam),
        script=_maybe(ScriptView, incident.script),
        reported_by=_maybe(UserSummary, incident.reporter),
        assigned_to=_maybe(UserSummary, incident.assignee),
        days_open=days_open(incident.status, incident.created_at, now),
        priority=priority_for(incident.severity),
    )
