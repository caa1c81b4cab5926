"""Incident routes — reporting, lifecycle operations, filtered listings and stats."""

from datetime import datetime
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ...auth.rbac import (
    INCIDENT_OFFICERS,
    ROLES_DELETE,
    ROLES_LIST,
    ROLES_REPORT,
    ROLES_VIEW,
    ROLES_VIEW_SCRIPT,
    require_role,
)
from ...config import ExamDeskConfig
from ...dependencies import get_app_config, get_current_user, get_incident_manager
from ...engine.errors import IncidentValidationError
from ...engine.filters import IncidentQuery
from ...engine.pagination import DEFAULT_SORT_BY, DEFAULT_SORT_ORDER, PageRequest
from ...models.incident import IncidentSeverity, IncidentStatus, IncidentType

router = APIRouter(prefix="/incidents", tags=["incidents"])


# --- Request bodies ---

class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _not_blank(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


Title = Annotated[str, Field(min_length=1, max_length=255), AfterValidator(_not_blank)]
Description = Annotated[str, Field(min_length=1, max_length=5000), AfterValidator(_not_blank)]


class CreateIncidentRequest(_Body):
    type: IncidentType
    title: Title
    description: Description
    severity: Optional[IncidentSeverity] = None
    exam_id: Optional[int] = Field(default=None, gt=0)
    script_id: Optional[int] = Field(default=None, gt=0)


class UpdateIncidentRequest(_Body):
    type: Optional[IncidentType] = None
    severity: Optional[IncidentSeverity] = None
    status: Optional[IncidentStatus] = None
    title: Optional[Title] = None
    description: Optional[Description] = None
    exam_id: Optional[int] = Field(default=None, gt=0)
    script_id: Optional[int] = Field(default=None, gt=0)
    assigned_to_id: Optional[int] = Field(default=None, gt=0)
    resolution: Optional[str] = Field(default=None, max_length=5000)


class AssignRequest(_Body):
    assigned_to_id: int = Field(gt=0)


class ResolveRequest(_Body):
    resolution: str = Field(max_length=5000)

    @field_validator("resolution")
    @classmethod
    def strip_resolution(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Resolution is required")
        return v


# --- Query parameters ---

def incident_query(
    exam_id: Optional[int] = Query(None, alias="examId"),
    script_id: Optional[int] = Query(None, alias="scriptId"),
    reported_by_id: Optional[int] = Query(None, alias="reportedById"),
    assigned_to_id: Optional[int] = Query(None, alias="assignedToId"),
    type: Optional[IncidentType] = Query(None),
    severity: Optional[IncidentSeverity] = Query(None),
    status: Optional[IncidentStatus] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None, max_length=200),
    institution_id: Optional[int] = Query(None, alias="institutionId"),
) -> IncidentQuery:
    return IncidentQuery(
        exam_id=exam_id,
        script_id=script_id,
        reported_by_id=reported_by_id,
        assigned_to_id=assigned_to_id,
        type=type,
        severity=severity,
        status=status,
        start_date=start_date,
        end_date=end_date,
        search=search,
        institution_id=institution_id,
    )


def page_request(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort_by: str = Query(DEFAULT_SORT_BY, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(DEFAULT_SORT_ORDER, alias="sortOrder"),
    config: ExamDeskConfig = Depends(get_app_config),
) -> PageRequest:
    if limit is None:
        limit = config.default_page_size
    if limit > config.max_page_size:
        raise IncidentValidationError(f"limit cannot exceed {config.max_page_size}", limit=limit)
    return PageRequest(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


def _ok(data=None, message: str | None = None) -> dict:
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


# --- Listings ---
# Path segments must not share a name with an incident_query parameter, or
# FastAPI binds that parameter to the path instead of the query string.

@router.get("")
async def list_incidents(
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(require_role(*ROLES_LIST)),
):
    """List incidents with filters, pagination and sorting."""
    return await get_incident_manager().list_incidents(query, page)


@router.get("/stats/overview")
async def get_incident_stats(
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    """Counts by status, severity and type plus open/resolved/closed totals."""
    stats = await get_incident_manager().get_stats()
    return _ok(stats)


@router.get("/assigned/me")
async def list_my_incidents(
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(get_current_user),
):
    """Incidents assigned to the caller."""
    return await get_incident_manager().list_by_assignee(current_user["id"], query, page)


@router.get("/exam/{exam_key}")
async def list_incidents_by_exam(
    exam_key: int,
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(require_role(*ROLES_VIEW)),
):
    return await get_incident_manager().list_by_exam(exam_key, query, page)


@router.get("/script/{script_key}")
async def list_incidents_by_script(
    script_key: int,
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(require_role(*ROLES_VIEW_SCRIPT)),
):
    return await get_incident_manager().list_by_script(script_key, query, page)


@router.get("/reporter/{user_id}")
async def list_incidents_by_reporter(
    user_id: int,
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    return await get_incident_manager().list_by_reporter(user_id, query, page)


@router.get("/assignee/{user_id}")
async def list_incidents_by_assignee(
    user_id: int,
    query: IncidentQuery = Depends(incident_query),
    page: PageRequest = Depends(page_request),
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    return await get_incident_manager().list_by_assignee(user_id, query, page)


# --- Single incident ---

@router.get("/{incident_id}")
async def get_incident(
    incident_id: int,
    current_user: dict = Depends(require_role(*ROLES_VIEW)),
):
    """Get a single incident with its exam, script, reporter and assignee."""
    incident = await get_incident_manager().get_incident(incident_id)
    return _ok(incident)


@router.post("", status_code=201)
async def create_incident(
    body: CreateIncidentRequest,
    current_user: dict = Depends(require_role(*ROLES_REPORT)),
):
    """Report a new incident on behalf of the caller."""
    incident = await get_incident_manager().create_incident(
        type=body.type,
        title=body.title,
        description=body.description,
        severity=body.severity,
        exam_id=body.exam_id,
        script_id=body.script_id,
        reporter_id=current_user["id"],
    )
    return _ok(incident, "Incident reported successfully")


@router.put("/{incident_id}")
async def update_incident(
    incident_id: int,
    body: UpdateIncidentRequest,
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    """Update any mutable incident field."""
    incident = await get_incident_manager().update_incident(
        incident_id, body.model_dump(exclude_unset=True)
    )
    return _ok(incident, "Incident updated successfully")


@router.patch("/{incident_id}/assign")
async def assign_incident(
    incident_id: int,
    body: AssignRequest,
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    """Assign an incident to a user; moves it to UNDER_INVESTIGATION."""
    incident = await get_incident_manager().assign_incident(incident_id, body.assigned_to_id)
    return _ok(incident, "Incident assigned successfully")


@router.patch("/{incident_id}/resolve")
async def resolve_incident(
    incident_id: int,
    body: ResolveRequest,
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    incident = await get_incident_manager().resolve_incident(incident_id, body.resolution)
    return _ok(incident, "Incident resolved successfully")


@router.patch("/{incident_id}/close")
async def close_incident(
    incident_id: int,
    current_user: dict = Depends(require_role(*INCIDENT_OFFICERS)),
):
    incident = await get_incident_manager().close_incident(incident_id)
    return _ok(incident, "Incident closed successfully")


@router.delete("/{incident_id}")
async def delete_incident(
    incident_id: int,
    current_user: dict = Depends(require_role(*ROLES_DELETE)),
):
    """Delete a resolved or closed incident."""
    await get_incident_manager().delete_incident(incident_id)
    return _ok(message="Incident deleted successfully")
