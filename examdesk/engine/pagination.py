"""Pagination, sorting and derived fields for incident listings."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models.base import to_naive_utc, utcnow
from ..models.incident import TERMINAL_STATUSES, Incident, IncidentSeverity, IncidentStatus
from .errors import IncidentValidationError

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = "desc"

SORT_COLUMNS = {
    "id": Incident.id,
    "type": Incident.type,
    "severity": Incident.severity,
    "status": Incident.status,
    "title": Incident.title,
    "createdAt": Incident.created_at,
    "updatedAt": Incident.updated_at,
    "resolvedAt": Incident.resolved_at,
}

_PRIORITY_BY_SEVERITY = {
    IncidentSeverity.CRITICAL: "critical",
    IncidentSeverity.HIGH: "high",
    IncidentSeverity.MEDIUM: "medium",
}

_SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER

    def __post_init__(self):
        if self.page < 1:
            raise IncidentValidationError("page must be a positive integer", page=self.page)
        if self.limit < 1:
            raise IncidentValidationError("limit must be a positive integer", limit=self.limit)
        if self.sort_by not in SORT_COLUMNS:
            raise IncidentValidationError(
                f"sortBy must be one of: {', '.join(SORT_COLUMNS)}", sort_by=self.sort_by
            )
        if self.sort_order not in ("asc", "desc"):
            raise IncidentValidationError("sortOrder must be 'asc' or 'desc'", sort_order=self.sort_order)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def take(self) -> int:
        return self.limit

    def order_by(self) -> tuple:
        """Sort column plus ``id`` in the same direction so page boundaries are stable."""
        column = SORT_COLUMNS[self.sort_by]
        if self.sort_order == "asc":
            return column.asc(), Incident.id.asc()
        return column.desc(), Incident.id.desc()


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def pagination_meta(page: PageRequest, total: int) -> dict:
    return {
        "page": page.page,
        "limit": page.limit,
        "total": total,
        "totalPages": total_pages(total, page.limit),
    }


def days_open(
    status: IncidentStatus, created_at: datetime, now: Optional[datetime] = None
) -> Optional[int]:
    """Whole days since creation, or None once the incident is resolved or closed."""
    if status in TERMINAL_STATUSES:
        return None
    now = to_naive_utc(now) if now is not None else utcnow()
    elapsed = (now - to_naive_utc(created_at)).total_seconds()
    return max(0, math.floor(elapsed / _SECONDS_PER_DAY))


def priority_for(severity: IncidentSeverity) -> str:
    return _PRIORITY_BY_SEVERITY.get(severity, "low")
