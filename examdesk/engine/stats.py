"""Incident statistics — grouped counts and summary totals."""

from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.incident import OPEN_STATUSES, Incident, IncidentStatus


@dataclass(frozen=True)
class GroupCount:
    status: str
    severity: str
    type: str
    count: int


def _key(value) -> str:
    return getattr(value, "value", value)


def summarize(groups: list[GroupCount], total: int, open_count: int, resolved_count: int) -> dict:
    """Reshape grouped rows into per-dimension maps and attach the summary totals.

    ``closed`` is derived as ``total - open - resolved`` rather than counted.
    """
    by_status: dict[str, int] = defaultdict(int)
    by_severity: dict[str, int] = defaultdict(int)
    by_type: dict[str, int] = defaultdict(int)
    for group in groups:
        by_status[group.status] += group.count
        by_severity[group.severity] += group.count
        by_type[group.type] += group.count

    return {
        "total": total,
        "open": open_count,
        "resolved": resolved_count,
        "closed": total - open_count - resolved_count,
        "byStatus": dict(by_status),
        "bySeverity": dict(by_severity),
        "byType": dict(by_type),
        "groups": [
            {"status": g.status, "severity": g.severity, "type": g.type, "count": g.count}
            for g in groups
        ],
    }


async def collect_stats(session: AsyncSession) -> dict:
    """Run the grouped and summary counts against the store."""
    rows = (await session.execute(
        select(Incident.status, Incident.severity, Incident.type, func.count(Incident.id))
        .group_by(Incident.status, Incident.severity, Incident.type)
    )).all()
    groups = [
        GroupCount(status=_key(status), severity=_key(severity), type=_key(type_), count=count)
        for status, severity, type_, count in rows
    ]

    total = (await session.execute(select(func.count(Incident.id)))).scalar() or 0
    open_count = (await session.execute(
        select(func.count(Incident.id)).where(Incident.status.in_(list(OPEN_STATUSES)))
    )).scalar() or 0
    resolved_count = (await session.execute(
        select(func.count(Incident.id)).where(Incident.status == IncidentStatus.RESOLVED)
    )).scalar() or 0

    return summarize(groups, total, open_count, resolved_count)
