"""Incident filter builder.

Listing requests are turned into an explicit list of ``Predicate`` records
(field, operator, value) and only then compiled into SQLAlchemy clauses.
Each dimension produces its own predicate, so two filters that both reach
through the ``exam`` relation (an exam id and an institution scope) are
AND-ed together instead of one replacing the other.
"""

import enum
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import ColumnElement, and_, or_

from ..models.base import to_naive_utc
from ..models.course import Course
from ..models.exam import Exam
from ..models.incident import Incident, IncidentSeverity, IncidentStatus, IncidentType
from ..models.institution import Department, Faculty
from ..models.user import User


class FilterField(str, enum.Enum):
    EXAM_ID = "examId"
    SCRIPT_ID = "scriptId"
    REPORTED_BY_ID = "reportedById"
    ASSIGNED_TO_ID = "assignedToId"
    TYPE = "type"
    SEVERITY = "severity"
    STATUS = "status"
    CREATED_AT = "createdAt"
    SEARCH = "search"
    INSTITUTION_ID = "institutionId"


class Operator(str, enum.Enum):
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"
    CONTAINS_ANY = "contains_any"  # case-insensitive substring over several text fields
    WITHIN = "within"  # membership through the institution hierarchy


@dataclass(frozen=True)
class Predicate:
    field: FilterField
    op: Operator
    value: Any


@dataclass
class IncidentQuery:
    """Optional filter dimensions for an incident listing. ``None`` means unfiltered."""

    exam_id: Optional[int] = None
    script_id: Optional[int] = None
    reported_by_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    type: Optional[IncidentType] = None
    severity: Optional[IncidentSeverity] = None
    status: Optional[IncidentStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    institution_id: Optional[int] = None

    def with_overrides(self, **overrides) -> "IncidentQuery":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update(overrides)
        return IncidentQuery(**values)


class IncidentFilterBuilder:
    """Collects predicates one dimension at a time. Passing ``None`` is a no-op."""

    def __init__(self):
        self._predicates: list[Predicate] = []

    def _add(self, field: FilterField, op: Operator, value) -> "IncidentFilterBuilder":
        if value is not None:
            self._predicates.append(Predicate(field, op, value))
        return self

    def exam(self, exam_id: Optional[int]) -> "IncidentFilterBuilder":
        return self._add(FilterField.EXAM_ID, Operator.EQ, exam_id)

    def script(self, script_id: Optional[int]) -> "IncidentFilterBuilder":
        return self._add(FilterField.SCRIPT_ID, Operator.EQ, script_id)

    def reporter(self, user_id: Optional[int]) -> "IncidentFilterBuilder":
        return self._add(FilterField.REPORTED_BY_ID, Operator.EQ, user_id)

    def assignee(self, user_id: Optional[int]) -> "IncidentFilterBuilder":
        return self._add(FilterField.ASSIGNED_TO_ID, Operator.EQ, user_id)

    def type(self, incident_type: Optional[IncidentType]) -> "IncidentFilterBuilder":
        return self._add(FilterField.TYPE, Operator.EQ, incident_type)

    def severity(self, severity: Optional[IncidentSeverity]) -> "IncidentFilterBuilder":
        return self._add(FilterField.SEVERITY, Operator.EQ, severity)

    def status(self, status: Optional[IncidentStatus]) -> "IncidentFilterBuilder":
        return self._add(FilterField.STATUS, Operator.EQ, status)

    def created_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> "IncidentFilterBuilder":
        # Bounds are independent: either one alone is a valid half-open range.
        if start is not None:
            self._add(FilterField.CREATED_AT, Operator.GTE, to_naive_utc(start))
        if end is not None:
            self._add(FilterField.CREATED_AT, Operator.LTE, to_naive_utc(end))
        return self

    def search(self, term: Optional[str]) -> "IncidentFilterBuilder":
        if term is None or not term.strip():
            return self
        return self._add(FilterField.SEARCH, Operator.CONTAINS_ANY, term.strip())

    def institution(self, institution_id: Optional[int]) -> "IncidentFilterBuilder":
        return self._add(FilterField.INSTITUTION_ID, Operator.WITHIN, institution_id)

    def build(self) -> list[Predicate]:
        return list(self._predicates)


def build_predicates(query: IncidentQuery) -> list[Predicate]:
    """Translate an ``IncidentQuery`` into its predicate list."""
    return (
        IncidentFilterBuilder()
        .institution(query.institution_id)
        .exam(query.exam_id)
        .script(query.script_id)
        .reporter(query.reported_by_id)
        .assignee(query.assigned_to_id)
        .type(query.type)
        .severity(query.severity)
        .status(query.status)
        .created_between(query.start_date, query.end_date)
        .search(query.search)
        .build()
    )


_EQUALITY_COLUMNS = {
    FilterField.EXAM_ID: Incident.exam_id,
    FilterField.SCRIPT_ID: Incident.script_id,
    FilterField.REPORTED_BY_ID: Incident.reported_by_id,
    FilterField.ASSIGNED_TO_ID: Incident.assigned_to_id,
    FilterField.TYPE: Incident.type,
    FilterField.SEVERITY: Incident.severity,
    FilterField.STATUS: Incident.status,
}


def _search_clause(term: str) -> ColumnElement[bool]:
    return or_(
        Incident.title.icontains(term, autoescape=True),
        Incident.description.icontains(term, autoescape=True),
        Incident.reporter.has(User.first_name.icontains(term, autoescape=True)),
        Incident.reporter.has(User.last_name.icontains(term, autoescape=True)),
    )


def _institution_clause(institution_id: int) -> ColumnElement[bool]:
    # Incident -> Exam -> Course -> Department -> Faculty -> institution
    return Incident.exam.has(
        Exam.course.has(
            Course.department.has(
                Department.faculty.has(Faculty.institution_id == institution_id)
            )
        )
    )


def compile_predicate(predicate: Predicate) -> ColumnElement[bool]:
    """Compile a single predicate into a SQLAlchemy boolean clause."""
    field, op, value = predicate.field, predicate.op, predicate.value

    if field in _EQUALITY_COLUMNS and op is Operator.EQ:
        return _EQUALITY_COLUMNS[field] == value
    if field is FilterField.CREATED_AT and op is Operator.GTE:
        return Incident.created_at >= value
    if field is FilterField.CREATED_AT and op is Operator.LTE:
        return Incident.created_at <= value
    if field is FilterField.SEARCH and op is Operator.CONTAINS_ANY:
        return _search_clause(value)
    if field is FilterField.INSTITUTION_ID and op is Operator.WITHIN:
        return _institution_clause(value)

    raise ValueError(f"Unsupported predicate: {field.value} {op.value}")


def compile_predicates(predicates: list[Predicate]) -> ColumnElement[bool] | None:
    """AND together every predicate. Returns None when there is nothing to filter on."""
    if not predicates:
        return None
    return and_(*(compile_predicate(p) for p in predicates))
