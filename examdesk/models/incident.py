"""Incident model — operational problems reported during exams."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow
from .exam import Exam
from .script import Script
from .user import User


class IncidentType(str, enum.Enum):
    MISSING_SCRIPT = "MISSING_SCRIPT"
    DAMAGED_SCRIPT = "DAMAGED_SCRIPT"
    MALPRACTICE = "MALPRACTICE"
    VENUE_ISSUE = "VENUE_ISSUE"
    EQUIPMENT_FAILURE = "EQUIPMENT_FAILURE"
    STUDENT_ABSENCE = "STUDENT_ABSENCE"
    INVIGILATOR_ISSUE = "INVIGILATOR_ISSUE"
    TECHNICAL = "TECHNICAL"
    NETWORK = "NETWORK"
    SECURITY = "SECURITY"
    OTHER = "OTHER"


class IncidentSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class IncidentStatus(str, enum.Enum):
    REPORTED = "REPORTED"
    UNDER_INVESTIGATION = "UNDER_INVESTIGATION"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


TERMINAL_STATUSES = frozenset({IncidentStatus.RESOLVED, IncidentStatus.CLOSED})
OPEN_STATUSES = frozenset({IncidentStatus.REPORTED, IncidentStatus.UNDER_INVESTIGATION})


def _enum_column(enum_cls):
    return Enum(enum_cls, native_enum=False, length=32, validate_strings=True)


class Incident(Base):
    __tablename__ = "incidents"
    __table_args__ = (
        Index("ix_incidents_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[IncidentType] = mapped_column(_enum_column(IncidentType), nullable=False, index=True)
    severity: Mapped[IncidentSeverity] = mapped_column(
        _enum_column(IncidentSeverity), nullable=False, default=IncidentSeverity.MEDIUM, index=True
    )
    status: Mapped[IncidentStatus] = mapped_column(
        _enum_column(IncidentStatus), nullable=False, default=IncidentStatus.REPORTED, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    exam_id: Mapped[Optional[int]] = mapped_column(ForeignKey("exams.id"), nullable=True, index=True)
    script_id: Mapped[Optional[int]] = mapped_column(ForeignKey("scripts.id"), nullable=True, index=True)
    reported_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    exam: Mapped[Optional[Exam]] = relationship()
    script: Mapped[Optional[Script]] = relationship()
    reporter: Mapped[User] = relationship(foreign_keys=[reported_by_id])
    assignee: Mapped[Optional[User]] = relationship(foreign_keys=[assigned_to_id])
