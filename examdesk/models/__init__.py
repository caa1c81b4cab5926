"""ORM models. Importing this package registers every table on Base.metadata."""

from .base import Base
from .course import Course
from .exam import Exam
from .incident import Incident, IncidentSeverity, IncidentStatus, IncidentType
from .institution import Department, Faculty, Institution
from .script import Script
from .user import User
from .venue import Venue

__all__ = [
    "Base",
    "Course",
    "Department",
    "Exam",
    "Faculty",
    "Incident",
    "IncidentSeverity",
    "IncidentStatus",
    "IncidentType",
    "Institution",
    "Script",
    "User",
    "Venue",
]
