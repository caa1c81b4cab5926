"""Typed incident errors.

Every failure the lifecycle and query layers report carries an ``ErrorKind``;
the HTTP boundary maps kinds to status codes without looking at messages.
"""

import enum


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNEXPECTED = "unexpected"


class IncidentError(Exception):
    """Base class for incident-management failures."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, **self.context}


class IncidentValidationError(IncidentError):
    kind = ErrorKind.VALIDATION


class IncidentNotFoundError(IncidentError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: int):
        super().__init__(f"{entity} not found", entity=entity.lower(), id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class IncidentConflictError(IncidentError):
    kind = ErrorKind.CONFLICT
