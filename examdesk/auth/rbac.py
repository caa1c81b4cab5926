"""Role gate for incident routes.

Roles come from the ``role`` claim of the caller's token; the role
catalogue itself is owned by the platform's user service.
"""

from fastapi import Depends, HTTPException, status

from ..dependencies import get_current_user
from ..utils.logging import get_logger

logger = get_logger("auth.rbac")

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_FACULTY_ADMIN = "FACULTY_ADMIN"
ROLE_EXAMS_OFFICER = "EXAMS_OFFICER"
ROLE_INVIGILATOR = "INVIGILATOR"
ROLE_LECTURER = "LECTURER"
ROLE_SCRIPT_HANDLER = "SCRIPT_HANDLER"
ROLE_STUDENT = "STUDENT"

# Who may manage incidents (update, assign, resolve, close, stats, per-user listings)
INCIDENT_OFFICERS = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_FACULTY_ADMIN, ROLE_EXAMS_OFFICER)

ROLES_LIST = INCIDENT_OFFICERS + (ROLE_INVIGILATOR,)
ROLES_VIEW = INCIDENT_OFFICERS + (ROLE_INVIGILATOR, ROLE_LECTURER)
ROLES_VIEW_SCRIPT = INCIDENT_OFFICERS + (ROLE_SCRIPT_HANDLER, ROLE_LECTURER)
ROLES_REPORT = INCIDENT_OFFICERS + (ROLE_INVIGILATOR, ROLE_LECTURER, ROLE_STUDENT)
ROLES_DELETE = (ROLE_SUPER_ADMIN, ROLE_ADMIN)


def require_role(*allowed_roles: str):
    """FastAPI dependency factory that checks the caller holds one of ``allowed_roles``."""
    async def _check(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") not in allowed_roles:
            logger.info("role_denied", user_id=current_user.get("id"), role=current_user.get("role"))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _check
