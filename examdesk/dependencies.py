"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import ExamDeskConfig, get_config
from .database import get_session_factory
from .utils.logging import get_logger
from .utils.security import decode_access_token

_dep_logger = get_logger("dependencies")

security_scheme = HTTPBearer(auto_error=False)

_config_instance: ExamDeskConfig | None = None
_incident_manager = None


def get_app_config() -> ExamDeskConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    config: ExamDeskConfig = Depends(get_app_config),
) -> dict:
    """Validate the bearer token and return ``{"id": int, "role": str}`` for the caller."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials, config.secret_key, config.jwt_algorithm)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        _dep_logger.warning("token_subject_invalid", sub=payload.get("sub"))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    return {"id": user_id, "role": payload.get("role", "")}


def get_incident_manager():
    """Get the incident manager singleton."""
    global _incident_manager
    if _incident_manager is None:
        from .engine.incident_manager import IncidentManager
        config = get_app_config()
        _incident_manager = IncidentManager(db_session_factory=get_session_factory(config))
    return _incident_manager
