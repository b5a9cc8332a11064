# =============================================================================
# Authentication Dependencies
# =============================================================================
# FastAPI dependencies for the operator-facing endpoints.
# =============================================================================

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.auth.providers import AuthenticatedUser, BasicAuthProvider
from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

security = HTTPBasic(realm="deployments")


def get_auth_provider(settings: Settings = Depends(get_settings)) -> BasicAuthProvider:
    return BasicAuthProvider(
        username=settings.webapp_username,
        password=settings.webapp_password,
    )


def get_current_user(
    credentials: HTTPBasicCredentials = Depends(security),
    auth_provider: BasicAuthProvider = Depends(get_auth_provider),
) -> AuthenticatedUser:
    """
    Validate HTTP Basic Auth credentials and return the operator.

    Raises:
        HTTPException: 401 Unauthorized if credentials are invalid.
    """
    user = auth_provider.authenticate(
        {
            "username": credentials.username,
            "password": credentials.password,
        }
    )

    if user is None:
        logger.warning("Rejected credentials for user %r", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": 'Basic realm="deployments"'},
        )

    return user
