"""
Basic security implementation for the booking sync service
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.core.config import get_settings

security = HTTPBasic()


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf8"), expected.encode("utf8"))


def get_current_username(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    """
    Simple HTTP Basic Auth against the admin account or one of the owner accounts
    """
    settings = get_settings()
    admin_password = settings.BASIC_AUTH_PASSWORD

    # If no password is set in production, raise an error
    if not admin_password and settings.ENVIRONMENT == "production":
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Basic auth password not configured"
        )

    # In development, allow a default password
    if not admin_password:
        admin_password = "changeme"

    if _matches(credentials.username, settings.BASIC_AUTH_USERNAME) and _matches(credentials.password, admin_password):
        return credentials.username

    owner_password: Optional[str] = settings.OWNER_ACCOUNTS.get(credentials.username)
    if owner_password and _matches(credentials.password, owner_password):
        return credentials.username

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Incorrect username or password",
        headers={"WWW-Authenticate": "Basic"},
    )


def is_admin(username: str) -> bool:
    return username == get_settings().BASIC_AUTH_USERNAME


# Optional: Create a dependency that can be easily added to routes
def require_auth():
    """
    Dependency to require authentication
    Usage: app.include_router(router, dependencies=[require_auth()])
    """
    return Depends(get_current_username)
