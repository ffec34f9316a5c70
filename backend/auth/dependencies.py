"""
FastAPI dependencies for authentication.

get_current_user resolves the bearer token of a request to a User and rejects
every other case with 401.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import Settings, get_settings
from database import get_db
from models import User
from auth.security import verify_token, ACCESS_TOKEN_TYPE

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Extract and validate the current user from the JWT bearer token.

    Args:
        credentials: HTTP Bearer credentials (JWT token)
        db: Database session
        settings: Application settings (signing key)

    Returns:
        User object if authentication succeeds

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired, of the
            wrong type, or names a user that no longer exists

    Example:
        @app.get("/projects")
        def list_projects(user: User = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if credentials is None or not credentials.credentials:
        logger.info("No authentication credentials provided")
        raise _unauthenticated("Not authenticated")

    payload = verify_token(credentials.credentials, settings)
    if payload is None:
        raise _unauthenticated("Invalid or expired token")

    token_type = payload.get("type")
    if token_type != ACCESS_TOKEN_TYPE:
        logger.info(f"Invalid token type: {token_type}")
        raise _unauthenticated("Invalid or expired token")

    # Malformed subjects should return 401, not 500
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.info(f"Invalid user_id format in token: {payload.get('sub')}")
        raise _unauthenticated("Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.info(f"User not found for id: {user_id}")
        raise _unauthenticated("Invalid or expired token")

    logger.debug(f"User authenticated via JWT: {user.id}")
    return user
