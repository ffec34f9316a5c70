"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration
- Login
- Fetching the authenticated user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import schemas
from config import Settings, get_settings
from database import get_db
from models import User
from auth.security import hash_password, verify_password, issue_user_token
from auth.dependencies import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response schemas
class RegisterRequest(schemas.ApiModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)


class LoginRequest(schemas.ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)


class AuthUser(schemas.ApiModel):
    id: int
    name: str
    email: str


class AuthResponse(schemas.ApiModel):
    token: str
    user: AuthUser


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new user account.

    Returns:
        Access token and the created user

    Raises:
        HTTPException: 409 if the email is already registered
    """
    email = _normalize_email(request.email)
    logger.info("Registration attempt")

    if db.query(User).filter(User.email == email).first():
        logger.info("Registration failed: email already in use")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

    new_user = User(name=request.name, email=email, password_hash=hash_password(request.password))
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration won the unique constraint
        db.rollback()
        logger.info("Registration failed: email already in use (constraint)")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    db.refresh(new_user)

    logger.info(f"User registered successfully (ID: {new_user.id})")
    return {"token": issue_user_token(new_user, settings), "user": new_user}


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Login with email and password.

    Unknown email and wrong password produce the same response.

    Raises:
        HTTPException: 401 if credentials are invalid
    """
    user = db.query(User).filter(User.email == _normalize_email(request.email)).first()
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info("Login failed: invalid credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info(f"User logged in successfully (ID: {user.id})")
    return {"token": issue_user_token(user, settings), "user": user}


@router.get("/me", response_model=schemas.User)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user."""
    return current_user
