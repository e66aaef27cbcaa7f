"""Authentication API endpoints."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from auth import (
    AuthManager, AuthError, AuthValidationError, DuplicateEmailError,
    InvalidCredentialsError, UserNotFoundError, get_current_user
)
from database import StoreUnavailableError
from ..deps import get_auth

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"]
)


class RegisterRequest(BaseModel):
    """Request model for registering a user."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Request model for logging in."""
    email: Optional[str] = None
    password: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    """Response model for login."""
    token: str


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, manager: AuthManager = Depends(get_auth)):
    """Register a new user."""
    try:
        await manager.register(request.username, request.email, request.password)
        return {"message": "User registered successfully"}
    except (AuthValidationError, DuplicateEmailError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except StoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, manager: AuthManager = Depends(get_auth)):
    """Check credentials and return a session token valid for one hour."""
    try:
        token = await manager.authenticate(request.email, request.password)
        return {"token": token}
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except (InvalidCredentialsError, AuthValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except (AuthError, StoreUnavailableError) as e:
        logger.error(f"Error logging in: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error logging in"
        )


@router.get("/me")
async def me(user: Dict[str, Any] = Depends(get_current_user)):
    """Return the identity behind the current session token."""
    return user


# Export the router
__all__ = ['router']
