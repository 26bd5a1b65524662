"""
Dashboard sign-in endpoints: local accounts, external identity provider and
first-admin promotion.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from apihub.core.auth import get_current_user
from apihub.core.database import get_db
from apihub.core.exceptions import APIHubError, InternalError
from apihub.core.security import (
    ExternalToken,
    classify_token,
    create_access_token,
    decode_external_token,
)
from apihub.models.user import User
from apihub.schemas.user import (
    AuthResponse,
    CurrentUserResponse,
    ExternalLoginRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)
from apihub.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a local account and sign it in."""
    try:
        user = UserService(db).register(request.name, request.email, request.password)
        return _auth_response(user)
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error registering user: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to register user")


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Sign in with email and password. Accounts created through the identity provider are refused."""
    try:
        user = UserService(db).authenticate(request.email, request.password)
        logger.info(f"User signed in: id={user.id}")
        return _auth_response(user)
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error during login: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to sign in")


@router.post("/external", response_model=AuthResponse)
async def external_login(request: ExternalLoginRequest, db: Session = Depends(get_db)):
    """
    Exchange an identity-provider ID token for a local token.

    The user is found by provider subject or email, or created on first sign-in.
    """
    token = classify_token(request.id_token)
    if not isinstance(token, ExternalToken):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid identity token")

    claims = decode_external_token(token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid identity token")

    try:
        user = UserService(db).get_or_create_external(claims)
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User account is deactivated")
        return _auth_response(user)
    except (APIHubError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Error during external sign-in: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to sign in")


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Get the signed-in user. Useful for the frontend to decide which dashboard to show."""
    return CurrentUserResponse(user=UserResponse.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    logger.info(f"User signed out: id={user.id}")
    return MessageResponse(message="Logged out successfully")


@router.post("/make-admin", response_model=CurrentUserResponse)
async def make_first_admin(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Promote the caller to admin. Succeeds for exactly one caller ever."""
    try:
        promoted = UserService(db).make_first_admin(user)
        return CurrentUserResponse(user=UserResponse.model_validate(promoted))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error promoting first admin: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to promote user")
