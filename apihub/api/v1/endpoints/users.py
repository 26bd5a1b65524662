"""
Admin user management endpoints.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from apihub.core.auth import require_admin
from apihub.core.database import get_db
from apihub.core.exceptions import APIHubError, InternalError
from apihub.models.user import User
from apihub.schemas.user import (
    MessageResponse,
    RoleUpdateRequest,
    UserDetailResponse,
    UserListResponse,
    UserResponse,
)
from apihub.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = UserService(db).list_users()
    return UserListResponse(items=[UserResponse.model_validate(u) for u in users], total=len(users))


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return UserDetailResponse(user=UserResponse.model_validate(UserService(db).get(user_id)))


@router.put("/{user_id}/role", response_model=UserDetailResponse)
async def update_user_role(
    user_id: int,
    request: RoleUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Set a user's role to "user" or "admin"."""
    try:
        user = UserService(db).set_role(user_id, request.role)
        return UserDetailResponse(user=UserResponse.model_validate(user))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error updating user role: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to update user role")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a user. Admins cannot delete themselves."""
    try:
        UserService(db).delete(user_id, acting_user=admin)
        return MessageResponse(message="User deleted successfully")
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error deleting user: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to delete user")
