"""
API key management endpoints (admin only).
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from apihub.core.auth import require_admin
from apihub.core.database import get_db
from apihub.core.exceptions import APIHubError, InternalError
from apihub.models.user import User
from apihub.schemas.api_key import (
    APIKeyCreateRequest,
    APIKeyCreateResponse,
    APIKeyDetailResponse,
    APIKeyListResponse,
    APIKeyUpdateRequest,
    AssignableUserListResponse,
    AssigneeInfo,
)
from apihub.schemas.user import MessageResponse
from apihub.services.api_key_service import APIKeyService, api_key_response
from apihub.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=APIKeyListResponse)
async def list_api_keys(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    List all API keys.

    Returns safe fields only (display prefix, never the hash or secret).
    """
    keys = APIKeyService(db).list_keys()
    logger.info(f"Listed {len(keys)} API keys")
    return APIKeyListResponse(items=[api_key_response(k) for k in keys], total=len(keys))


@router.get("/users", response_model=AssignableUserListResponse)
async def list_assignable_users(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Active users a key can be assigned to."""
    users = UserService(db).list_users(active_only=True)
    return AssignableUserListResponse(items=[AssigneeInfo.model_validate(u) for u in users], total=len(users))


@router.get("/{key_id}", response_model=APIKeyDetailResponse)
async def get_api_key(
    key_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return APIKeyDetailResponse(api_key=api_key_response(APIKeyService(db).get(key_id)))


@router.post("/generate", response_model=APIKeyCreateResponse, status_code=status.HTTP_201_CREATED)
async def generate_api_key(
    request: APIKeyCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Generate a new API key.

    The full secret is in this response; lookups only ever use its hash.
    """
    try:
        api_key, secret = APIKeyService(db).generate(request, created_by=admin.id)
        return APIKeyCreateResponse(
            message="API key generated successfully. Save it now; it will not be shown again.",
            api_key=api_key_response(api_key),
            key=secret,
        )
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error generating API key: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to generate API key")


@router.put("/{key_id}", response_model=APIKeyDetailResponse)
async def update_api_key(
    key_id: int,
    request: APIKeyUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update name, scope, assignment, rate limit or expiry."""
    try:
        api_key = APIKeyService(db).update(key_id, request)
        return APIKeyDetailResponse(message="API key updated successfully", api_key=api_key_response(api_key))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error updating API key {key_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to update API key")


@router.patch("/{key_id}/revoke", response_model=APIKeyDetailResponse)
async def revoke_api_key(
    key_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Toggle between revoked and active."""
    try:
        api_key = APIKeyService(db).toggle_revoke(key_id)
        state = "revoked" if api_key.status.value == "revoked" else "activated"
        return APIKeyDetailResponse(message=f"API key {state}", api_key=api_key_response(api_key))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error revoking API key {key_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to revoke API key")


@router.post("/{key_id}/regenerate", response_model=APIKeyCreateResponse)
async def regenerate_api_key(
    key_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Issue a new secret for the key. The previous secret stops working at once."""
    try:
        api_key, secret = APIKeyService(db).regenerate(key_id)
        return APIKeyCreateResponse(
            message="API key regenerated successfully. The old key no longer works.",
            api_key=api_key_response(api_key),
            key=secret,
        )
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error regenerating API key {key_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to regenerate API key")


@router.delete("/{key_id}", response_model=MessageResponse)
async def delete_api_key(
    key_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete an API key. Its request logs are kept with the key reference cleared."""
    try:
        APIKeyService(db).delete(key_id)
        return MessageResponse(message="API key deleted successfully")
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error deleting API key {key_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to delete API key")
