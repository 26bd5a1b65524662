"""
Admin endpoint management: define which dataset is served at which path.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from apihub.core.auth import require_admin
from apihub.core.database import get_db
from apihub.core.exceptions import APIHubError, InternalError
from apihub.models.user import User
from apihub.schemas.endpoint import (
    EndpointCreateRequest,
    EndpointDetailResponse,
    EndpointListResponse,
    EndpointTestResponse,
    EndpointUpdateRequest,
)
from apihub.schemas.user import MessageResponse
from apihub.services.endpoint_service import EndpointService, endpoint_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=EndpointListResponse)
async def list_endpoints(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List all endpoints with their dataset name and record count."""
    endpoints = EndpointService(db).list_endpoints()
    return EndpointListResponse(items=[endpoint_response(e) for e in endpoints], total=len(endpoints))


@router.get("/{endpoint_id}", response_model=EndpointDetailResponse)
async def get_endpoint(
    endpoint_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return EndpointDetailResponse(endpoint=endpoint_response(EndpointService(db).get(endpoint_id)))


@router.post("", response_model=EndpointDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_endpoint(
    request: EndpointCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Create an endpoint.

    The path is prefixed with the API version when missing; the (path, method)
    pair must be unused and the dataset must exist.
    """
    try:
        endpoint = EndpointService(db).create(request, created_by=admin.id)
        return EndpointDetailResponse(message="Endpoint created successfully", endpoint=endpoint_response(endpoint))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error creating endpoint: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to create endpoint")


@router.put("/{endpoint_id}", response_model=EndpointDetailResponse)
async def update_endpoint(
    endpoint_id: int,
    request: EndpointUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        endpoint = EndpointService(db).update(endpoint_id, request)
        return EndpointDetailResponse(message="Endpoint updated successfully", endpoint=endpoint_response(endpoint))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error updating endpoint {endpoint_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to update endpoint")


@router.patch("/{endpoint_id}/toggle", response_model=EndpointDetailResponse)
async def toggle_endpoint(
    endpoint_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Flip the active flag. Inactive endpoints answer 404 at the gateway."""
    try:
        endpoint = EndpointService(db).toggle(endpoint_id)
        state = "activated" if endpoint.is_active else "deactivated"
        return EndpointDetailResponse(message=f"Endpoint {state}", endpoint=endpoint_response(endpoint))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error toggling endpoint {endpoint_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to toggle endpoint")


@router.post("/{endpoint_id}/test", response_model=EndpointTestResponse)
async def test_endpoint(
    endpoint_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Preview the first page the endpoint would serve, without an API key."""
    return EndpointService(db).test(endpoint_id)


@router.delete("/{endpoint_id}", response_model=MessageResponse)
async def delete_endpoint(
    endpoint_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete an endpoint and remove it from every key's allow-list."""
    try:
        EndpointService(db).delete(endpoint_id)
        return MessageResponse(message="Endpoint deleted successfully")
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error deleting endpoint {endpoint_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to delete endpoint")
