"""
Developer dashboard endpoints: shared keys, usage stats, request history.
"""
import logging
import math

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from apihub.core.auth import get_current_user
from apihub.core.database import get_db
from apihub.models.user import User
from apihub.schemas.api_key import DeveloperAPIKeyListResponse
from apihub.schemas.endpoint import EndpointListResponse
from apihub.schemas.request_log import DeveloperStatsResponse, RequestLogListResponse
from apihub.services.api_key_service import APIKeyService, developer_key_view
from apihub.services.endpoint_service import EndpointService, endpoint_response
from apihub.services import usage_service

logger = logging.getLogger(__name__)

router = APIRouter()

STATS_WINDOW_DAYS = 30


@router.get("/api-keys", response_model=DeveloperAPIKeyListResponse)
async def get_my_api_keys(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active keys shared with every developer or assigned to the caller, with the secret for copying."""
    keys = APIKeyService(db).keys_for_developer(user)
    return DeveloperAPIKeyListResponse(items=[developer_key_view(k) for k in keys], total=len(keys))


@router.get("/stats", response_model=DeveloperStatsResponse)
async def get_my_stats(
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Usage over the last 30 days plus per-day request counts."""
    summary = usage_service.usage_summary(db, days=STATS_WINDOW_DAYS)
    return DeveloperStatsResponse(
        stats={**summary, "active_keys": usage_service.active_key_count(db)},
        daily_usage=usage_service.daily_usage(db, days=STATS_WINDOW_DAYS),
    )


@router.get("/history", response_model=RequestLogListResponse)
async def get_my_request_history(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    logs, total = usage_service.query_request_logs(db, page=page, limit=limit)
    return RequestLogListResponse(
        items=[usage_service.request_log_response(log) for log in logs],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit),
    )


@router.get("/endpoints", response_model=EndpointListResponse)
async def get_available_endpoints(
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """All active endpoints."""
    endpoints = EndpointService(db).list_endpoints(active_only=True)
    return EndpointListResponse(items=[endpoint_response(e) for e in endpoints], total=len(endpoints))
