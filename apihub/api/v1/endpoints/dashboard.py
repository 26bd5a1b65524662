"""
Admin dashboard statistics and audit log endpoints.
"""
import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from apihub.core.auth import require_admin
from apihub.core.database import get_db
from apihub.core.exceptions import InternalError
from apihub.models.user import User
from apihub.schemas.request_log import (
    ClearLogsResponse,
    DashboardStatsResponse,
    RequestLogListResponse,
)
from apihub.services import usage_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Totals, latency, error rate, status classes and the last 24 h of traffic."""
    return DashboardStatsResponse(**usage_service.dashboard_stats(db))


@router.get("/audit-logs", response_model=RequestLogListResponse)
async def get_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    method: Optional[str] = Query(None, description="HTTP method, or 'all'"),
    status: Optional[str] = Query(None, description="success | client-error | server-error"),
    search: Optional[str] = Query(None, description="Substring of the request path"),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    List gateway request logs, newest first.

    Filters combine; unknown status values are ignored.
    """
    logs, total = usage_service.query_request_logs(
        db, page=page, limit=limit, method=method, status_class=status, search=search
    )
    return RequestLogListResponse(
        items=[usage_service.request_log_response(log) for log in logs],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit),
    )


@router.delete("/audit-logs", response_model=ClearLogsResponse)
async def clear_audit_logs(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete every request log."""
    try:
        deleted = usage_service.clear_request_logs(db)
        logger.warning(f"Audit logs cleared by user {admin.id}: {deleted} rows")
        return ClearLogsResponse(message=f"Cleared {deleted} audit log(s)", deleted_count=deleted)
    except Exception as e:
        logger.error(f"Error clearing audit logs: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to clear audit logs")
