"""
Usage recording and request-log aggregates.

record_usage and record_endpoint_hit run as background tasks after the
gateway response has been sent. Delivery is at-most-once and best-effort:
failures are logged for operators and never reach the caller, and a crash
between "response sent" and "log written" loses that entry.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import case, func, update
from sqlalchemy.orm import Session, joinedload, sessionmaker

from apihub.models.api_key import APIKey, KeyStatus
from apihub.models.endpoint import Endpoint
from apihub.models.request_log import RequestLog
from apihub.schemas.request_log import RequestLogResponse

logger = logging.getLogger(__name__)


class UsageRecord(BaseModel):
    """Everything needed to append one RequestLog row."""
    api_key_id: int
    endpoint_id: Optional[int] = None
    user_id: Optional[int] = None
    method: str
    path: str
    query_params: Dict[str, Any] = {}
    status_code: int
    latency_ms: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    error_message: Optional[str] = None


def record_usage(session_factory: sessionmaker, record: UsageRecord) -> None:
    """
    Append a RequestLog and bump the key's usage counter and last-used time.

    Opens its own session; the request session is already closed by the time
    this runs.
    """
    db = session_factory()
    try:
        db.add(RequestLog(**record.model_dump()))
        db.execute(
            update(APIKey)
            .where(APIKey.id == record.api_key_id)
            .values(
                total_usage=APIKey.total_usage + 1,
                last_used_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
        logger.debug(
            f"Recorded usage: key={record.api_key_id} {record.method} {record.path} -> {record.status_code}"
        )
    except Exception as e:
        db.rollback()
        logger.error(
            f"Error logging request (key={record.api_key_id}, {record.method} {record.path}): {e}",
            exc_info=True,
        )
    finally:
        db.close()


def record_endpoint_hit(session_factory: sessionmaker, endpoint_id: int) -> None:
    """Increment an endpoint's request counter and refresh last_accessed."""
    db = session_factory()
    try:
        db.execute(
            update(Endpoint)
            .where(Endpoint.id == endpoint_id)
            .values(
                total_requests=Endpoint.total_requests + 1,
                last_accessed=datetime.now(timezone.utc),
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Error updating endpoint stats (endpoint_id={endpoint_id}): {e}")
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

def _success_rate(success_count: int, total: int, precision: int = 0) -> float:
    if total <= 0:
        return 0
    return round(success_count / total * 100, precision)


def usage_summary(db: Session, days: int = 30, api_key_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Request totals over the last `days` days, optionally for a single key.

    Returns total_requests, avg_latency (ms, rounded), success_rate (%),
    error_count. Success means status < 400.
    """
    since = datetime.now(timezone.utc) - timedelta(days=days)
    query = db.query(
        func.count(RequestLog.id),
        func.avg(RequestLog.latency_ms),
        func.sum(case((RequestLog.status_code < 400, 1), else_=0)),
        func.sum(case((RequestLog.status_code >= 400, 1), else_=0)),
    ).filter(RequestLog.timestamp >= since)
    if api_key_id is not None:
        query = query.filter(RequestLog.api_key_id == api_key_id)

    total, avg_latency, success_count, error_count = query.one()
    total = total or 0
    return {
        "total_requests": total,
        "avg_latency": round(avg_latency or 0),
        "success_rate": _success_rate(success_count or 0, total, precision=1),
        "error_count": error_count or 0,
    }


def daily_usage(db: Session, days: int = 30) -> List[Dict[str, Any]]:
    """Request counts per calendar day (UTC), oldest first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    timestamps = db.query(RequestLog.timestamp).filter(RequestLog.timestamp >= since).all()
    counts = Counter(ts.strftime("%Y-%m-%d") for (ts,) in timestamps)
    return [{"date": day, "count": counts[day]} for day in sorted(counts)]


def status_distribution(db: Session) -> Dict[str, int]:
    """Counts by status class: success (<300), client_error (<500), server_error."""
    success, client_error, server_error = db.query(
        func.sum(case((RequestLog.status_code < 300, 1), else_=0)),
        func.sum(case(((RequestLog.status_code >= 300) & (RequestLog.status_code < 500), 1), else_=0)),
        func.sum(case((RequestLog.status_code >= 500, 1), else_=0)),
    ).one()
    return {
        "success": success or 0,
        "client_error": client_error or 0,
        "server_error": server_error or 0,
    }


TRAFFIC_BUCKET_HOURS = (0, 4, 8, 12, 16, 20)


def traffic_last_24h(db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Request counts for the last 24 hours, sampled at hours 0, 4, ... 20 of the
    day plus a closing '23:59' point for hour 23.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(hours=24)
    timestamps = db.query(RequestLog.timestamp).filter(RequestLog.timestamp >= since).all()
    per_hour = Counter(ts.hour for (ts,) in timestamps)

    series = [{"time": f"{hour:02d}:00", "value": per_hour.get(hour, 0)} for hour in TRAFFIC_BUCKET_HOURS]
    series.append({"time": "23:59", "value": per_hour.get(23, 0)})
    return series


def dashboard_stats(db: Session) -> Dict[str, Any]:
    """Admin overview: totals, latency, active endpoints, error rate, status classes, traffic."""
    total_requests = db.query(func.count(RequestLog.id)).scalar() or 0
    avg_latency = db.query(func.avg(RequestLog.latency_ms)).scalar()
    error_count = db.query(func.count(RequestLog.id)).filter(RequestLog.status_code >= 400).scalar() or 0
    active_endpoints = db.query(func.count(Endpoint.id)).filter(Endpoint.is_active.is_(True)).scalar() or 0

    return {
        "stats": {
            "total_requests": total_requests,
            "global_latency": round(avg_latency or 0),
            "active_endpoints": active_endpoints,
            "error_rate": round(error_count / total_requests * 100) if total_requests else 0,
        },
        "traffic_data": traffic_last_24h(db),
        "status_codes": status_distribution(db),
    }


def active_key_count(db: Session) -> int:
    return db.query(func.count(APIKey.id)).filter(APIKey.status == KeyStatus.ACTIVE).scalar() or 0


# ---------------------------------------------------------------------------
# Request log listing
# ---------------------------------------------------------------------------

STATUS_CLASS_FILTERS = {
    "success": (RequestLog.status_code >= 200) & (RequestLog.status_code < 300),
    "client-error": (RequestLog.status_code >= 400) & (RequestLog.status_code < 500),
    "server-error": RequestLog.status_code >= 500,
}


def query_request_logs(
    db: Session,
    page: int = 1,
    limit: int = 100,
    method: Optional[str] = None,
    status_class: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[RequestLog], int]:
    """
    Request logs newest first, with optional filters.

    Args:
        method: exact HTTP method; "all" or None disables the filter
        status_class: success | client-error | server-error; anything else is ignored
        search: case-insensitive substring of the request path

    Returns:
        (page of RequestLog rows, total matching)
    """
    query = db.query(RequestLog)
    if method and method.lower() != "all":
        query = query.filter(RequestLog.method == method.upper())
    if status_class in STATUS_CLASS_FILTERS:
        query = query.filter(STATUS_CLASS_FILTERS[status_class])
    if search:
        query = query.filter(func.lower(RequestLog.path).contains(search.lower(), autoescape=True))

    total = query.count()
    logs = (
        query.options(joinedload(RequestLog.api_key), joinedload(RequestLog.endpoint))
        .order_by(RequestLog.timestamp.desc(), RequestLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total


def clear_request_logs(db: Session) -> int:
    """Delete every request log. Returns the number removed."""
    deleted = db.query(RequestLog).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Cleared {deleted} request logs")
    return deleted


def request_log_response(log: RequestLog) -> RequestLogResponse:
    return RequestLogResponse(
        id=log.id,
        timestamp=log.timestamp,
        api_key_id=log.api_key_id,
        api_key_name=log.api_key.name if log.api_key else None,
        api_key_prefix=log.api_key.key_prefix if log.api_key else None,
        endpoint_id=log.endpoint_id,
        endpoint_name=log.endpoint.name if log.endpoint else None,
        user_id=log.user_id,
        method=log.method,
        path=log.path,
        query_params=log.query_params,
        status_code=log.status_code,
        latency_ms=log.latency_ms,
        error_message=log.error_message,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
    )
