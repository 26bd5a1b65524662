"""Schemas for request logs, dashboards and developer usage stats."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class RequestLogResponse(BaseModel):
    id: int
    timestamp: datetime
    api_key_id: Optional[int] = None
    api_key_name: Optional[str] = None
    api_key_prefix: Optional[str] = None
    endpoint_id: Optional[int] = None
    endpoint_name: Optional[str] = None
    user_id: Optional[int] = None
    method: str
    path: str
    query_params: Optional[Dict[str, Any]] = None
    status_code: int
    latency_ms: int
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class RequestLogListResponse(BaseModel):
    success: bool = True
    items: List[RequestLogResponse]
    total: int
    page: int
    limit: int
    pages: int


class ClearLogsResponse(BaseModel):
    success: bool = True
    message: str
    deleted_count: int


class DashboardStats(BaseModel):
    total_requests: int
    global_latency: float
    active_endpoints: int
    error_rate: float


class TrafficPoint(BaseModel):
    time: str
    value: int


class StatusDistribution(BaseModel):
    success: int
    client_error: int
    server_error: int


class DashboardStatsResponse(BaseModel):
    success: bool = True
    stats: DashboardStats
    traffic_data: List[TrafficPoint]
    status_codes: StatusDistribution


class DailyCount(BaseModel):
    date: str
    count: int


class DeveloperStats(BaseModel):
    total_requests: int
    avg_latency: float
    success_rate: float
    error_count: int
    active_keys: int


class DeveloperStatsResponse(BaseModel):
    success: bool = True
    stats: DeveloperStats
    daily_usage: List[DailyCount]
