"""Schemas for endpoint management."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from apihub.models.endpoint import HTTPMethod
from apihub.schemas.gateway import PaginationInfo, ResponseConfig


class ResponseConfigUpdate(BaseModel):
    """Partial response configuration; unset fields keep their stored value."""
    paginate: Optional[bool] = None
    page_size: Optional[int] = Field(None, ge=1, le=100)
    include_fields: Optional[List[str]] = None
    exclude_fields: Optional[List[str]] = None


class EndpointCreateRequest(BaseModel):
    """Request schema for creating an endpoint."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    method: HTTPMethod = HTTPMethod.GET
    path: str = Field(..., min_length=1, max_length=500, description="e.g. /users, normalized to /api/v1/users")
    dataset_id: int
    response_config: ResponseConfig = Field(default_factory=ResponseConfig)
    rate_limit: Optional[int] = Field(None, ge=1, description="Requests per hour; recorded, not enforced")
    is_active: bool = True


class EndpointUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    method: Optional[HTTPMethod] = None
    path: Optional[str] = Field(None, min_length=1, max_length=500)
    dataset_id: Optional[int] = None
    response_config: Optional[ResponseConfigUpdate] = None
    rate_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class EndpointResponse(BaseModel):
    """Response schema for endpoint."""
    id: int
    name: str
    description: Optional[str] = None
    method: HTTPMethod
    path: str
    dataset_id: int
    dataset_name: Optional[str] = None
    record_count: Optional[int] = None
    response_config: ResponseConfig
    rate_limit: int
    is_active: bool
    total_requests: int
    last_accessed: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EndpointDetailResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    endpoint: EndpointResponse


class EndpointListResponse(BaseModel):
    success: bool = True
    items: List[EndpointResponse]
    total: int


class EndpointTestResponse(BaseModel):
    """Admin preview of what the endpoint would serve on its first page."""
    success: bool = True
    data: List[Any]
    pagination: Optional[PaginationInfo] = None
    total: int
