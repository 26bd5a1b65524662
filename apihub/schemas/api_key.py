"""Schemas for API key management."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from apihub.models.api_key import AccessLevel, KeyStatus


class APIKeyCreateRequest(BaseModel):
    """Request schema for generating a new API key."""
    name: str = Field(..., min_length=1, max_length=100, description="Label/name for the API key")
    description: Optional[str] = Field(None, max_length=500)
    access_level: AccessLevel = AccessLevel.SPECIFIC
    endpoint_ids: List[int] = Field(default_factory=list, description="Allow-list used when access_level is 'specific'")
    assigned_to: Optional[int] = Field(None, description="User id; null shares the key with every developer")
    rate_limit: Optional[int] = Field(None, ge=1, description="Requests per hour; recorded, not enforced")
    expires_at: Optional[datetime] = None


class APIKeyUpdateRequest(BaseModel):
    """Request schema for updating an API key. The secret never changes here."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    access_level: Optional[AccessLevel] = None
    endpoint_ids: Optional[List[int]] = None
    assigned_to: Optional[int] = None
    unassign: bool = Field(False, description="Clear assigned_to, sharing the key with everyone")
    rate_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None


class AssigneeInfo(BaseModel):
    id: int
    name: str
    email: str

    model_config = {"from_attributes": True}


class APIKeyResponse(BaseModel):
    """Response schema for API key (safe fields only)."""
    id: int
    name: str
    description: Optional[str] = None
    key_prefix: str  # first ten characters + "..."
    status: KeyStatus
    access_level: AccessLevel
    endpoint_ids: List[int]
    assigned_to: Optional[int] = None
    assignee: Optional[AssigneeInfo] = None
    rate_limit: int
    total_usage: int
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class APIKeyDetailResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    api_key: APIKeyResponse


class APIKeyCreateResponse(BaseModel):
    """Response schema for key generation and regeneration (includes full key once)."""
    success: bool = True
    message: str
    api_key: APIKeyResponse
    key: str


class APIKeyListResponse(BaseModel):
    """Response schema for listing API keys."""
    success: bool = True
    items: List[APIKeyResponse]
    total: int


class AssignableUserListResponse(BaseModel):
    success: bool = True
    items: List[AssigneeInfo]
    total: int


class DeveloperAPIKey(BaseModel):
    """A key as shown to the developer it is shared with."""
    id: int
    name: str
    description: Optional[str] = None
    key_prefix: str
    full_key: Optional[str] = None
    access_level: AccessLevel
    endpoint_ids: List[int]
    shared: bool
    rate_limit: int
    total_usage: int
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime


class DeveloperAPIKeyListResponse(BaseModel):
    success: bool = True
    items: List[DeveloperAPIKey]
    total: int
