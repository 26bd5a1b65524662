"""Schemas for authentication and user management."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from apihub.core.roles import VALID_ROLES


class RegisterRequest(BaseModel):
    """Request schema for local account registration."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., description="At least 6 characters")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Please provide a valid email")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ExternalLoginRequest(BaseModel):
    """Sign-in with an ID token from the external identity provider."""
    id_token: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Response schema for user (safe fields only)."""
    id: int
    name: str
    email: str
    role: str
    auth_provider: str
    avatar: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserResponse


class UserDetailResponse(BaseModel):
    success: bool = True
    user: UserResponse


class UserListResponse(BaseModel):
    success: bool = True
    items: List[UserResponse]
    total: int


class RoleUpdateRequest(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in VALID_ROLES:
            raise ValueError('Invalid role. Must be "user" or "admin"')
        return v


class MessageResponse(BaseModel):
    success: bool = True
    message: str
