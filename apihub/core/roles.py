"""
Role definitions for RBAC.

Roles in hierarchy (lowest to highest):
- user: developer access - shared keys, endpoint catalogue, request console, own stats
- admin: full access including datasets, endpoints, keys, users and logs
"""
from enum import Enum
from typing import Dict, Set


class Role(str, Enum):
    """User roles with hierarchy."""
    USER = "user"
    ADMIN = "admin"


ROLE_HIERARCHY: Dict[str, int] = {
    Role.USER.value: 1,
    Role.ADMIN.value: 2,
}

VALID_ROLES: Set[str] = {r.value for r in Role}


def normalize_role(role: str) -> str:
    """
    Normalize role string.

    Unknown roles fall back to the least privileged role.
    """
    role_lower = (role or "").lower().strip()
    if role_lower in VALID_ROLES:
        return role_lower
    return Role.USER.value


def has_permission(user_role: str, required_role: str) -> bool:
    """
    Check if user role has permission for required role.

    Args:
        user_role: User's role
        required_role: Minimum required role

    Returns:
        True if user has sufficient permissions
    """
    user_level = ROLE_HIERARCHY.get(normalize_role(user_role), 0)
    required_level = ROLE_HIERARCHY.get(normalize_role(required_role), 0)
    return user_level >= required_level
