"""
API routers.

api_router is mounted at /api (dashboard, admin and developer surfaces);
gateway_router is mounted at the versioned gateway prefix.
"""
from fastapi import APIRouter

from apihub.api.v1.endpoints import (
    api_keys,
    auth,
    dashboard,
    datasets,
    developer,
    endpoints,
    gateway,
    health,
    users,
)

api_router = APIRouter()

# Health check endpoint (no prefix, so it's /api/health)
api_router.include_router(health.router, tags=["health"])

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/admin/users", tags=["users"])
api_router.include_router(datasets.router, prefix="/admin/datasets", tags=["datasets"])
api_router.include_router(endpoints.router, prefix="/admin/endpoints", tags=["endpoints"])
api_router.include_router(api_keys.router, prefix="/admin/access-keys", tags=["access-keys"])
api_router.include_router(dashboard.router, prefix="/admin", tags=["dashboard"])
api_router.include_router(developer.router, prefix="/developer", tags=["developer"])

# Mounted directly by the app: its index route has an empty path, which
# include_router rejects without a prefix
gateway_router = gateway.router
