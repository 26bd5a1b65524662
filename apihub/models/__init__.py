"""Database models."""
from apihub.models.user import User, AdminBootstrap
from apihub.models.dataset import Dataset
from apihub.models.endpoint import Endpoint
from apihub.models.api_key import APIKey, api_key_endpoints
from apihub.models.request_log import RequestLog

__all__ = [
    "User",
    "AdminBootstrap",
    "Dataset",
    "Endpoint",
    "APIKey",
    "api_key_endpoints",
    "RequestLog",
]
