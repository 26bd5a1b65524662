"""
Error taxonomy.

Every error is surfaced to the HTTP caller as {"success": false, "error": <message>}
by the handlers registered in apihub.main. Nothing here is retried.
"""
from fastapi import status


class APIHubError(Exception):
    """Base class for errors that map onto a fixed HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None, status_code: int = None):
        self.error = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.error)


class Unauthenticated(APIHubError):
    """No credential was presented."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "API key is required. Include X-API-Key header."


class InvalidCredential(APIHubError):
    """The credential is unknown or no longer active."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid API key"


class CredentialExpired(APIHubError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "API key has expired"


class EndpointNotFound(APIHubError):
    """No active endpoint matches the method and path (or its dataset is inactive)."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Endpoint not found"


class AccessDenied(APIHubError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "API key does not have access to this endpoint"


class ValidationError(APIHubError):
    """Malformed admin input: missing fields, duplicates, blocked deletes."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFound(APIHubError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InternalError(APIHubError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


def error_body(message: str) -> dict:
    """The fixed error envelope."""
    return {"success": False, "error": message}
