"""
Service for the API key lifecycle: generate, update, revoke, regenerate, delete.

Only the SHA-256 hash of a secret is used for lookup. The cleartext is
returned once from generate/regenerate and, when STORE_KEY_SECRETS is on,
also kept in full_key so developers the key is shared with can copy it later.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from apihub.core.config import settings
from apihub.core.exceptions import NotFound, ValidationError
from apihub.core.security import generate_api_key, hash_api_key, key_display_prefix
from apihub.models.api_key import APIKey, AccessLevel, KeyStatus
from apihub.models.endpoint import Endpoint
from apihub.models.user import User
from apihub.schemas.api_key import (
    APIKeyCreateRequest,
    APIKeyResponse,
    APIKeyUpdateRequest,
    AssigneeInfo,
    DeveloperAPIKey,
)

logger = logging.getLogger(__name__)


def api_key_response(api_key: APIKey) -> APIKeyResponse:
    """Safe view of a key: display prefix only, never the hash or secret."""
    return APIKeyResponse(
        id=api_key.id,
        name=api_key.name,
        description=api_key.description,
        key_prefix=api_key.key_prefix,
        status=api_key.status,
        access_level=api_key.access_level,
        endpoint_ids=sorted(api_key.endpoint_ids),
        assigned_to=api_key.assigned_to,
        assignee=AssigneeInfo.model_validate(api_key.assignee) if api_key.assignee else None,
        rate_limit=api_key.rate_limit,
        total_usage=api_key.total_usage,
        last_used_at=api_key.last_used_at,
        expires_at=api_key.expires_at,
        created_at=api_key.created_at,
    )


def developer_key_view(api_key: APIKey) -> DeveloperAPIKey:
    return DeveloperAPIKey(
        id=api_key.id,
        name=api_key.name,
        description=api_key.description,
        key_prefix=api_key.key_prefix,
        full_key=api_key.full_key,
        access_level=api_key.access_level,
        endpoint_ids=sorted(api_key.endpoint_ids),
        shared=api_key.assigned_to is None,
        rate_limit=api_key.rate_limit,
        total_usage=api_key.total_usage,
        last_used_at=api_key.last_used_at,
        expires_at=api_key.expires_at,
        created_at=api_key.created_at,
    )


class APIKeyService:
    """Service for API key management."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key_id: int) -> APIKey:
        api_key = (
            self.db.query(APIKey)
            .options(selectinload(APIKey.endpoints), selectinload(APIKey.assignee))
            .filter(APIKey.id == key_id)
            .first()
        )
        if api_key is None:
            raise NotFound("API key not found")
        return api_key

    def list_keys(self) -> List[APIKey]:
        return (
            self.db.query(APIKey)
            .options(selectinload(APIKey.endpoints), selectinload(APIKey.assignee))
            .order_by(APIKey.created_at.desc(), APIKey.id.desc())
            .all()
        )

    def keys_for_developer(self, user: User) -> List[APIKey]:
        """Active keys shared with everyone or assigned to `user`."""
        return (
            self.db.query(APIKey)
            .options(selectinload(APIKey.endpoints))
            .filter(
                APIKey.status == KeyStatus.ACTIVE,
                or_(APIKey.assigned_to.is_(None), APIKey.assigned_to == user.id),
            )
            .order_by(APIKey.created_at.desc(), APIKey.id.desc())
            .all()
        )

    def _resolve_endpoints(self, endpoint_ids: List[int]) -> List[Endpoint]:
        wanted = set(endpoint_ids)
        if not wanted:
            return []
        endpoints = self.db.query(Endpoint).filter(Endpoint.id.in_(wanted)).all()
        missing = wanted - {e.id for e in endpoints}
        if missing:
            raise ValidationError(f"Endpoint(s) not found: {', '.join(str(i) for i in sorted(missing))}")
        return endpoints

    def _require_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise ValidationError("Assigned user not found")
        return user

    def _new_secret(self, api_key: APIKey) -> str:
        secret = generate_api_key()
        api_key.key_hash = hash_api_key(secret)
        api_key.key_prefix = key_display_prefix(secret)
        api_key.full_key = secret if settings.STORE_KEY_SECRETS else None
        return secret

    def generate(self, request: APIKeyCreateRequest, created_by: Optional[int] = None) -> Tuple[APIKey, str]:
        """
        Create a key and return it with its cleartext secret.

        Returns:
            (APIKey, secret) - the secret is not retrievable from the hash afterwards
        """
        endpoints = []
        if request.access_level == AccessLevel.SPECIFIC:
            endpoints = self._resolve_endpoints(request.endpoint_ids)
        if request.assigned_to is not None:
            self._require_user(request.assigned_to)

        api_key = APIKey(
            name=request.name,
            description=request.description,
            status=KeyStatus.ACTIVE,
            access_level=request.access_level,
            assigned_to=request.assigned_to,
            rate_limit=request.rate_limit or settings.DEFAULT_RATE_LIMIT,
            expires_at=request.expires_at,
            created_by=created_by,
        )
        api_key.endpoints = endpoints
        secret = self._new_secret(api_key)

        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)
        logger.info(
            f"Generated API key: id={api_key.id}, prefix={api_key.key_prefix}, access={api_key.access_level.value}"
        )
        return api_key, secret

    def update(self, key_id: int, request: APIKeyUpdateRequest) -> APIKey:
        api_key = self.get(key_id)

        if request.name is not None:
            api_key.name = request.name
        if request.description is not None:
            api_key.description = request.description
        if request.access_level is not None:
            api_key.access_level = request.access_level
        if request.endpoint_ids is not None:
            api_key.endpoints = self._resolve_endpoints(request.endpoint_ids)
        if request.unassign:
            api_key.assigned_to = None
        elif request.assigned_to is not None:
            self._require_user(request.assigned_to)
            api_key.assigned_to = request.assigned_to
        if request.rate_limit is not None:
            api_key.rate_limit = request.rate_limit
        if request.expires_at is not None:
            api_key.expires_at = request.expires_at

        self.db.commit()
        logger.info(f"Updated API key: id={key_id}")
        return self.get(key_id)

    def toggle_revoke(self, key_id: int) -> APIKey:
        """Revoke an active key, or reactivate any other."""
        api_key = self.get(key_id)
        api_key.status = KeyStatus.REVOKED if api_key.status == KeyStatus.ACTIVE else KeyStatus.ACTIVE
        self.db.commit()
        self.db.refresh(api_key)
        logger.info(f"API key {key_id} status -> {api_key.status.value}")
        return api_key

    def regenerate(self, key_id: int) -> Tuple[APIKey, str]:
        """Issue a new secret. The old one stops matching immediately; usage restarts at zero."""
        api_key = self.get(key_id)
        secret = self._new_secret(api_key)
        api_key.status = KeyStatus.ACTIVE
        api_key.total_usage = 0
        self.db.commit()
        self.db.refresh(api_key)
        logger.info(f"Regenerated API key: id={key_id}, prefix={api_key.key_prefix}")
        return api_key, secret

    def delete(self, key_id: int) -> None:
        api_key = self.get(key_id)
        self.db.delete(api_key)
        self.db.commit()
        logger.info(f"Deleted API key: id={key_id}")
