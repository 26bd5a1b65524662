"""
Dynamic gateway: serves dataset-backed endpoints under the versioned prefix.

Request flow:

    Start -> KeyValidated -> EndpointResolved -> AccessGranted -> RowsComputed -> Responded -> Logged

Any step before Responded may end in Unauthenticated, InvalidCredential,
CredentialExpired, EndpointNotFound, AccessDenied or InternalError. Every
outcome that has a validated key produces exactly one UsageRecord; the
caller schedules it after the response is sent.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session, selectinload

from apihub.core.config import settings
from apihub.core.exceptions import (
    APIHubError,
    AccessDenied,
    CredentialExpired,
    EndpointNotFound,
    InternalError,
    InvalidCredential,
    Unauthenticated,
    error_body,
)
from apihub.core.security import hash_api_key
from apihub.models.api_key import APIKey, AccessLevel, KeyStatus
from apihub.models.dataset import Dataset
from apihub.models.endpoint import Endpoint, HTTPMethod
from apihub.schemas.gateway import GatewayMeta, GatewayResponse, ResponseConfig
from apihub.services.row_pipeline import run_pipeline
from apihub.services.usage_service import UsageRecord

logger = logging.getLogger(__name__)


class RequestContext(BaseModel):
    """The parts of an inbound gateway request the orchestrator needs."""
    method: str
    path: str  # relative to the version prefix, e.g. "/letters"
    query: Dict[str, str] = {}
    api_key: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class GatewayOutcome(BaseModel):
    """Response to send plus the bookkeeping to run after it is sent."""
    status_code: int
    body: Dict[str, Any]
    usage: Optional[UsageRecord] = None
    endpoint_hit: Optional[int] = None  # endpoint id whose counters should be bumped


def normalize_gateway_path(path: str) -> str:
    """
    Ensure an admin-supplied path carries the version prefix: 'x' and '/x' both
    become '/api/v1/x'. Gateway requests do not go through this.
    """
    prefix = settings.API_VERSION_PREFIX
    if path.startswith(prefix + "/"):
        return path
    if path.startswith("/"):
        return prefix + path
    return f"{prefix}/{path}"


class GatewayService:
    """Key validation, endpoint resolution, access checks and the row pipeline."""

    def __init__(self, db: Session):
        """
        Initialize gateway service.

        Args:
            db: Database session
        """
        self.db = db

    # -- Key Validator -----------------------------------------------------

    def validate_key(self, raw_key: Optional[str]) -> APIKey:
        """
        Resolve an X-API-Key secret to its key record.

        Raises:
            Unauthenticated: no secret presented
            InvalidCredential: unknown secret, or key not active
            CredentialExpired: key past its expiry time
        """
        if not raw_key:
            raise Unauthenticated()

        api_key = (
            self.db.query(APIKey)
            .options(selectinload(APIKey.endpoints))
            .filter(APIKey.key_hash == hash_api_key(raw_key))
            .first()
        )
        if api_key is None:
            logger.warning(f"Invalid API key attempted: {raw_key[:6]}...")
            raise InvalidCredential()

        if api_key.status != KeyStatus.ACTIVE:
            message = "API key has expired" if api_key.status == KeyStatus.EXPIRED else "API key has been revoked"
            raise InvalidCredential(message, status_code=403)

        if api_key.is_expired():
            raise CredentialExpired()

        return api_key

    # -- Endpoint Resolver -------------------------------------------------

    def resolve_endpoint(self, method: str, path: str) -> Endpoint:
        """
        Exact (path, method) match among active endpoints.

        Inactive and nonexistent endpoints are indistinguishable to the caller.
        """
        not_found = EndpointNotFound(f"Endpoint {method} {path} not found")
        try:
            http_method = HTTPMethod(method.upper())
        except ValueError:
            raise not_found

        endpoint = (
            self.db.query(Endpoint)
            .filter(
                Endpoint.path == path,
                Endpoint.method == http_method,
                Endpoint.is_active.is_(True),
            )
            .first()
        )
        if endpoint is None:
            raise not_found
        return endpoint

    # -- Access Checker ----------------------------------------------------

    @staticmethod
    def check_access(api_key: APIKey, endpoint: Endpoint) -> None:
        if not api_key.can_access_endpoint(endpoint.id):
            raise AccessDenied()

    # -- Dataset + Row Pipeline -------------------------------------------

    def load_dataset(self, endpoint: Endpoint) -> Dataset:
        dataset = endpoint.dataset
        if dataset is None or not dataset.is_active:
            raise EndpointNotFound("Dataset not found or inactive")
        return dataset

    def available_endpoints(self, api_key: APIKey) -> List[Endpoint]:
        """Active endpoints this key may call, sorted by path."""
        query = self.db.query(Endpoint).filter(Endpoint.is_active.is_(True))
        if api_key.access_level != AccessLevel.ALL:
            ids = api_key.endpoint_ids
            if not ids:
                return []
            query = query.filter(Endpoint.id.in_(ids))
        return query.order_by(Endpoint.path.asc()).all()

    # -- Orchestrator ------------------------------------------------------

    def serve(self, ctx: RequestContext) -> GatewayOutcome:
        """
        Run one gateway request to completion.

        Never raises: every failure becomes an error outcome. A usage record is
        attached whenever a key was validated.
        """
        started = time.perf_counter()
        api_key: Optional[APIKey] = None
        endpoint: Optional[Endpoint] = None
        # Exact match: the request path is always prefixed, never normalized
        path = settings.API_VERSION_PREFIX + ctx.path

        try:
            api_key = self.validate_key(ctx.api_key)
            endpoint = self.resolve_endpoint(ctx.method, path)
            self.check_access(api_key, endpoint)
            dataset = self.load_dataset(endpoint)

            logger.debug(f"Gateway request: {ctx.method} {path} query={ctx.query}")
            result = run_pipeline(
                dataset.data or [],
                ResponseConfig.model_validate(endpoint.response_config),
                ctx.query,
            )

            body = GatewayResponse(
                data=result.data,
                pagination=result.pagination,
                meta=GatewayMeta(
                    endpoint=endpoint.name,
                    method=ctx.method,
                    timestamp=datetime.now(timezone.utc).isoformat(),
                ),
            ).to_body()
            return GatewayOutcome(
                status_code=200,
                body=body,
                usage=self._usage(ctx, path, api_key, endpoint, 200, started),
                endpoint_hit=endpoint.id,
            )
        except APIHubError as e:
            # Access-denied requests keep the endpoint they were aimed at
            logger.info(f"Gateway {ctx.method} {path} -> {e.status_code}: {e.error}")
            return GatewayOutcome(
                status_code=e.status_code,
                body=error_body(e.error),
                usage=self._usage(ctx, path, api_key, endpoint, e.status_code, started, e.error),
            )
        except Exception as e:
            logger.error(f"Gateway error on {ctx.method} {path}: {e}", exc_info=True)
            error = InternalError()
            usage = self._usage(ctx, path, api_key, endpoint, error.status_code, started, str(e))
            self.db.rollback()
            return GatewayOutcome(
                status_code=error.status_code,
                body=error_body(error.error),
                usage=usage,
            )

    @staticmethod
    def _usage(
        ctx: RequestContext,
        path: str,
        api_key: Optional[APIKey],
        endpoint: Optional[Endpoint],
        status_code: int,
        started: float,
        error_message: Optional[str] = None,
    ) -> Optional[UsageRecord]:
        if api_key is None:
            return None
        return UsageRecord(
            api_key_id=api_key.id,
            endpoint_id=endpoint.id if endpoint is not None else None,
            user_id=api_key.assigned_to,
            method=ctx.method,
            path=path,
            query_params=dict(ctx.query),
            status_code=status_code,
            latency_ms=int((time.perf_counter() - started) * 1000),
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            error_message=error_message,
        )


def query_to_dict(query_params: Mapping[str, str]) -> Dict[str, str]:
    """Flatten query parameters to one value per name (the last one wins)."""
    return dict(query_params)
