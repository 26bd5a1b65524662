"""
Service for managing generated endpoints.
"""
import logging
import re
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from apihub.core.config import settings
from apihub.core.exceptions import NotFound, ValidationError
from apihub.models.api_key import api_key_endpoints
from apihub.models.dataset import Dataset
from apihub.models.endpoint import Endpoint, HTTPMethod
from apihub.schemas.endpoint import (
    EndpointCreateRequest,
    EndpointResponse,
    EndpointTestResponse,
    EndpointUpdateRequest,
)
from apihub.schemas.gateway import ResponseConfig
from apihub.services.gateway_service import normalize_gateway_path
from apihub.services.row_pipeline import run_pipeline

logger = logging.getLogger(__name__)

PATH_PATTERN = re.compile(r"^/[a-zA-Z0-9\-_/]*$")


def normalize_endpoint_path(path: str) -> str:
    """
    Prefix a path with the API version and check its character set.

    Raises:
        ValidationError: path contains anything besides letters, digits, '-', '_' and '/'
    """
    normalized = normalize_gateway_path(path.strip())
    if not PATH_PATTERN.match(normalized):
        raise ValidationError("Path must start with / and contain only letters, numbers, hyphens, underscores, and slashes")
    return normalized


def endpoint_response(endpoint: Endpoint) -> EndpointResponse:
    dataset = endpoint.dataset
    return EndpointResponse(
        id=endpoint.id,
        name=endpoint.name,
        description=endpoint.description,
        method=endpoint.method,
        path=endpoint.path,
        dataset_id=endpoint.dataset_id,
        dataset_name=dataset.name if dataset else None,
        record_count=dataset.record_count if dataset else None,
        response_config=ResponseConfig.model_validate(endpoint.response_config),
        rate_limit=endpoint.rate_limit,
        is_active=endpoint.is_active,
        total_requests=endpoint.total_requests,
        last_accessed=endpoint.last_accessed,
        created_at=endpoint.created_at,
        updated_at=endpoint.updated_at,
    )


class EndpointService:
    """Service for endpoint CRUD and previews."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, endpoint_id: int) -> Endpoint:
        endpoint = self.db.get(Endpoint, endpoint_id)
        if endpoint is None:
            raise NotFound("Endpoint not found")
        return endpoint

    def list_endpoints(self, active_only: bool = False) -> List[Endpoint]:
        query = self.db.query(Endpoint).options(joinedload(Endpoint.dataset))
        if active_only:
            query = query.filter(Endpoint.is_active.is_(True))
        return query.order_by(Endpoint.created_at.desc(), Endpoint.id.desc()).all()

    def _require_dataset(self, dataset_id: int) -> Dataset:
        dataset = self.db.get(Dataset, dataset_id)
        if dataset is None:
            raise NotFound("Dataset not found")
        return dataset

    def _ensure_free(self, path: str, method: HTTPMethod, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(Endpoint).filter(Endpoint.path == path, Endpoint.method == method)
        if exclude_id is not None:
            query = query.filter(Endpoint.id != exclude_id)
        if query.first() is not None:
            raise ValidationError(f"Endpoint {method.value} {path} already exists")

    def _commit_unique(self, path: str, method: HTTPMethod) -> None:
        # The unique constraint catches a concurrent insert the pre-check missed
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError(f"Endpoint {method.value} {path} already exists")

    def create(self, request: EndpointCreateRequest, created_by: Optional[int] = None) -> Endpoint:
        path = normalize_endpoint_path(request.path)
        self._require_dataset(request.dataset_id)
        self._ensure_free(path, request.method)

        config = request.response_config
        endpoint = Endpoint(
            name=request.name,
            description=request.description,
            method=request.method,
            path=path,
            dataset_id=request.dataset_id,
            paginate=config.paginate,
            page_size=config.page_size,
            include_fields=list(config.include_fields),
            exclude_fields=list(config.exclude_fields),
            rate_limit=request.rate_limit or settings.DEFAULT_RATE_LIMIT,
            is_active=request.is_active,
            created_by=created_by,
        )
        self.db.add(endpoint)
        self._commit_unique(path, request.method)
        self.db.refresh(endpoint)
        logger.info(f"Created endpoint: id={endpoint.id}, {endpoint.method.value} {endpoint.path}")
        return endpoint

    def update(self, endpoint_id: int, request: EndpointUpdateRequest) -> Endpoint:
        """Apply a partial update; response configuration merges field by field."""
        endpoint = self.get(endpoint_id)

        path = normalize_endpoint_path(request.path) if request.path is not None else endpoint.path
        method = request.method or endpoint.method
        if path != endpoint.path or method != endpoint.method:
            self._ensure_free(path, method, exclude_id=endpoint.id)
            endpoint.path = path
            endpoint.method = method

        if request.dataset_id is not None and request.dataset_id != endpoint.dataset_id:
            self._require_dataset(request.dataset_id)
            endpoint.dataset_id = request.dataset_id

        for field in ("name", "description", "rate_limit", "is_active"):
            value = getattr(request, field)
            if value is not None:
                setattr(endpoint, field, value)

        if request.response_config is not None:
            for field, value in request.response_config.model_dump(exclude_none=True).items():
                setattr(endpoint, field, list(value) if isinstance(value, list) else value)

        self._commit_unique(path, method)
        self.db.refresh(endpoint)
        logger.info(f"Updated endpoint: id={endpoint_id}")
        return endpoint

    def toggle(self, endpoint_id: int) -> Endpoint:
        endpoint = self.get(endpoint_id)
        endpoint.is_active = not endpoint.is_active
        self.db.commit()
        self.db.refresh(endpoint)
        logger.info(f"Toggled endpoint: id={endpoint_id}, is_active={endpoint.is_active}")
        return endpoint

    def delete(self, endpoint_id: int) -> None:
        """Delete an endpoint after pulling it out of every key's allow-list."""
        endpoint = self.get(endpoint_id)
        result = self.db.execute(
            delete(api_key_endpoints).where(api_key_endpoints.c.endpoint_id == endpoint_id)
        )
        self.db.delete(endpoint)
        self.db.commit()
        logger.info(f"Deleted endpoint: id={endpoint_id}, removed from {result.rowcount} key allow-list(s)")

    def test(self, endpoint_id: int) -> EndpointTestResponse:
        """Run the row pipeline with no query parameters, as a first-page preview."""
        endpoint = self.get(endpoint_id)
        if not endpoint.is_active:
            raise ValidationError("Endpoint is inactive")
        dataset = endpoint.dataset
        if dataset is None or not dataset.is_active:
            raise ValidationError("Dataset not found or inactive")

        result = run_pipeline(
            dataset.data or [],
            ResponseConfig.model_validate(endpoint.response_config),
            {},
        )
        return EndpointTestResponse(data=result.data, pagination=result.pagination, total=result.total)
