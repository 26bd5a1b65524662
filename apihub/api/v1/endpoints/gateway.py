"""
Gateway routes under the versioned prefix.

Every dataset-backed endpoint is served by the catch-all route; usage is
recorded in background tasks that run after the response has been sent.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Security
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from apihub.core.auth import api_key_header
from apihub.core.config import settings
from apihub.core.database import get_db, get_session_factory
from apihub.models.api_key import APIKey
from apihub.schemas.gateway import AvailableEndpoint, AvailableEndpointsResponse
from apihub.services.gateway_service import GatewayService, RequestContext, query_to_dict
from apihub.services.usage_service import record_endpoint_hit, record_usage

logger = logging.getLogger(__name__)

router = APIRouter()

GATEWAY_METHODS = ["GET", "POST", "PUT", "DELETE"]


def require_api_key(
    raw_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db),
) -> APIKey:
    """Dependency for the gateway's own documentation routes."""
    return GatewayService(db).validate_key(raw_key)


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


@router.get("")
async def gateway_index(request: Request, _api_key: APIKey = Depends(require_api_key)):
    return {
        "success": True,
        "message": f"Welcome to {settings.APP_NAME} Gateway",
        "documentation": f"{_base_url(request)}{settings.API_VERSION_PREFIX}/endpoints",
        "version": "v1",
    }


@router.get("/endpoints", response_model=AvailableEndpointsResponse)
async def list_available_endpoints(
    request: Request,
    api_key: APIKey = Depends(require_api_key),
    db: Session = Depends(get_db),
):
    """Active endpoints this key may call, with absolute URLs."""
    base_url = _base_url(request)
    endpoints = GatewayService(db).available_endpoints(api_key)
    return AvailableEndpointsResponse(
        endpoints=[
            AvailableEndpoint(
                name=e.name,
                description=e.description,
                method=e.method.value,
                path=e.path,
                url=f"{base_url}{e.path}",
            )
            for e in endpoints
        ]
    )


@router.api_route("/{endpoint_path:path}", methods=GATEWAY_METHODS)
async def handle_gateway_request(
    endpoint_path: str,
    request: Request,
    background_tasks: BackgroundTasks,
    raw_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Serve a dataset-backed endpoint.

    POST, PUT and DELETE endpoints are read-only too: they return rows exactly
    like GET. Query parameters drive filtering, sorting and pagination.
    """
    ctx = RequestContext(
        method=request.method,
        path=f"/{endpoint_path}",
        query=query_to_dict(request.query_params),
        api_key=raw_key,
        ip_address=request.client.host if request.client else None,
        user_agent=(request.headers.get("user-agent") or "")[:255] or None,
    )
    outcome = GatewayService(db).serve(ctx)

    if outcome.usage is not None:
        background_tasks.add_task(record_usage, session_factory, outcome.usage)
    if outcome.endpoint_hit is not None:
        background_tasks.add_task(record_endpoint_hit, session_factory, outcome.endpoint_hit)

    # FastAPI attaches background_tasks to a returned Response that has none of its own
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
