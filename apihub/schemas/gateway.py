"""Schemas for the dynamic gateway (/api/v1)."""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ResponseConfig(BaseModel):
    """Per-endpoint pagination and projection settings."""
    paginate: bool = True
    page_size: int = Field(10, ge=1, le=100)
    include_fields: List[str] = Field(default_factory=list)
    exclude_fields: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class PaginationInfo(BaseModel):
    """Pagination summary. Serialized with camelCase flags for gateway clients."""
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool = Field(serialization_alias="hasNext")
    has_prev: bool = Field(serialization_alias="hasPrev")


class PipelineResult(BaseModel):
    """Output of the row pipeline for one request."""
    data: List[Any]
    total: int
    pagination: Optional[PaginationInfo] = None


class GatewayMeta(BaseModel):
    endpoint: str
    method: str
    timestamp: str


class GatewayResponse(BaseModel):
    """Success envelope returned by generated endpoints."""
    success: bool = True
    data: List[Any]
    pagination: Optional[PaginationInfo] = None
    meta: GatewayMeta

    def to_body(self) -> dict:
        body = self.model_dump(by_alias=True)
        # Unpaginated endpoints omit the key entirely; nulls inside rows are kept
        if body.get("pagination") is None:
            body.pop("pagination", None)
        return body


class AvailableEndpoint(BaseModel):
    name: str
    description: Optional[str] = None
    method: str
    path: str
    url: str


class AvailableEndpointsResponse(BaseModel):
    success: bool = True
    message: str = "Available endpoints for your API key"
    endpoints: List[AvailableEndpoint]
