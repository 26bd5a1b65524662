"""Schemas for dataset management."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from apihub.models.dataset import DatasetSource


class DatasetCreateRequest(BaseModel):
    """
    Request schema for creating a dataset from a JSON body.

    `data` may be an array of records, a single object (wrapped into a
    one-element array) or a string holding JSON.
    """
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    data: Any = Field(..., description="Records as a JSON array, object or JSON string")


class DatasetUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    data: Optional[Any] = Field(None, description="Replacement records; replaces the payload wholesale")


class DatasetSummary(BaseModel):
    """Dataset without its payload."""
    id: int
    name: str
    description: Optional[str] = None
    schema_: Optional[Dict[str, str]] = Field(None, alias="schema", serialization_alias="schema")
    record_count: int
    file_type: DatasetSource
    original_filename: Optional[str] = None
    is_active: bool
    endpoint_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class DatasetDetail(DatasetSummary):
    data: List[Any] = Field(default_factory=list)


class DatasetResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    dataset: DatasetDetail


class DatasetListResponse(BaseModel):
    success: bool = True
    items: List[DatasetSummary]
    total: int


class DatasetDataResponse(BaseModel):
    """One window of a dataset's records."""
    success: bool = True
    data: List[Any]
    total: int
    limit: int
    offset: int
