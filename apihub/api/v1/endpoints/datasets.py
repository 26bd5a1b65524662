"""
Admin dataset endpoints: JSON body creation, file upload, preview and CRUD.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from apihub.core.auth import require_admin
from apihub.core.database import get_db
from apihub.core.exceptions import APIHubError, InternalError
from apihub.models.user import User
from apihub.schemas.dataset import (
    DatasetCreateRequest,
    DatasetDataResponse,
    DatasetListResponse,
    DatasetResponse,
    DatasetUpdateRequest,
)
from apihub.schemas.user import MessageResponse
from apihub.services.dataset_service import DatasetService, parse_body_data

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=DatasetListResponse)
async def list_datasets(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List all datasets, newest first. Payloads are omitted."""
    items = DatasetService(db).list_datasets()
    return DatasetListResponse(items=items, total=len(items))


@router.get("/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = DatasetService(db)
    return DatasetResponse(dataset=service.detail(service.get(dataset_id)))


@router.get("/{dataset_id}/data", response_model=DatasetDataResponse)
async def get_dataset_data(
    dataset_id: int,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Window of a dataset's records for the admin preview table."""
    records, total = DatasetService(db).preview(dataset_id, limit=limit, offset=offset)
    return DatasetDataResponse(data=records, total=total, limit=limit, offset=offset)


@router.post("", response_model=DatasetResponse, status_code=status.HTTP_201_CREATED)
async def create_dataset(
    request: DatasetCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a dataset from records in the request body."""
    try:
        service = DatasetService(db)
        dataset = service.create(
            name=request.name,
            description=request.description,
            records=parse_body_data(request.data),
            created_by=admin.id,
        )
        return DatasetResponse(message="Dataset created successfully", dataset=service.detail(dataset))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error creating dataset: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to create dataset")


@router.post("/upload", response_model=DatasetResponse, status_code=status.HTTP_201_CREATED)
async def upload_dataset(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Upload a .json or .csv file as a new dataset.

    The dataset name defaults to the file name without its extension.
    """
    try:
        content = await file.read()
        service = DatasetService(db)
        dataset = service.create_from_upload(
            filename=file.filename,
            content=content,
            name=name,
            description=description,
            created_by=admin.id,
        )
        return DatasetResponse(message="Dataset uploaded successfully", dataset=service.detail(dataset))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error uploading dataset {file.filename}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to upload dataset")


@router.put("/{dataset_id}", response_model=DatasetResponse)
async def update_dataset(
    dataset_id: int,
    request: DatasetUpdateRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update metadata and optionally replace the payload wholesale."""
    try:
        service = DatasetService(db)
        records = parse_body_data(request.data) if request.data is not None else None
        dataset = service.update(
            dataset_id,
            name=request.name,
            description=request.description,
            is_active=request.is_active,
            records=records,
        )
        return DatasetResponse(message="Dataset updated successfully", dataset=service.detail(dataset))
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error updating dataset {dataset_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to update dataset")


@router.delete("/{dataset_id}", response_model=MessageResponse)
async def delete_dataset(
    dataset_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a dataset. Refused while any endpoint still serves it."""
    try:
        DatasetService(db).delete(dataset_id)
        return MessageResponse(message="Dataset deleted successfully")
    except APIHubError:
        raise
    except Exception as e:
        logger.error(f"Error deleting dataset {dataset_id}: {e}", exc_info=True)
        db.rollback()
        raise InternalError("Failed to delete dataset")
