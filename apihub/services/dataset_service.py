"""
Service for dataset creation, upload, update and deletion.
"""
import logging
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from apihub.core.config import settings
from apihub.core.exceptions import NotFound, ValidationError
from apihub.models.dataset import Dataset, DatasetSource
from apihub.models.endpoint import Endpoint
from apihub.schemas.dataset import DatasetDetail, DatasetSummary
from apihub.utils.parser_factory import create_parser, detect_source
from apihub.utils.parsers.base_parser import DatasetParseError, infer_schema
from apihub.utils.parsers.json_parser import coerce_records

logger = logging.getLogger(__name__)


def parse_body_data(data: Any) -> List[Any]:
    """
    Normalize the `data` field of a JSON request body into a record list.

    A string is parsed as JSON first; any non-list value is wrapped.
    """
    if isinstance(data, str):
        try:
            return create_parser(DatasetSource.MANUAL, data).parse_records()
        except DatasetParseError as e:
            raise ValidationError(str(e))
    return coerce_records(data)


class DatasetService:
    """Service for dataset processing."""

    def __init__(self, db: Session):
        """
        Initialize dataset service.

        Args:
            db: Database session
        """
        self.db = db

    def get(self, dataset_id: int) -> Dataset:
        dataset = self.db.get(Dataset, dataset_id)
        if dataset is None:
            raise NotFound("Dataset not found")
        return dataset

    def endpoint_counts(self) -> Dict[int, int]:
        rows = (
            self.db.query(Endpoint.dataset_id, func.count(Endpoint.id))
            .group_by(Endpoint.dataset_id)
            .all()
        )
        return {dataset_id: count for dataset_id, count in rows}

    def endpoint_count(self, dataset_id: int) -> int:
        return self.db.query(func.count(Endpoint.id)).filter(Endpoint.dataset_id == dataset_id).scalar() or 0

    def summary(self, dataset: Dataset, endpoint_count: Optional[int] = None) -> DatasetSummary:
        item = DatasetSummary.model_validate(dataset)
        item.endpoint_count = self.endpoint_count(dataset.id) if endpoint_count is None else endpoint_count
        return item

    def detail(self, dataset: Dataset) -> DatasetDetail:
        item = DatasetDetail.model_validate(dataset)
        item.endpoint_count = self.endpoint_count(dataset.id)
        return item

    def list_datasets(self) -> List[DatasetSummary]:
        """All datasets, newest first, payload omitted."""
        datasets = self.db.query(Dataset).order_by(Dataset.created_at.desc(), Dataset.id.desc()).all()
        counts = self.endpoint_counts()
        return [self.summary(d, counts.get(d.id, 0)) for d in datasets]

    def preview(self, dataset_id: int, limit: int, offset: int) -> Tuple[List[Any], int]:
        dataset = self.get(dataset_id)
        records = dataset.data or []
        return records[offset:offset + limit], len(records)

    def create(
        self,
        name: str,
        records: List[Any],
        description: Optional[str] = None,
        source: DatasetSource = DatasetSource.MANUAL,
        original_filename: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Dataset:
        """Persist a dataset, inferring its schema from the first record."""
        dataset = Dataset(
            name=name,
            description=description,
            file_type=source,
            original_filename=original_filename,
            created_by=created_by,
        )
        dataset.replace_data(records, infer_schema(records))
        self.db.add(dataset)
        self.db.commit()
        self.db.refresh(dataset)
        logger.info(
            f"Created dataset: id={dataset.id}, name={name}, source={source.value}, records={dataset.record_count}"
        )
        return dataset

    def create_from_upload(
        self,
        filename: str,
        content: bytes,
        name: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Dataset:
        """
        Parse an uploaded .json or .csv file and store it as a dataset.

        Args:
            filename: Original filename, used to pick the parser
            content: File content as bytes
            name: Dataset name (defaults to the file stem)
            description: Optional description
            created_by: Uploading user id

        Returns:
            Dataset model instance
        """
        if not content:
            raise ValidationError("Please upload a file")
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise ValidationError(
                f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB"
            )

        suffix = PurePath(filename or "").suffix.lower()
        if suffix not in (".json", ".csv"):
            raise ValidationError("Only JSON and CSV files are allowed")

        source = detect_source(filename)
        try:
            text_content = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("File must be UTF-8 encoded text")

        try:
            result = create_parser(source, text_content).parse_all()
        except DatasetParseError as e:
            raise ValidationError(str(e))

        dataset = Dataset(
            name=name or PurePath(filename).stem,
            description=description,
            file_type=source,
            original_filename=filename,
            created_by=created_by,
        )
        dataset.replace_data(result["records"], result["schema"])
        self.db.add(dataset)
        self.db.commit()
        self.db.refresh(dataset)
        logger.info(
            f"Uploaded dataset: id={dataset.id}, file={filename}, source={source.value}, records={dataset.record_count}"
        )
        return dataset

    def update(
        self,
        dataset_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
        records: Optional[List[Any]] = None,
    ) -> Dataset:
        dataset = self.get(dataset_id)
        if name is not None:
            dataset.name = name
        if description is not None:
            dataset.description = description
        if is_active is not None:
            dataset.is_active = is_active
        if records is not None:
            dataset.replace_data(records, infer_schema(records))

        self.db.commit()
        self.db.refresh(dataset)
        logger.info(f"Updated dataset: id={dataset_id}, records={dataset.record_count}")
        return dataset

    def delete(self, dataset_id: int) -> None:
        """Delete a dataset no endpoint refers to."""
        dataset = self.get(dataset_id)
        in_use = self.endpoint_count(dataset_id)
        if in_use:
            raise ValidationError(
                f"Cannot delete: {in_use} endpoint(s) are using this dataset. Delete them first."
            )
        self.db.delete(dataset)
        self.db.commit()
        logger.info(f"Deleted dataset: id={dataset_id}")

