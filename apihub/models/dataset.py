"""Dataset database model."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from apihub.core.database import Base


class DatasetSource(str, enum.Enum):
    """Where a dataset's payload came from."""
    MANUAL = "manual"
    JSON = "json"
    CSV = "csv"


class Dataset(Base):
    """A named collection of arbitrary JSON records served by endpoints."""
    __tablename__ = "datasets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=True)

    # Payload: ordered list of JSON records, replaced wholesale on update
    data = Column(JSON, nullable=False, default=list)
    # Field name -> type name, inferred from the first record only
    schema = Column(JSON, nullable=True)
    record_count = Column(Integer, nullable=False, default=0)

    file_type = Column(Enum(DatasetSource), nullable=False, default=DatasetSource.MANUAL)
    original_filename = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    endpoints = relationship("Endpoint", back_populates="dataset")

    def replace_data(self, records: list, schema) -> None:
        """Swap the payload, keeping record_count equal to its length."""
        self.data = records
        self.schema = schema
        self.record_count = len(records)
