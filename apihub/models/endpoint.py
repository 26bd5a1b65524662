"""Endpoint database model."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from apihub.core.database import Base


class HTTPMethod(str, enum.Enum):
    """Methods an endpoint can be published under."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class Endpoint(Base):
    """A generated read endpoint serving one dataset under the versioned prefix."""
    __tablename__ = "endpoints"
    __table_args__ = (
        UniqueConstraint("path", "method", name="uq_endpoints_path_method"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    method = Column(Enum(HTTPMethod), nullable=False, default=HTTPMethod.GET)
    path = Column(String(500), nullable=False, index=True)  # always carries the /api/v1 prefix

    dataset_id = Column(Integer, ForeignKey("datasets.id"), nullable=False, index=True)

    # Response configuration
    paginate = Column(Boolean, nullable=False, default=True)
    page_size = Column(Integer, nullable=False, default=10)
    include_fields = Column(JSON, nullable=False, default=list)
    exclude_fields = Column(JSON, nullable=False, default=list)

    rate_limit = Column(Integer, nullable=False, default=1000)  # requests/hour, recorded only
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Stats
    total_requests = Column(Integer, nullable=False, default=0)
    last_accessed = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    dataset = relationship("Dataset", back_populates="endpoints")
    api_keys = relationship("APIKey", secondary="api_key_endpoints", back_populates="endpoints")

    @property
    def response_config(self) -> dict:
        return {
            "paginate": self.paginate,
            "page_size": self.page_size,
            "include_fields": list(self.include_fields or []),
            "exclude_fields": list(self.exclude_fields or []),
        }
