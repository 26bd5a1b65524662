"""API key database model."""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Table
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from apihub.core.database import Base


class KeyStatus(str, enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class AccessLevel(str, enum.Enum):
    """Scope of a key: every endpoint, or only its allow-list."""
    ALL = "all"
    SPECIFIC = "specific"


# Allow-list of endpoints for keys with AccessLevel.SPECIFIC
api_key_endpoints = Table(
    "api_key_endpoints",
    Base.metadata,
    Column("api_key_id", Integer, ForeignKey("api_keys.id", ondelete="CASCADE"), primary_key=True),
    Column("endpoint_id", Integer, ForeignKey("endpoints.id", ondelete="CASCADE"), primary_key=True),
)


class APIKey(Base):
    """API key granting access to gateway endpoints."""
    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    key_hash = Column(String(64), unique=True, nullable=False, index=True)  # SHA-256 of the secret
    key_prefix = Column(String(20), nullable=False, index=True)  # display only, e.g. "ak_1a2b3c4..."
    full_key = Column(String(100), nullable=True)  # cleartext, kept for team sharing when enabled

    status = Column(Enum(KeyStatus), nullable=False, default=KeyStatus.ACTIVE, index=True)
    access_level = Column(Enum(AccessLevel), nullable=False, default=AccessLevel.SPECIFIC)

    # null = shared with every developer
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    rate_limit = Column(Integer, nullable=False, default=1000)  # requests/hour, recorded only
    total_usage = Column(Integer, nullable=False, default=0)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # null = never expires

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    endpoints = relationship("Endpoint", secondary=api_key_endpoints, back_populates="api_keys")
    assignee = relationship("User", foreign_keys=[assigned_to])

    @property
    def endpoint_ids(self) -> set:
        return {endpoint.id for endpoint in self.endpoints}

    def is_expired(self, now: datetime = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite hands back naive datetimes even for timezone=True columns
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now

    def can_access_endpoint(self, endpoint_id: int) -> bool:
        """Scope check: 'all' grants unconditionally, 'specific' needs allow-list membership."""
        if self.access_level == AccessLevel.ALL:
            return True
        return endpoint_id in self.endpoint_ids
