"""
Request log model for gateway usage.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from apihub.core.database import Base


class RequestLog(Base):
    """One gateway request outcome. Append-only."""
    __tablename__ = "request_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now(), nullable=False, index=True)

    # Who and what
    api_key_id = Column(Integer, ForeignKey("api_keys.id", ondelete="SET NULL"), nullable=True, index=True)
    endpoint_id = Column(Integer, ForeignKey("endpoints.id", ondelete="SET NULL"), nullable=True, index=True)  # null if resolution failed
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Request details
    method = Column(String(10), nullable=False)
    path = Column(String(500), nullable=False)
    query_params = Column(JSON, nullable=True)

    # Outcome
    status_code = Column(Integer, nullable=False, index=True)
    latency_ms = Column(Integer, nullable=False)
    error_message = Column(Text, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent = Column(String(255), nullable=True)

    api_key = relationship("APIKey", foreign_keys=[api_key_id])
    endpoint = relationship("Endpoint", foreign_keys=[endpoint_id])
