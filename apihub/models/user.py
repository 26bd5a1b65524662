"""User and first-admin bootstrap models."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from apihub.core.database import Base


class AuthProvider:
    """Constants for how a user signs in."""
    LOCAL = "local"
    EXTERNAL = "external"


class User(Base):
    """Dashboard user: a developer ("user") or an administrator."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-cased
    hashed_password = Column(String(255), nullable=True)  # local accounts only
    external_uid = Column(String(255), unique=True, nullable=True, index=True)  # identity provider subject
    auth_provider = Column(String(20), nullable=False, default=AuthProvider.LOCAL)
    role = Column(String(20), nullable=False, default="user", index=True)
    avatar = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class AdminBootstrap(Base):
    """
    Sentinel row recording that the first admin has been promoted.

    The primary key is pinned to 1, so at most one insert can ever succeed.
    """
    __tablename__ = "admin_bootstrap"

    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
