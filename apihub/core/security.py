"""
Credential primitives: API key secrets, password hashes and access tokens.
"""
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import JWTError, jwt
from passlib.context import CryptContext

from apihub.core.config import settings

# pbkdf2_sha256 is pure-python in passlib, so no native bcrypt backend is required
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

API_KEY_PREFIX = "ak_"
KEY_PREFIX_DISPLAY_LENGTH = 10


# ---------------------------------------------------------------------------
# API key secrets
# ---------------------------------------------------------------------------

def generate_api_key() -> str:
    """Generate a secure random API key secret (ak_ + 48 hex chars)."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(24)}"


def hash_api_key(key: str) -> str:
    """One-way lookup hash of an API key secret (SHA-256 hex)."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def key_display_prefix(key: str) -> str:
    """Short prefix shown in listings, e.g. 'ak_1a2b3c4...'."""
    return f"{key[:KEY_PREFIX_DISPLAY_LENGTH]}..."


def verify_api_key_hash(raw_key: str, key_hash: str) -> bool:
    """Verify a raw API key against its hash."""
    return secrets.compare_digest(hash_api_key(raw_key), key_hash)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

@dataclass
class LocalToken:
    """A token this service issued and signed with SECRET_KEY."""
    raw: str


@dataclass
class ExternalToken:
    """An ID token issued by the external identity provider."""
    raw: str


BearerToken = Union[LocalToken, ExternalToken]


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a locally signed access token for a user."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def classify_token(token: str) -> Optional[BearerToken]:
    """
    Decide which verifier owns a bearer token from its unverified header.

    Returns None for anything that is not a well-formed JWT or that is signed
    with an algorithm neither verifier accepts.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return None

    alg = header.get("alg")
    if alg == settings.ALGORITHM:
        return LocalToken(raw=token)
    if alg == settings.EXTERNAL_AUTH_ALGORITHM and settings.is_external_auth_available():
        return ExternalToken(raw=token)
    return None


def decode_local_token(token: LocalToken) -> Optional[int]:
    """Verify a local token and return the user id it was issued for."""
    try:
        payload = jwt.decode(token.raw, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def decode_external_token(token: ExternalToken) -> Optional[Dict[str, Any]]:
    """
    Verify an external identity-provider ID token.

    Returns the verified claims (at least 'sub'; usually 'email', 'name',
    'picture') or None when verification fails.
    """
    if not settings.is_external_auth_available():
        return None

    options = {"verify_aud": settings.EXTERNAL_AUTH_AUDIENCE is not None}
    try:
        claims = jwt.decode(
            token.raw,
            settings.EXTERNAL_AUTH_PUBLIC_KEY,
            algorithms=[settings.EXTERNAL_AUTH_ALGORITHM],
            audience=settings.EXTERNAL_AUTH_AUDIENCE,
            issuer=settings.EXTERNAL_AUTH_ISSUER,
            options=options,
        )
    except JWTError:
        return None
    if not claims.get("sub"):
        return None
    return claims
