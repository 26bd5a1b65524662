"""
Service for user accounts: registration, sign-in and role management.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apihub.core.exceptions import NotFound, ValidationError
from apihub.core.roles import Role, VALID_ROLES
from apihub.core.security import get_password_hash, verify_password
from apihub.models.user import AdminBootstrap, AuthProvider, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
BOOTSTRAP_ROW_ID = 1


class UserService:
    """Service for user account operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower().strip()).first()

    def get(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def list_users(self, active_only: bool = False) -> List[User]:
        query = self.db.query(User)
        if active_only:
            query = query.filter(User.is_active.is_(True)).order_by(User.name.asc())
        else:
            query = query.order_by(User.created_at.desc(), User.id.desc())
        return query.all()

    def register(self, name: str, email: str, password: str) -> User:
        """Create a local account. Emails are unique case-insensitively."""
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.get_by_email(email):
            raise ValidationError("Email already registered")

        user = User(
            name=name,
            email=email.lower().strip(),
            hashed_password=get_password_hash(password),
            auth_provider=AuthProvider.LOCAL,
            role=Role.USER.value,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise ValidationError("Email already registered")
        self.db.refresh(user)
        logger.info(f"Registered user: id={user.id}, email={user.email}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        """Check local credentials and stamp last_login."""
        user = self.get_by_email(email)
        if user is None:
            raise ValidationError("Invalid credentials", status_code=401)
        if user.auth_provider != AuthProvider.LOCAL:
            raise ValidationError(
                f"This account uses {user.auth_provider} sign-in. Please use that method."
            )
        if not verify_password(password, user.hashed_password):
            raise ValidationError("Invalid credentials", status_code=401)
        if not user.is_active:
            raise ValidationError("User account is deactivated", status_code=401)

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_or_create_external(self, claims: Dict[str, Any]) -> User:
        """
        Find the user behind verified identity-provider claims, creating one if needed.

        An existing local account with the same email is linked to the
        provider subject on first external sign-in.
        """
        uid = claims["sub"]
        email = (claims.get("email") or "").lower().strip()

        user = self.db.query(User).filter(User.external_uid == uid).first()
        if user is None and email:
            user = self.get_by_email(email)

        if user is not None:
            if not user.external_uid:
                user.external_uid = uid
                user.auth_provider = AuthProvider.EXTERNAL
            if claims.get("picture") and not user.avatar:
                user.avatar = claims["picture"]
        else:
            if not email:
                raise ValidationError("Identity token carries no email address", status_code=401)
            user = User(
                name=claims.get("name") or email.split("@")[0],
                email=email,
                external_uid=uid,
                auth_provider=AuthProvider.EXTERNAL,
                avatar=claims.get("picture"),
                role=Role.USER.value,
            )
            self.db.add(user)
            logger.info(f"Provisioned user from identity provider: email={email}")

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        return user

    def make_first_admin(self, user: User) -> User:
        """
        Promote `user` to admin if no admin has ever been promoted this way.

        The sentinel row's fixed primary key makes this single-winner: of two
        concurrent callers only one insert commits, the other gets an
        IntegrityError and is rejected.
        """
        already = ValidationError("Admin already exists. Contact existing admin for role changes.")
        if self.db.query(User).filter(User.role == Role.ADMIN.value).first() is not None:
            raise already

        self.db.add(AdminBootstrap(id=BOOTSTRAP_ROW_ID, user_id=user.id))
        user.role = Role.ADMIN.value
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise already
        self.db.refresh(user)
        logger.info(f"First admin promoted: id={user.id}, email={user.email}")
        return user

    def set_role(self, user_id: int, role: str) -> User:
        if role not in VALID_ROLES:
            raise ValidationError('Invalid role. Must be "user" or "admin"')
        user = self.get(user_id)
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Updated role: user_id={user_id}, role={role}")
        return user

    def delete(self, user_id: int, acting_user: User) -> None:
        user = self.get(user_id)
        if user.id == acting_user.id:
            raise ValidationError("Cannot delete your own account")
        self.db.delete(user)
        self.db.commit()
        logger.info(f"Deleted user: id={user_id}")
