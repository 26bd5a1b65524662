"""
Tests for dashboard sign-in, first-admin promotion and user management.
"""
from datetime import datetime, timedelta, timezone

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import status
from jose import jwt

from apihub.core.config import settings
from apihub.core.security import create_access_token
from apihub.models.user import AdminBootstrap, AuthProvider, User

from conftest import TEST_PASSWORD, bearer, make_user


@pytest.fixture(scope="module")
def rsa_keypair():
    """PEM (private, public) pair standing in for the identity provider."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def external_auth(monkeypatch, rsa_keypair):
    """Enable the external identity provider and return a token factory."""
    private_pem, public_pem = rsa_keypair
    monkeypatch.setattr(settings, "EXTERNAL_AUTH_PUBLIC_KEY", public_pem)

    def _issue(sub="provider-123", email="ext@example.com", name="Ext User", **claims):
        payload = {
            "sub": sub,
            "email": email,
            "name": name,
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            **claims,
        }
        return jwt.encode(payload, private_pem, algorithm="RS256")

    return _issue


def test_register_returns_token_and_user(client):
    response = client.post(
        "/api/auth/register",
        json={"name": "Ann", "email": "Ann@Example.com", "password": "hunter22"},
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["success"] is True
    assert data["token"]
    assert data["user"]["email"] == "ann@example.com"
    assert data["user"]["role"] == "user"
    assert data["user"]["auth_provider"] == "local"
    assert "hashed_password" not in data["user"]


def test_register_rejects_short_password_and_duplicate_email(client, developer_user):
    short = client.post(
        "/api/auth/register", json={"name": "Bo", "email": "bo@example.com", "password": "123"}
    )
    assert short.status_code == status.HTTP_400_BAD_REQUEST
    assert short.json()["error"] == "Password must be at least 6 characters"

    duplicate = client.post(
        "/api/auth/register", json={"name": "Dev", "email": "DEV@example.com", "password": "hunter22"}
    )
    assert duplicate.status_code == status.HTTP_400_BAD_REQUEST
    assert duplicate.json()["error"] == "Email already registered"


def test_login_and_me(client, developer_user):
    login = client.post("/api/auth/login", json={"email": "dev@example.com", "password": TEST_PASSWORD})
    assert login.status_code == status.HTTP_200_OK
    token = login.json()["token"]
    assert login.json()["user"]["last_login"] is not None

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == status.HTTP_200_OK
    assert me.json()["user"]["id"] == developer_user.id


def test_login_with_wrong_password(client, developer_user):
    response = client.post("/api/auth/login", json={"email": "dev@example.com", "password": "nope-nope"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "error": "Invalid credentials"}


def test_login_refuses_external_accounts(client, db_session):
    db_session.add(User(name="Ext", email="ext@example.com", external_uid="x1", auth_provider=AuthProvider.EXTERNAL))
    db_session.commit()

    response = client.post("/api/auth/login", json={"email": "ext@example.com", "password": "whatever"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "This account uses external sign-in. Please use that method."


def test_deactivated_user_is_rejected(client, db_session, developer_user, developer_headers):
    developer_user.is_active = False
    db_session.commit()

    response = client.get("/api/auth/me", headers=developer_headers)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"] == "User account is deactivated"


def test_token_for_deleted_user_is_rejected(client):
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {create_access_token(424242)}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_garbage_token_is_rejected(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"] == "Not authorized to access this route"


def test_token_with_unknown_algorithm_is_rejected(client, developer_user):
    token = jwt.encode({"sub": str(developer_user.id)}, settings.SECRET_KEY, algorithm="HS512")

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_logout(client, developer_headers):
    response = client.post("/api/auth/logout", headers=developer_headers)
    assert response.json() == {"success": True, "message": "Logged out successfully"}


def test_make_admin_has_a_single_winner(client, db_session, developer_user):
    other = make_user(db_session, "second@example.com", name="Second")

    first = client.post("/api/auth/make-admin", headers=bearer(developer_user))
    assert first.status_code == status.HTTP_200_OK
    assert first.json()["user"]["role"] == "admin"

    second = client.post("/api/auth/make-admin", headers=bearer(other))
    assert second.status_code == status.HTTP_400_BAD_REQUEST
    assert second.json()["error"] == "Admin already exists. Contact existing admin for role changes."
    assert db_session.query(AdminBootstrap).count() == 1


def test_make_admin_refused_when_an_admin_exists(client, admin_user, developer_headers):
    response = client.post("/api/auth/make-admin", headers=developer_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_make_admin_refused_after_promoted_admin_is_demoted(client, db_session, developer_user):
    other = make_user(db_session, "second@example.com", name="Second")
    client.post("/api/auth/make-admin", headers=bearer(developer_user))
    developer_user_id = developer_user.id
    db_session.expire_all()
    db_session.get(User, developer_user_id).role = "user"
    db_session.commit()

    response = client.post("/api/auth/make-admin", headers=bearer(other))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_external_sign_in_provisions_user(client, db_session, external_auth):
    response = client.post("/api/auth/external", json={"id_token": external_auth(picture="https://img/x.png")})

    assert response.status_code == status.HTTP_200_OK
    user = response.json()["user"]
    assert user["email"] == "ext@example.com"
    assert user["name"] == "Ext User"
    assert user["auth_provider"] == "external"
    assert user["avatar"] == "https://img/x.png"

    stored = db_session.query(User).filter(User.email == "ext@example.com").one()
    assert stored.external_uid == "provider-123"
    assert stored.hashed_password is None


def test_external_sign_in_links_existing_email(client, db_session, developer_user, external_auth):
    response = client.post("/api/auth/external", json={"id_token": external_auth(sub="p-9", email="dev@example.com")})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["user"]["id"] == developer_user.id
    assert db_session.query(User).count() == 1


def test_external_token_works_as_bearer(client, external_auth):
    token = external_auth()

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["user"]["email"] == "ext@example.com"


def test_external_token_rejected_when_provider_disabled(client, external_auth, monkeypatch):
    token = external_auth()
    monkeypatch.setattr(settings, "EXTERNAL_AUTH_PUBLIC_KEY", None)

    response = client.post("/api/auth/external", json={"id_token": token})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_external_token_with_bad_signature(client, external_auth, monkeypatch):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    other_public = other.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    token = external_auth()
    monkeypatch.setattr(settings, "EXTERNAL_AUTH_PUBLIC_KEY", other_public)

    response = client.post("/api/auth/external", json={"id_token": token})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["error"] == "Invalid identity token"


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------

def test_list_users_requires_admin(client, developer_headers):
    assert client.get("/api/admin/users", headers=developer_headers).status_code == status.HTTP_403_FORBIDDEN


def test_list_and_update_role(client, admin_headers, developer_user):
    listing = client.get("/api/admin/users", headers=admin_headers).json()
    assert listing["total"] == 2

    promoted = client.put(
        f"/api/admin/users/{developer_user.id}/role", headers=admin_headers, json={"role": "admin"}
    )
    assert promoted.status_code == status.HTTP_200_OK
    assert promoted.json()["user"]["role"] == "admin"

    invalid = client.put(
        f"/api/admin/users/{developer_user.id}/role", headers=admin_headers, json={"role": "owner"}
    )
    assert invalid.status_code == status.HTTP_400_BAD_REQUEST


def test_admin_cannot_delete_self(client, admin_headers, admin_user):
    response = client.delete(f"/api/admin/users/{admin_user.id}", headers=admin_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Cannot delete your own account"


def test_delete_user(client, admin_headers, developer_user):
    response = client.delete(f"/api/admin/users/{developer_user.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK

    missing = client.get(f"/api/admin/users/{developer_user.id}", headers=admin_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["error"] == "User not found"
