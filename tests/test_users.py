from datetime import datetime, timedelta, timezone

import jwt
import pytest

import config
import user_service
from db import session_scope
from errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from models import RefreshToken, User
from schemas import UserCreate
from security import decode_access_token, hash_password, verify_password

from tests import fixtures


# Servicio

def test_create_user_hashes_password(user):
    assert user.email == fixtures.CREATE_USER_PAYLOAD["email"]
    assert user.is_admin is False
    with session_scope() as s:
        stored = s.get(User, user.id)
        assert stored.password != fixtures.CREATE_USER_PAYLOAD["password"]
        assert verify_password(fixtures.CREATE_USER_PAYLOAD["password"], stored.password)
        assert not hasattr(stored, "salt")


def test_create_user_requires_email():
    with pytest.raises(BadRequestError, match="required"):
        user_service.create_user(UserCreate(**fixtures.INVALID_USER, password="Password123!"))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"email": "not-an-email"}, "Invalid email format"),
        ({"password": "short"}, "at least 8 characters"),
        ({"first_name": "J"}, "First name must be at least 2 characters"),
    ],
)
def test_create_user_validation(overrides, message):
    payload = {**fixtures.CREATE_USER_PAYLOAD, **overrides}
    with pytest.raises(BadRequestError, match=message):
        user_service.create_user(UserCreate(**payload))


def test_duplicate_email_conflicts(user):
    with pytest.raises(ConflictError, match="Email already exists"):
        user_service.create_user(UserCreate(**fixtures.CREATE_USER_PAYLOAD))


def test_authenticate(user):
    assert user_service.authenticate(**fixtures.LOGIN_CREDENTIALS).id == user.id

    with pytest.raises(UnauthorizedError, match="Invalid password"):
        user_service.authenticate(fixtures.LOGIN_CREDENTIALS["email"], "WrongPass123")
    with pytest.raises(NotFoundError, match="User not found"):
        user_service.authenticate("nobody@example.com", "Password123!")
    with pytest.raises(BadRequestError):
        user_service.authenticate(None, "Password123!")


def test_get_user_by_id_and_email(user):
    assert user_service.get_user_by_id(user.id).email == user.email
    assert user_service.get_user_by_email(user.email).id == user.id
    assert user_service.get_user_by_id(9999) is None
    with pytest.raises(BadRequestError):
        user_service.get_user_by_id(None)


def test_tokens_roundtrip(user):
    tokens = user_service.generate_user_tokens(user)
    assert decode_access_token(tokens["access_token"])["sub"] == str(user.id)

    new_access = user_service.refresh_access_token(tokens["refresh_token"])
    assert decode_access_token(new_access)["email"] == user.email

    with session_scope() as s:
        assert s.query(RefreshToken).filter_by(user_id=user.id).count() == 1


def test_revoked_refresh_token_is_rejected(user):
    tokens = user_service.generate_user_tokens(user)
    assert user_service.revoke_refresh_token(tokens["refresh_token"]) == 1
    with pytest.raises(UnauthorizedError, match="revoked"):
        user_service.refresh_access_token(tokens["refresh_token"])


def test_expired_refresh_record_is_rejected(user):
    tokens = user_service.generate_user_tokens(user)
    with session_scope() as s:
        record = s.query(RefreshToken).filter_by(user_id=user.id).one()
        record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    with pytest.raises(UnauthorizedError):
        user_service.refresh_access_token(tokens["refresh_token"])


def test_refresh_rejects_access_token(user):
    tokens = user_service.generate_user_tokens(user)
    with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
        user_service.refresh_access_token(tokens["access_token"])


def test_revoke_all_user_refresh_tokens(user):
    user_service.generate_user_tokens(user)
    user_service.generate_user_tokens(user)
    assert user_service.revoke_all_user_refresh_tokens(user.id) == 2
    assert user_service.revoke_all_user_refresh_tokens(user.id) == 0


def test_password_hash_is_salted_kdf():
    first = hash_password("secret")
    second = hash_password("secret")
    assert first != second
    # formato "metodo$salt$hash"
    assert first.split("$", 1)[0].split(":")[0] in ("scrypt", "pbkdf2")
    assert verify_password("secret", first)
    assert not verify_password("other", first)


# Rutas

def test_register_route(client):
    response = client.post("/api/users/register", json=fixtures.CREATE_USER_PAYLOAD)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 3600
    assert body["access_token"] and body["refresh_token"]


def test_register_route_missing_fields(client):
    response = client.post("/api/users/register", json={"email": "a@b.co"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_register_route_duplicate(client, user):
    response = client.post("/api/users/register", json=fixtures.CREATE_USER_PAYLOAD)
    assert response.status_code == 409
    assert response.json()["error"] == {"message": "Email already exists", "code": "CONFLICT"}


def test_login_route(client, user):
    response = client.post("/api/users/login", json=fixtures.LOGIN_CREDENTIALS)
    assert response.status_code == 200
    assert response.json()["message"] == "Login successful"

    wrong = client.post("/api/users/login", json={**fixtures.LOGIN_CREDENTIALS, "password": "Nope12345"})
    assert wrong.status_code == 401

    unknown = client.post("/api/users/login", json={"email": "x@example.com", "password": "Password123!"})
    assert unknown.status_code == 404


def test_refresh_and_logout_routes(client, user):
    tokens = client.post("/api/users/login", json=fixtures.LOGIN_CREDENTIALS).json()

    refreshed = client.post("/api/users/refresh-token", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    logout = client.post("/api/users/logout", json={"refresh_token": tokens["refresh_token"]})
    assert logout.status_code == 200

    again = client.post("/api/users/refresh-token", json={"refresh_token": tokens["refresh_token"]})
    assert again.status_code == 401


def test_me_route(client, user, auth_headers):
    response = client.get("/api/users/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == user.email
    assert "password" not in response.json()


# Autenticación

def test_missing_token_is_unauthorized(client):
    response = client.get("/api/tasks")
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Access token is missing"


def test_garbage_token_is_forbidden(client):
    response = client.get("/api/tasks", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Invalid or expired token"


def test_expired_token_is_forbidden(client, user):
    expired = jwt.encode(
        {"sub": str(user.id), "exp": datetime.now(timezone.utc) - timedelta(minutes=5)},
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )
    response = client.get("/api/tasks", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 403


def test_token_for_deleted_user_is_forbidden(client, auth_headers, user):
    with session_scope() as s:
        s.delete(s.get(User, user.id))
    response = client.get("/api/tasks", headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Invalid token"
