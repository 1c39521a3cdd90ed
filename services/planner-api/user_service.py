import logging
from datetime import datetime, timezone
from typing import Optional
import jwt
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
import config
from db import session_scope
from errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from models import User, RefreshToken, as_utc
from schemas import UserCreate, UserOut
from security import (
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from validation import is_valid_email, validate_password, has_min_length

logger = logging.getLogger(__name__)


def create_user(payload: UserCreate) -> UserOut:
    """
    Registrar usuario validando email, fortaleza de contraseña y nombre.
    """
    if not payload.email or not payload.password or not payload.first_name:
        raise BadRequestError("Email, password, and first_name are required")

    if not is_valid_email(payload.email):
        raise BadRequestError("Invalid email format")

    password_check = validate_password(payload.password)
    if not password_check["is_valid"]:
        raise BadRequestError(", ".join(password_check["errors"]))

    if not has_min_length(payload.first_name, 2):
        raise BadRequestError("First name must be at least 2 characters")

    try:
        with session_scope() as s:
            if s.scalar(select(User.id).where(User.email == payload.email)) is not None:
                raise ConflictError("Email already exists")
            u = User(
                email=payload.email,
                password=hash_password(payload.password),
                first_name=payload.first_name,
                last_name=payload.last_name,
            )
            s.add(u)
            s.flush()
            logger.info(f"Usuario {u.id} creado con email {u.email}")
            return UserOut.model_validate(u)
    except IntegrityError:
        raise ConflictError("Email already exists")


def get_user_by_id(user_id: int) -> Optional[UserOut]:
    if not user_id:
        raise BadRequestError("User ID is required")
    with session_scope() as s:
        u = s.get(User, user_id)
        return UserOut.model_validate(u) if u else None


def get_user_by_email(email: str) -> Optional[UserOut]:
    if not email:
        raise BadRequestError("Email is required")
    with session_scope() as s:
        u = s.scalar(select(User).where(User.email == email))
        return UserOut.model_validate(u) if u else None


def authenticate(email: Optional[str], password: Optional[str]) -> UserOut:
    if not email or not password:
        raise BadRequestError("Email and password are required")

    with session_scope() as s:
        u = s.scalar(select(User).where(User.email == email))
        if not u:
            raise NotFoundError("User not found")
        if not verify_password(password, u.password):
            logger.warning(f"Intento de login fallido para: {email}")
            raise UnauthorizedError("Invalid password")
        return UserOut.model_validate(u)


def generate_user_tokens(user: UserOut) -> dict:
    """Emitir access token (corto) + refresh token (largo) y persistir el jti"""
    access_token = create_access_token(user.id, user.email)
    refresh_token, jti, expires_at = create_refresh_token(user.id)

    with session_scope() as s:
        s.add(RefreshToken(token=jti, user_id=user.id, expires_at=expires_at))

    logger.info(f"Tokens emitidos para usuario {user.id}")
    return {"access_token": access_token, "refresh_token": refresh_token}


def refresh_access_token(refresh_token: Optional[str]) -> str:
    if not refresh_token:
        raise BadRequestError("Refresh token is required")

    try:
        payload = decode_refresh_token(refresh_token)
        user_id = int(payload["sub"])
        jti = payload["jti"]
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.warning(f"Refresh token inválido: {e}")
        raise UnauthorizedError("Invalid refresh token")

    now = datetime.now(timezone.utc)
    with session_scope() as s:
        record = s.scalar(
            select(RefreshToken).where(RefreshToken.token == jti, RefreshToken.user_id == user_id)
        )
        if not record or record.is_revoked or as_utc(record.expires_at) < now:
            raise UnauthorizedError("Refresh token is invalid or has been revoked")

        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")
        return create_access_token(u.id, u.email)


def revoke_refresh_token(refresh_token: Optional[str]) -> int:
    if not refresh_token:
        raise BadRequestError("Refresh token is required")
    try:
        payload = decode_refresh_token(refresh_token)
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    with session_scope() as s:
        result = s.execute(
            update(RefreshToken).where(RefreshToken.token == payload.get("jti")).values(is_revoked=True)
        )
        return result.rowcount


def revoke_all_user_refresh_tokens(user_id: int) -> int:
    """Revocar todos los refresh tokens (cambio de contraseña, sospecha de robo)"""
    with session_scope() as s:
        result = s.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True)
        )
        return result.rowcount


def token_expires_in() -> int:
    return config.ACCESS_TOKEN_EXPIRE_MINUTES * 60
