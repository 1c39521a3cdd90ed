import secrets
import logging
from datetime import datetime, timedelta, timezone
import jwt
from werkzeug.security import generate_password_hash, check_password_hash
import config

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash con salt embebido (formato "metodo$salt$hash" de werkzeug)"""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def create_access_token(user_id: int, email: str) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": now + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": now,
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_refresh_token(user_id: int) -> tuple[str, str, datetime]:
    """
    Crear refresh token.
    Retorna (token, jti, expires_at); solo el jti se persiste.
    """
    jti = secrets.token_hex(32)
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)
    to_encode = {"sub": str(user_id), "jti": jti, "exp": expires_at, "iat": now}
    token = jwt.encode(to_encode, config.JWT_REFRESH_SECRET, algorithm=config.JWT_ALGORITHM)
    return token, jti, expires_at


def decode_access_token(token: str) -> dict:
    """Lanza jwt.InvalidTokenError (o subclases) si el token no es válido"""
    return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])


def decode_refresh_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_REFRESH_SECRET, algorithms=[config.JWT_ALGORITHM])
