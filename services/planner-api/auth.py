import logging
from typing import Optional
import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from errors import ForbiddenError, UnauthorizedError
from schemas import UserOut
from security import decode_access_token
import user_service

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> UserOut:
    """
    Dependencia de autenticación: valida el Bearer token y carga el usuario.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token is missing")

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        logger.warning(f"Token inválido: {e}")
        raise ForbiddenError("Invalid or expired token")

    user = user_service.get_user_by_id(user_id)
    if not user:
        raise ForbiddenError("Invalid token")
    return user
