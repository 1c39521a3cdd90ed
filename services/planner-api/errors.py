"""
Jerarquía de errores de la aplicación y handlers de FastAPI que los
convierten en un sobre JSON uniforme:

    {"error": {"message": "...", "code": "..."}}

Fuera de producción se agregan los datos del request para depurar.
"""

import logging
import traceback
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from config import is_production

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class BadRequestError(AppError):
    status_code = 400
    default_code = "BAD_REQUEST"


class UnauthorizedError(AppError):
    status_code = 401
    default_code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    default_code = "CONFLICT"


class TooManyRequestsError(AppError):
    status_code = 429
    default_code = "TOO_MANY_REQUESTS"


_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "TOO_MANY_REQUESTS",
}


def format_error_response(error: Exception) -> tuple[int, dict]:
    """Devuelve (status, body) para cualquier excepción."""
    if isinstance(error, AppError):
        return error.status_code, {"error": {"message": error.message, "code": error.code}}

    body = {"error": {"message": "Internal Server Error", "code": "INTERNAL_ERROR"}}
    if not is_production():
        body["error"]["stack"] = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return 500, body


def _with_request(body: dict, request: Request) -> dict:
    if not is_production():
        body["request"] = {
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params),
        }
    return body


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"Error en {request.method} {request.url.path}: {exc.message}")
        status, body = format_error_response(exc)
        return JSONResponse(status_code=status, content=_with_request(body, request))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
        body = {"error": {"message": message, "code": "VALIDATION_ERROR"}}
        return JSONResponse(status_code=400, content=_with_request(body, request))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route not found: {request.method} {request.url.path}"
        else:
            message = str(exc.detail)
        body = {"error": {"message": message, "code": _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")}}
        return JSONResponse(status_code=exc.status_code, content=_with_request(body, request))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Error no controlado en {request.method} {request.url.path}")
        status, body = format_error_response(exc)
        return JSONResponse(status_code=status, content=_with_request(body, request))
