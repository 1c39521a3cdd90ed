"""
Patrones de resiliencia sobre Redis:
- Cache-Aside para lecturas de tareas y milestones
- Rate Limiting con ventana deslizante (global, endpoints públicos y de compartir)

Si REDIS_URL está vacío ambos quedan deshabilitados: el cache siempre
responde MISS y el limitador siempre permite.
"""

import time
import json
import logging
from typing import Optional, Any, Callable
import redis
from fastapi import Request
from config import REDIS_URL, CACHE_TTL_SECONDS
from errors import TooManyRequestsError

logger = logging.getLogger(__name__)

redis_client = redis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class CacheAside:
    """
    Cache de lecturas serializadas en JSON. Cualquier error de Redis se
    registra y se trata como MISS; nunca hace fallar el request.
    """

    def __init__(self, prefix: str = "planner", ttl: int = CACHE_TTL_SECONDS, client=None):
        self.prefix = prefix
        self.ttl = ttl
        self.client = client if client is not None else redis_client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _run(self, action: str, operation: Callable, fallback=None):
        if not self.enabled:
            return fallback
        try:
            return operation(self.client)
        except Exception as e:
            logger.error(f"Cache {action} falló: {e}")
            return fallback

    def get(self, key: str) -> Optional[Any]:
        raw = self._run("GET", lambda c: c.get(self._key(key)))
        if raw is None:
            if self.enabled:
                logger.debug(f"Cache MISS: {key}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return json.loads(raw)

    def set(self, key: str, value: Any) -> bool:
        payload = json.dumps(value, default=str)

        def write(c):
            c.setex(self._key(key), self.ttl, payload)
            return True

        return self._run("SET", write, False)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Leer del cache o, en un MISS, cargar con loader y guardar el resultado"""
        value = self.get(key)
        if value is None:
            value = loader()
            self.set(key, value)
        return value

    def delete(self, *keys: str) -> bool:
        if not keys:
            return False

        def remove(c):
            c.delete(*(self._key(k) for k in keys))
            return True

        return self._run("DELETE", remove, False)


class RateLimiter:
    """
    Ventana deslizante por IP sobre un sorted set de Redis. Sin Redis, o si
    Redis falla, el limitador deja pasar.

    También se puede usar como dependencia de FastAPI en endpoints puntuales.
    """

    def __init__(self, max_requests: int = 100, window_seconds: int = 60, name: str = "default",
                 message: str = "Too many requests, please try again later.", client=None):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self.message = message
        self.client = client if client is not None else redis_client

    def _hits_in_window(self, identifier: str) -> int:
        key = f"rate_limit:{self.name}:{identifier}"
        now = time.time()
        pipe = self.client.pipeline()
        pipe.zremrangebyscore(key, 0, now - self.window_seconds)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, self.window_seconds)
        return pipe.execute()[1]

    def is_allowed(self, identifier: str) -> bool:
        if self.client is None:
            return True
        try:
            hits = self._hits_in_window(identifier)
        except Exception as e:
            logger.error(f"Rate limiter '{self.name}' sin Redis, se permite el request: {e}")
            return True

        if hits >= self.max_requests:
            logger.warning(f"Rate limit '{self.name}' excedido para {identifier} ({hits}/{self.max_requests})")
            return False
        return True

    def __call__(self, request: Request):
        if not self.is_allowed(client_ip(request)):
            raise TooManyRequestsError(self.message, "RATE_LIMITED")


# 100 requests por minuto para toda la API
default_limiter = RateLimiter(max_requests=100, window_seconds=60, name="default")

# Vista pública de planes compartidos: 50 cada 15 minutos
public_endpoint_limiter = RateLimiter(
    max_requests=50,
    window_seconds=15 * 60,
    name="public",
    message="Too many requests to public endpoints, please try again later.",
)

# Crear o regenerar links: 10 por hora
sharing_endpoint_limiter = RateLimiter(
    max_requests=10,
    window_seconds=60 * 60,
    name="sharing",
    message="You have created too many share links recently. Please try again later.",
)


def check_redis_health() -> dict:
    if redis_client is None:
        return {"status": "disabled", "service": "redis"}
    try:
        redis_client.ping()
        return {"status": "healthy", "service": "redis"}
    except Exception as e:
        return {"status": "unhealthy", "service": "redis", "error": str(e)}


cache = CacheAside()
