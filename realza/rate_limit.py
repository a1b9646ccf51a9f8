# Redis-backed fixed-window rate limiting for auth and showing writes.
# Redis is opt-in (REDIS_ENABLED) and fail-open: an unreachable Redis never blocks a request.
import logging
import os
import threading
from typing import Callable, Literal, Optional

from fastapi import HTTPException, Request, status

logger = logging.getLogger("realza.rate_limit")

# Scopes with independent per-window caps (see _limit_for_scope)
Scope = Literal["login", "signup", "write", "claim"]

_DEFAULT_LIMITS = {"login": 10, "signup": 5, "write": 30, "claim": 20}


def _truthy(val: Optional[str]) -> bool:
    if val is None:
        return False
    return val.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _to_int(val: Optional[str], default: int) -> int:
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def is_redis_enabled() -> bool:
    return _truthy(os.getenv("REDIS_ENABLED", "false"))


class _RedisHandle:
    """Process-wide Redis connection, initialized at most once.

    A failed first connection is remembered; later calls return None without
    retrying for the rest of the process lifetime.
    """

    def __init__(self) -> None:
        self._client = None
        self._attempted = False
        self._lock = threading.Lock()

    def get(self):
        if not is_redis_enabled():
            return None
        with self._lock:
            if self._attempted:
                return self._client
            self._attempted = True
            url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
            try:
                import redis

                client = redis.Redis.from_url(
                    url,
                    socket_timeout=0.25,
                    socket_connect_timeout=0.25,
                    retry_on_timeout=False,
                    health_check_interval=0,
                )
                client.ping()
                self._client = client
                logger.info("Connected to Redis at %s", url)
            except Exception as exc:
                logger.warning("Redis unavailable (fail-open): %s", exc)
                self._client = None
            return self._client


_redis = _RedisHandle()


def get_redis():
    return _redis.get()


def _window_seconds() -> int:
    return _to_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 60)


# Per-scope caps: RATE_LIMIT_<SCOPE>_PER_WINDOW (login 10, signup 5, write 30, claim 20)
def _limit_for_scope(scope: Scope) -> int:
    return _to_int(os.getenv(f"RATE_LIMIT_{scope.upper()}_PER_WINDOW"), _DEFAULT_LIMITS[scope])


def _client_ip(request: Request) -> str:
    # Remote address only; X-Forwarded-For is not trusted here
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    FastAPI dependency enforcing a per-IP fixed window for `scope`.

    Keys look like rl:v1:ip:{ip}:{scope}. The first hit in a window sets the
    TTL; once the counter exceeds the cap the request gets a 429 with
    retry_after. Claims get their own scope so a burst of claim attempts
    cannot starve other writes.
    """
    window = _window_seconds()
    limit = _limit_for_scope(scope)

    def _dependency(request: Request) -> None:
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            if current > limit:
                ttl = r.ttl(key)
                retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail={
                        "error": "rate_limited",
                        "scope": scope,
                        "limit": limit,
                        "window_seconds": window,
                        "retry_after": retry_after,
                    },
                )
        except HTTPException:
            raise
        except Exception as exc:
            logger.warning("Rate limit fail-open (scope=%s, ip=%s): %s", scope, ip, exc)

    return _dependency
