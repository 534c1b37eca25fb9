"""
Sliding-window rate limiting for public endpoints.

Requests are counted per ``bucket:identity`` key inside a rolling window.
Two backends are available: an in-process window (single server) and Redis
sorted sets (shared across workers). With no backend configured the limiter
fails open: every request is allowed and a warning is logged once per bucket.
"""

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from flask import Request, current_app, jsonify, make_response, request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BucketPolicy:
    limit: int
    window: float  # seconds


DEFAULT_BUCKETS: Dict[str, BucketPolicy] = {
    "api": BucketPolicy(limit=10, window=10),
    "auth": BucketPolicy(limit=5, window=60),
    "tracking": BucketPolicy(limit=30, window=60),
    "uploads": BucketPolicy(limit=5, window=300),
}


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[float] = None  # epoch seconds

    def retry_after(self, now: float) -> int:
        if self.reset_at is None:
            return 60
        return max(1, math.ceil(self.reset_at - now))


class RateLimitBackend(Protocol):
    def hit(self, key: str, policy: BucketPolicy, now: float) -> RateLimitDecision:  # noqa: D401
        """Record one request for ``key`` and decide whether it is allowed."""


class MemorySlidingWindow:
    """
    In-process sliding window; state is not shared between workers.

    Identities whose window has fully expired are swept every
    ``sweep_interval`` seconds, so distinct callers do not accumulate.
    """

    def __init__(self, sweep_interval: float = 60.0) -> None:
        self._hits: Dict[str, List[float]] = {}
        self._windows: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._last_sweep: Optional[float] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def hit(self, key: str, policy: BucketPolicy, now: float) -> RateLimitDecision:
        with self._lock:
            self._maybe_sweep(now)
            self._windows[key] = policy.window
            hits = [ts for ts in self._hits.get(key, []) if now - ts < policy.window]
            if len(hits) >= policy.limit:
                self._hits[key] = hits
                return RateLimitDecision(
                    allowed=False,
                    limit=policy.limit,
                    remaining=0,
                    reset_at=hits[0] + policy.window,
                )
            hits.append(now)
            self._hits[key] = hits
            return RateLimitDecision(
                allowed=True,
                limit=policy.limit,
                remaining=policy.limit - len(hits),
                reset_at=hits[0] + policy.window,
            )

    def _maybe_sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [
            key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self._windows.get(key, 0)
        ]
        for key in expired:
            del self._hits[key]
            self._windows.pop(key, None)


class RedisSlidingWindow:
    """Redis sorted-set sliding window (one member per request, scored by time)."""

    def __init__(self, client: Any, key_prefix: str = "ratelimit:") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "ratelimit:") -> "RedisSlidingWindow":
        import redis

        return cls(redis.Redis.from_url(url), key_prefix=key_prefix)

    def hit(self, key: str, policy: BucketPolicy, now: float) -> RateLimitDecision:
        redis_key = self._prefix + key
        member = f"{now:.6f}-{uuid.uuid4().hex[:8]}"
        pipe = self._client.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now - policy.window)
        pipe.zadd(redis_key, {member: now})
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        pipe.expire(redis_key, max(1, math.ceil(policy.window)))
        _, _, count, oldest, _ = pipe.execute()

        oldest_score = float(oldest[0][1]) if oldest else now
        reset_at = oldest_score + policy.window
        if count > policy.limit:
            # rejected requests do not consume window capacity
            self._client.zrem(redis_key, member)
            return RateLimitDecision(allowed=False, limit=policy.limit, remaining=0, reset_at=reset_at)
        return RateLimitDecision(
            allowed=True,
            limit=policy.limit,
            remaining=max(0, policy.limit - int(count)),
            reset_at=reset_at,
        )


class RateLimiter:
    """Applies bucket policies through an optional backend."""

    def __init__(
        self,
        backend: Optional[RateLimitBackend] = None,
        buckets: Optional[Mapping[str, BucketPolicy]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._buckets = dict(DEFAULT_BUCKETS if buckets is None else buckets)
        self._clock = clock
        self._warned: set[str] = set()

    @property
    def configured(self) -> bool:
        return self._backend is not None

    def now(self) -> float:
        return self._clock()

    def check(self, bucket: str, identity: str) -> RateLimitDecision:
        policy = self._buckets.get(bucket)
        if self._backend is None or policy is None:
            if bucket not in self._warned:
                self._warned.add(bucket)
                logger.warning("Rate limiting not configured for bucket %s; allowing all requests", bucket)
            return RateLimitDecision(allowed=True)
        try:
            return self._backend.hit(f"{bucket}:{identity}", policy, self._clock())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Rate limit backend failed for bucket=%s identity=%s: %s", bucket, identity, exc)
            return RateLimitDecision(allowed=True)


def create_rate_limiter(config: Mapping[str, Any]) -> RateLimiter:
    """Build a limiter from app config (``RATE_LIMIT_BACKEND`` / ``RATE_LIMIT_BUCKETS``)."""
    buckets = dict(DEFAULT_BUCKETS)
    for name, raw in (config.get("RATE_LIMIT_BUCKETS") or {}).items():
        buckets[name] = BucketPolicy(limit=int(raw["limit"]), window=float(raw["window"]))

    backend_name = str(config.get("RATE_LIMIT_BACKEND") or "").lower()
    backend: Optional[RateLimitBackend] = None
    if backend_name == "memory":
        backend = MemorySlidingWindow()
    elif backend_name == "redis":
        url = config.get("RATE_LIMIT_REDIS_URL") or ""
        if url:
            backend = RedisSlidingWindow.from_url(url)
        else:
            logger.warning("RATE_LIMIT_BACKEND='redis' but RATE_LIMIT_REDIS_URL is empty; rate limiting disabled")
    elif backend_name:
        logger.warning("Unknown RATE_LIMIT_BACKEND %r; rate limiting disabled", backend_name)
    return RateLimiter(backend=backend, buckets=buckets)


def client_identity(req: Request) -> str:
    forwarded = req.headers.get("X-Forwarded-For", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    real_ip = req.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return req.remote_addr or "anonymous"


def _apply_headers(response, decision: RateLimitDecision) -> None:
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining or 0)
    if decision.reset_at is not None:
        response.headers["X-RateLimit-Reset"] = str(int(decision.reset_at))


def with_rate_limit(bucket: str, identity_func: Callable[[Request], str] | None = None):
    """Decorate a view so it is rejected with 429 once ``bucket`` is exhausted."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            limiter: RateLimiter | None = current_app.config.get("RATE_LIMITER")
            if limiter is None:
                logger.warning("No RATE_LIMITER on app; %s passes unchecked", request.path)
                return view(*args, **kwargs)

            identity = (identity_func(request) if identity_func else None) or client_identity(request)
            decision = limiter.check(bucket, identity)
            if not decision.allowed:
                retry_after = decision.retry_after(limiter.now())
                logger.info("Rate limit exceeded bucket=%s identity=%s", bucket, identity)
                response = jsonify(
                    {
                        "error": "Too many requests",
                        "code": "RATE_LIMIT_EXCEEDED",
                        "retryAfter": retry_after,
                    }
                )
                response.status_code = 429
                response.headers["Retry-After"] = str(retry_after)
                _apply_headers(response, decision)
                return response

            response = make_response(view(*args, **kwargs))
            if decision.limit is not None:
                _apply_headers(response, decision)
            return response

        return wrapper

    return decorator
