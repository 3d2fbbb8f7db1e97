"""Settings for the HTTP client that calls individual targets."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from .env import optional_env_float
from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

# Targets answering with these are usually overloaded replicas, worth one more try.
_TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Retries for one upstream call.

    The fan-out core never retries; a retry here replays only the failed
    target's request, inside the fan-out deadline.
    """

    attempts: int = 2
    backoff_factor: float = 0.25
    max_backoff_wait: float = 5.0
    retry_post: bool = False
    statuses: frozenset[int] = _TRANSIENT_STATUSES
    exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.ConnectError,
        httpx.ConnectTimeout,
        httpx.RemoteProtocolError,
    )

    @property
    def methods(self) -> frozenset[str]:
        base = frozenset({"GET", "HEAD"})
        return base | {"POST"} if self.retry_post else base


@dataclass(slots=True, frozen=True)
class RateLimit:
    """Budget of ``max_calls`` per ``per_seconds``, applied to each target separately."""

    max_calls: float
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    sqlite_path: str
    ttl_seconds: float | None = None
    refresh_ttl_on_access: bool = False


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    per_target_ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    default_headers: Mapping[str, str] | None = None

    @property
    def user_agent(self) -> str:
        return f"multisource/{self.name}"


def get_resilience_config(name: str) -> ResilienceConfig:
    """Build client settings for ``name`` from ``MULTISOURCE_*`` environment variables.

    ``MULTISOURCE_HTTP_TIMEOUT`` overrides the per-request timeout,
    ``MULTISOURCE_RATE_PER_SECOND`` limits each target to that many calls per second
    and ``MULTISOURCE_HTTP_CACHE_PATH`` enables the sqlite response cache (entries
    expire after ``MULTISOURCE_HTTP_CACHE_TTL`` seconds when set).
    """

    timeout = optional_env_float("MULTISOURCE_HTTP_TIMEOUT")
    rate = optional_env_float("MULTISOURCE_RATE_PER_SECOND")
    ratelimit = None
    if rate is not None:
        if rate <= 0:
            raise ConfigurationError("MULTISOURCE_RATE_PER_SECOND must be positive")
        ratelimit = RateLimit(max_calls=rate, per_seconds=1.0)

    cache = None
    cache_path = os.getenv("MULTISOURCE_HTTP_CACHE_PATH", "").strip()
    if cache_path:
        cache = CacheConfig(
            sqlite_path=cache_path, ttl_seconds=optional_env_float("MULTISOURCE_HTTP_CACHE_TTL")
        )
    return ResilienceConfig(
        name=name,
        timeout_seconds=timeout if timeout is not None else 30.0,
        per_target_ratelimit=ratelimit,
        cache=cache,
    )
