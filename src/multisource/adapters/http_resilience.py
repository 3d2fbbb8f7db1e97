"""httpx client with retries and an optional on-disk response cache."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from hishel import AsyncSqliteStorage
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

if TYPE_CHECKING:
    from types import TracebackType

    from aiolimiter import AsyncLimiter
    from httpx._client import UseClientDefault
    from httpx._types import HeaderTypes, QueryParamTypes, TimeoutTypes

    from multisource.config.http_resilience import CacheConfig, ResilienceConfig, RetryPolicy

log = getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    timeout: TimeoutTypes | UseClientDefault


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.attempts,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        allowed_methods=sorted(policy.methods),
        status_forcelist=sorted(policy.statuses),
        retry_on_exceptions=policy.exceptions,
    )


def build_cache_storage(config: CacheConfig) -> AsyncSqliteStorage:
    return AsyncSqliteStorage(
        database_path=config.sqlite_path,
        default_ttl=config.ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )


class ResilientClient:
    """One short-lived client per target call.

    Retries happen inside the transport, wrapped around ``transport`` when one
    is given. Rate limiting is per target, so the caller hands in that target's
    limiter with each request.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        headers = {"User-Agent": config.user_agent, **(config.default_headers or {})}
        retry_transport = RetryTransport(transport=transport, retry=build_retry(config.retry))

        self._client: httpx.AsyncClient
        if config.cache is not None:
            self._client = AsyncCacheClient(
                timeout=config.timeout_seconds,
                headers=headers,
                transport=retry_transport,
                storage=build_cache_storage(config.cache),
            )
        else:
            self._client = httpx.AsyncClient(
                timeout=config.timeout_seconds, headers=headers, transport=retry_transport
            )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        limiter: AsyncLimiter | None = None,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        if limiter is None:
            return await self._client.request(method, url, **kwargs)
        if not limiter.has_capacity():
            log.debug("Rate limit reached, waiting before %s %s", method, url)
        async with limiter:
            return await self._client.request(method, url, **kwargs)
