"""HTTP implementation of the per-target call used by multi-source fields."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Literal

import httpx
from aiolimiter import AsyncLimiter

from multisource.config.http_resilience import ResilienceConfig

from .http_resilience import RequestOptions, ResilientClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from multisource.domain.dispatch import ExecutionContext
    from multisource.domain.targets import Target

log = getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0


class TargetCallError(RuntimeError):
    """Raised when one target's request fails or returns an unusable response."""

    def __init__(self, target_name: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.target_name = target_name
        self.status_code = status_code


def _default_resilience_config() -> ResilienceConfig:
    return ResilienceConfig(name="multisource", timeout_seconds=_DEFAULT_TIMEOUT_SECONDS)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def join_url(address: str, path: str) -> str:
    if not path:
        return address
    return f"{address.rstrip('/')}/{path.lstrip('/')}"


@dataclass(slots=True)
class HttpTargetCaller:
    """Call one target over HTTP and return its decoded JSON payload.

    Context variables become query parameters for GET and the JSON body for
    POST; context headers are sent with every request. The context timeout, if
    any, replaces the client's default for the request. A configured rate limit
    is kept per target name for the lifetime of the caller.
    """

    path: str = ""
    method: Literal["GET", "POST"] = "GET"
    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _limiters: dict[str, AsyncLimiter] = field(default_factory=dict, init=False, repr=False)

    async def __call__(self, target: Target, context: ExecutionContext) -> object:
        url = join_url(target.address, self.path)
        options = self._request_options(context)

        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.request(
                    self.method, url, limiter=self._limiter_for(target), **options
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                raise TargetCallError(
                    target.name,
                    f"{self.method} {url} returned HTTP {status}",
                    status_code=status,
                ) from exc
            except httpx.HTTPError as exc:
                raise TargetCallError(target.name, f"{self.method} {url} failed: {exc}") from exc

        log.debug("Target %s answered %s for %s", target.name, response.status_code, url)
        return _decode(target, response)

    def _limiter_for(self, target: Target) -> AsyncLimiter | None:
        ratelimit = self.resilience.per_target_ratelimit
        if ratelimit is None:
            return None
        limiter = self._limiters.get(target.name)
        if limiter is None:
            limiter = AsyncLimiter(ratelimit.max_calls, ratelimit.per_seconds)
            self._limiters[target.name] = limiter
        return limiter

    def _request_options(self, context: ExecutionContext) -> RequestOptions:
        options: RequestOptions = {}
        if context.variables:
            if self.method == "GET":
                options["params"] = {key: str(value) for key, value in context.variables.items()}
            else:
                options["json"] = dict(context.variables)
        if context.headers:
            options["headers"] = dict(context.headers)
        if context.timeout is not None:
            options["timeout"] = context.timeout
        return options


def _decode(target: Target, response: httpx.Response) -> object:
    if response.status_code == httpx.codes.NO_CONTENT or not response.content:
        return None
    try:
        return response.json()
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TargetCallError(
            target.name,
            f"Response from {response.request.url} is not valid JSON",
            status_code=response.status_code,
        ) from exc
