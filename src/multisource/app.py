"""Application entry points wiring configuration, HTTP calls and fields."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from multisource.adapters.http_call import HttpTargetCaller
from multisource.config.http_resilience import get_resilience_config
from multisource.domain.dispatch import ExecutionContext
from multisource.domain.field import MultiSourceField

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from multisource.adapters.http_resilience import ResilientClient
    from multisource.config.http_resilience import ResilienceConfig
    from multisource.config.targets import FieldConfig, TargetsConfig
    from multisource.domain.targets import Selector

log = getLogger(__name__)


def build_field(
    field_config: FieldConfig,
    *,
    resilience: ResilienceConfig | None = None,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> MultiSourceField:
    """Create the multi-source field described by ``field_config``."""

    caller = HttpTargetCaller(
        path=field_config.path,
        method="POST" if field_config.method == "POST" else "GET",
        resilience=resilience or get_resilience_config(field_config.name),
    )
    if client_factory is not None:
        caller.client_factory = client_factory

    return MultiSourceField(
        name=field_config.name,
        registry=field_config.registry,
        shape=field_config.shape,
        call=caller,
        policy=field_config.policy,
    )


def fetch_field(
    config: TargetsConfig,
    field_name: str,
    *,
    selector: Selector = None,
    timeout_seconds: float | None = None,
    variables: Mapping[str, object] | None = None,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> object:
    """Resolve one configured field synchronously and return the merged value."""

    field = build_field(config.field_config(field_name), client_factory=client_factory)
    context = ExecutionContext(
        timeout=timeout_seconds if timeout_seconds is not None else config.timeout_seconds,
        variables=dict(variables or {}),
    )
    log.info("Fetching %s (selector=%s, timeout=%s)", field_name, selector, context.timeout)
    return asyncio.run(field.resolve(selector, context))
