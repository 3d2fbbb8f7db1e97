from __future__ import annotations

import asyncio
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from multisource.adapters.http_resilience import ResilientClient
from multisource.app import build_field, fetch_field
from multisource.config import ResilienceConfig, targets_config_from_mapping
from multisource.domain import DispatchTimeoutError, OutputShape

CONFIG = {
    "timeout_seconds": 10.0,
    "targets": [
        {"name": "eu", "endpoint": "https://eu.example.com"},
        {"name": "us", "endpoint": "https://us.example.com"},
    ],
    "fields": {
        "account": {"path": "/account", "shape": "composite"},
        "orders": {"path": "/orders", "shape": "collection", "dedupe_key": "number"},
    },
}


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    delay: float = 0.0,
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        if delay and request.url.host == "us.example.com":
            await asyncio.sleep(delay)
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(async_handler))

    return factory


def _payloads(request: httpx.Request) -> httpx.Response:
    region = request.url.host.split(".")[0]
    if request.url.path == "/account":
        return httpx.Response(
            200, json={"region": region, "limits": {region: 1}, "tags": [region]}
        )
    return httpx.Response(
        200,
        json=[{"number": 1, "region": region}, {"number": 2 if region == "eu" else 3}],
    )


def test_build_field_uses_field_configuration() -> None:
    config = targets_config_from_mapping(CONFIG)

    field = build_field(config.field_config("orders"))

    assert field.name == "orders"
    assert field.shape is OutputShape.COLLECTION
    assert field.policy.dedupe_key == "number"
    assert field.registry.names == ("eu", "us")


def test_fetch_field_merges_composites() -> None:
    config = targets_config_from_mapping(CONFIG)

    result = fetch_field(
        config,
        "account",
        selector=["eu", "us"],
        client_factory=_make_client_factory(_payloads),
    )

    assert result == {"region": "us", "limits": {"eu": 1, "us": 1}, "tags": ["eu", "us"]}


def test_fetch_field_dedupes_collections_on_configured_key() -> None:
    config = targets_config_from_mapping(CONFIG)

    result = fetch_field(
        config,
        "orders",
        selector=["eu", "us"],
        client_factory=_make_client_factory(_payloads),
    )

    assert result == [{"number": 1, "region": "us"}, {"number": 2}, {"number": 3}]


def test_fetch_field_single_target_returns_raw_payload() -> None:
    config = targets_config_from_mapping(CONFIG)

    result = fetch_field(config, "orders", client_factory=_make_client_factory(_payloads))

    assert result == [{"number": 1, "region": "eu"}, {"number": 2}]


def test_fetch_field_honours_timeout() -> None:
    config = targets_config_from_mapping(CONFIG)

    with pytest.raises(DispatchTimeoutError):
        fetch_field(
            config,
            "orders",
            selector=["eu", "us"],
            timeout_seconds=0.05,
            client_factory=_make_client_factory(_payloads, delay=5.0),
        )
