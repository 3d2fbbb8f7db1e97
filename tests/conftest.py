from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from multisource.domain import Target, TargetRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

    from multisource.domain import ExecutionContext


@dataclass
class FakeTargetCall:
    """Stand-in for the per-target HTTP call; records every invocation."""

    payloads: dict[str, object] = field(default_factory=dict[str, object])
    failures: dict[str, Exception] = field(default_factory=dict[str, Exception])
    delays: dict[str, float] = field(default_factory=dict[str, float])
    calls: list[str] = field(default_factory=list[str])
    completed: list[str] = field(default_factory=list[str])
    contexts: list[ExecutionContext] = field(default_factory=list["ExecutionContext"])

    async def __call__(self, target: Target, context: ExecutionContext) -> object:
        self.calls.append(target.name)
        self.contexts.append(context)
        delay = self.delays.get(target.name, 0.0)
        if delay:
            await asyncio.sleep(delay)
        failure = self.failures.get(target.name)
        if failure is not None:
            raise failure
        self.completed.append(target.name)
        return self.payloads.get(target.name)


@pytest.fixture
def registry() -> TargetRegistry:
    return TargetRegistry(
        (
            Target(name="primary", address="https://primary.example.com"),
            Target(name="replica", address="https://replica.example.com"),
            Target(name="archive", address="https://archive.example.com"),
        )
    )


@pytest.fixture
def fake_call() -> Callable[..., FakeTargetCall]:
    def factory(**kwargs: object) -> FakeTargetCall:
        return FakeTargetCall(**kwargs)  # type: ignore[arg-type]

    return factory
