"""Concurrent, all-or-nothing dispatch of one call per target."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import DispatchCancelledError, DispatchError, DispatchTimeoutError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .targets import Target

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Per-resolution inputs carried explicitly through the call chain.

    ``timeout`` bounds a whole fan-out (not each call). ``cancel_event`` lets the
    caller abort a fan-out that is in progress. ``variables`` and ``headers`` are
    opaque to the core and consumed by the per-target call function.
    """

    timeout: float | None = None
    cancel_event: asyncio.Event | None = None
    variables: Mapping[str, object] = field(default_factory=dict[str, object])
    headers: Mapping[str, str] = field(default_factory=dict[str, str])

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


type CallTarget = Callable[[Target, ExecutionContext], Awaitable[object]]


async def dispatch(
    targets: Sequence[Target],
    call: CallTarget,
    *,
    context: ExecutionContext | None = None,
) -> list[object]:
    """Call every target and return the payloads in target order.

    A single target is called directly; its result and errors pass through
    untouched. Several targets are called concurrently; the first failure
    cancels the remaining calls and raises :class:`DispatchError`.
    """

    active_context = context or ExecutionContext()
    if len(targets) == 1:
        return [await call(targets[0], active_context)]
    if not targets:
        return []
    return await _fan_out(targets, call, active_context)


async def _fan_out(
    targets: Sequence[Target],
    call: CallTarget,
    context: ExecutionContext,
) -> list[object]:
    log.debug("Fanning out to %s targets: %s", len(targets), [t.name for t in targets])
    tasks = [
        asyncio.create_task(_call_target(call, target, context), name=f"fan-out:{target.name}")
        for target in targets
    ]
    watchers: set[asyncio.Task[object]] = set()
    if context.cancel_event is not None:
        watchers.add(asyncio.create_task(_wait_for_cancel(context.cancel_event)))

    try:
        async with asyncio.timeout(context.timeout):
            await _wait_all(targets, tasks, watchers)
    except TimeoutError as exc:
        pending = _pending_names(targets, tasks)
        log.warning("Fan-out timed out after %ss, abandoning %s", context.timeout, pending)
        raise DispatchTimeoutError(timeout=context.timeout or 0.0, pending=pending) from exc
    except DispatchCancelledError:
        log.info("Fan-out cancelled, abandoning %s", _pending_names(targets, tasks))
        raise
    finally:
        await _abandon([*tasks, *watchers])

    return [task.result() for task in tasks]


async def _wait_all(
    targets: Sequence[Target],
    tasks: Sequence[asyncio.Task[object]],
    watchers: set[asyncio.Task[object]],
) -> None:
    pending: set[asyncio.Task[object]] = set(tasks)
    while pending:
        done, _ = await asyncio.wait(pending | watchers, return_when=asyncio.FIRST_COMPLETED)
        if watchers & done:
            raise DispatchCancelledError(pending=_pending_names(targets, tasks))
        # report failures in target order when several finish together
        for task in tasks:
            if task not in done:
                continue
            pending.discard(task)
            failure = task.exception()
            if failure is not None:
                raise failure


async def _call_target(call: CallTarget, target: Target, context: ExecutionContext) -> object:
    try:
        return await call(target, context)
    except Exception as exc:
        log.warning("Target %s failed: %s", target.name, exc)
        raise DispatchError(target.name, exc) from exc


async def _wait_for_cancel(event: asyncio.Event) -> object:
    await event.wait()
    return None


async def _abandon(tasks: Sequence[asyncio.Task[object]]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
    # also retrieves failures of finished tasks that were not reported
    await asyncio.gather(*tasks, return_exceptions=True)


def _pending_names(targets: Sequence[Target], tasks: Sequence[asyncio.Task[object]]) -> list[str]:
    return [target.name for target, task in zip(targets, tasks, strict=True) if not task.done()]
