"""Resolution pipeline for one multi-source field.

``resolve -> dispatch -> validate -> check shape -> merge``; a resolution that selects a
single target skips everything after the call and returns the raw payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .dispatch import ExecutionContext, dispatch
from .errors import FanOutError
from .merge import DEFAULT_MERGE_POLICY, MergePolicy, OutputShape, check_shape, merge_payloads
from .payloads import validate_payloads

if TYPE_CHECKING:
    from .dispatch import CallTarget
    from .targets import Selector, Target, TargetRegistry

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MultiSourceField:
    """A field backed by one or more named upstream targets."""

    name: str
    registry: TargetRegistry
    shape: OutputShape
    call: CallTarget
    policy: MergePolicy = DEFAULT_MERGE_POLICY

    async def resolve(
        self,
        selector: Selector = None,
        context: ExecutionContext | None = None,
    ) -> object:
        active_context = context or ExecutionContext()
        targets = self._targets_for(selector)
        if len(targets) == 1:
            return await self.call(targets[0], active_context)

        log.info(
            "Resolving %s from %s targets: %s",
            self.name,
            len(targets),
            ", ".join(target.name for target in targets),
        )
        try:
            raw_payloads = await dispatch(targets, self.call, context=active_context)
            payloads = validate_payloads(raw_payloads)
            check_shape(payloads, self.shape)
        except FanOutError as exc:
            exc.field_name = self.name
            raise

        log.debug("Merging %s payloads for %s as %s", len(payloads), self.name, self.shape)
        return merge_payloads(payloads, self.shape, self.policy)

    def _targets_for(self, selector: Selector) -> tuple[Target, ...]:
        try:
            return self.registry.resolve(selector)
        except FanOutError as exc:
            exc.field_name = self.name
            raise
