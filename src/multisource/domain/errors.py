"""Error taxonomy for multi-source field resolution.

Every failure detected by the fan-out core derives from :class:`FanOutError` so
that the query layer can surface it as one field-level error. The resolving
field stamps its name on the error before it leaves the core.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .merge import OutputShape
    from .payloads import PayloadKind


class FanOutError(Exception):
    """Base class for errors raised while resolving a multi-source field."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
        self.field_name: str | None = None

    @property
    def message(self) -> str:
        # graphql-core reports ``message`` rather than ``str(error)``
        if self.field_name is None:
            return self.detail
        return f"{self.field_name}: {self.detail}"

    def __str__(self) -> str:
        return self.message


class UnknownTargetError(FanOutError):
    """Raised when a selector names a target that is not configured."""

    def __init__(self, name: object, *, valid_names: Sequence[str]) -> None:
        self.name = name
        self.valid_names = tuple(valid_names)
        super().__init__(
            f"Unknown target {name!r}; expected one of: {', '.join(self.valid_names)}"
        )


class IncompatibilityError(FanOutError):
    """Raised when payloads disagree on their kind or do not fit the declared shape."""

    def __init__(
        self,
        *,
        expected: PayloadKind | OutputShape,
        observed: PayloadKind | OutputShape,
        index: int,
    ) -> None:
        self.expected = expected
        self.observed = observed
        self.index = index
        super().__init__(
            f"Incompatible payloads: expected {expected}, got {observed} at index {index}"
        )


class DispatchError(FanOutError):
    """Raised when one call of a fan-out fails; the whole fan-out is aborted."""

    def __init__(self, target_name: str, cause: BaseException) -> None:
        self.target_name = target_name
        self.cause = cause
        super().__init__(f"Target {target_name!r} failed: {cause}")


class DispatchTimeoutError(FanOutError, TimeoutError):
    """Raised when the shared deadline elapses before every target answered."""

    def __init__(self, *, timeout: float, pending: Sequence[str]) -> None:
        self.timeout = timeout
        self.pending = tuple(pending)
        super().__init__(
            f"Fan-out timed out after {timeout:g}s waiting for: {', '.join(self.pending)}"
        )


class DispatchCancelledError(FanOutError):
    """Raised when the execution context signals cancellation mid fan-out."""

    def __init__(self, *, pending: Sequence[str]) -> None:
        self.pending = tuple(pending)
        super().__init__(f"Fan-out cancelled while waiting for: {', '.join(self.pending)}")
