"""Multi-source fan-out and result reconciliation."""

from __future__ import annotations

from .dispatch import CallTarget, ExecutionContext, dispatch
from .errors import (
    DispatchCancelledError,
    DispatchError,
    DispatchTimeoutError,
    FanOutError,
    IncompatibilityError,
    UnknownTargetError,
)
from .field import MultiSourceField
from .merge import DEFAULT_MERGE_POLICY, MergePolicy, OutputShape, check_shape, merge_payloads
from .payloads import (
    Absent,
    Collection,
    Composite,
    Payload,
    PayloadKind,
    Scalar,
    classify,
    validate_payloads,
)
from .targets import Selector, Target, TargetRegistry, resolve_targets

__all__ = [
    "DEFAULT_MERGE_POLICY",
    "Absent",
    "CallTarget",
    "Collection",
    "Composite",
    "DispatchCancelledError",
    "DispatchError",
    "DispatchTimeoutError",
    "ExecutionContext",
    "FanOutError",
    "IncompatibilityError",
    "MergePolicy",
    "MultiSourceField",
    "OutputShape",
    "Payload",
    "PayloadKind",
    "Scalar",
    "Selector",
    "Target",
    "TargetRegistry",
    "UnknownTargetError",
    "check_shape",
    "classify",
    "dispatch",
    "merge_payloads",
    "resolve_targets",
]
