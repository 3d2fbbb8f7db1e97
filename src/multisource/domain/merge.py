"""Type-directed reconciliation of payloads returned by several targets.

The merge engine trusts its input: payloads have already been classified,
checked for compatibility and against the declared shape (:func:`check_shape`),
so merging raises nothing. Three strategies exist, one
per declared output shape:

- collection: concatenate, then dedupe records on ``MergePolicy.dedupe_key``
  (first position wins, value follows ``prefer_latest``)
- composite: deep merge records left to right; nested sequences are appended
  without dedupe, nested records merged recursively
- scalar: first non-absent payload wins

Inputs are never mutated; values taken from payloads are copied into the
result tree.
"""

from __future__ import annotations

import copy
from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import IncompatibilityError
from .payloads import Absent, Collection, Composite, Scalar

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .payloads import Payload


class OutputShape(StrEnum):
    """Declared shape of a field's output type."""

    COLLECTION = "collection"
    COMPOSITE = "composite"
    SCALAR = "scalar"


@dataclass(frozen=True, slots=True)
class MergePolicy:
    """How conflicting values from several targets are reconciled.

    ``dedupe_key`` names the record field identifying the same logical item
    across targets (``None`` disables collection dedupe). Only key values whose
    type is listed in ``key_types`` take part in dedupe; records carrying any
    other value are kept as they are.
    """

    dedupe_key: str | None = "id"
    prefer_latest: bool = True
    key_types: tuple[type, ...] = (str, int)

    def __post_init__(self) -> None:
        if self.dedupe_key is not None and not self.dedupe_key.strip():
            raise ValueError("dedupe_key must be a non-empty field name or None")
        if not self.key_types:
            raise ValueError("key_types must name at least one type")
        for key_type in self.key_types:
            if not isinstance(key_type, type) or not issubclass(key_type, Hashable):
                raise ValueError(f"Dedupe key type {key_type!r} is not hashable")


DEFAULT_MERGE_POLICY = MergePolicy()

# A record fits a collection as a one-element list.
_FITS: dict[OutputShape, tuple[type, ...]] = {
    OutputShape.COLLECTION: (Collection, Composite),
    OutputShape.COMPOSITE: (Composite,),
    OutputShape.SCALAR: (Scalar,),
}


def check_shape(payloads: Sequence[Payload], shape: OutputShape) -> None:
    """Reject the first payload that cannot be merged as ``shape``."""

    for index, payload in enumerate(payloads):
        if isinstance(payload, Absent) or isinstance(payload, _FITS[shape]):
            continue
        raise IncompatibilityError(expected=shape, observed=_shape_of(payload), index=index)


def _shape_of(payload: Collection | Composite | Scalar) -> OutputShape:
    match payload:
        case Collection():
            return OutputShape.COLLECTION
        case Composite():
            return OutputShape.COMPOSITE
        case Scalar():
            return OutputShape.SCALAR


def merge_payloads(
    payloads: Sequence[Payload],
    shape: OutputShape,
    policy: MergePolicy = DEFAULT_MERGE_POLICY,
) -> object:
    """Combine classified payloads into one value of the declared ``shape``.

    A single payload is returned untouched. No payloads, or only absent ones,
    merge to ``None``.
    """

    if not payloads:
        return None
    if len(payloads) == 1:
        return payloads[0].raw

    present = [payload for payload in payloads if not isinstance(payload, Absent)]
    if not present:
        return None

    if shape is OutputShape.COLLECTION:
        return _merge_collections(present, policy)
    if shape is OutputShape.COMPOSITE:
        return _merge_composites(present, policy)
    return present[0].raw


def _merge_collections(payloads: Sequence[Payload], policy: MergePolicy) -> list[object]:
    items: list[object] = []
    for payload in payloads:
        match payload:
            case Collection():
                items.extend(payload.items)
            case Composite() | Scalar():
                items.append(payload.raw)
            case Absent():
                pass

    if policy.dedupe_key is None:
        return [copy.deepcopy(item) for item in items]
    return [copy.deepcopy(item) for item in _dedupe(items, policy)]


def _dedupe(items: Sequence[object], policy: MergePolicy) -> list[object]:
    deduplicated: list[object] = []
    position_by_key: dict[object, int] = {}

    for item in items:
        key = _dedupe_key_of(item, policy)
        if key is None:
            deduplicated.append(item)
            continue

        position = position_by_key.get(key)
        if position is None:
            position_by_key[key] = len(deduplicated)
            deduplicated.append(item)
        elif policy.prefer_latest:
            deduplicated[position] = item

    return deduplicated


def _dedupe_key_of(item: object, policy: MergePolicy) -> object | None:
    if not isinstance(item, Mapping) or policy.dedupe_key is None:
        return None
    key = item.get(policy.dedupe_key)
    if key is None or not isinstance(key, policy.key_types):
        return None
    try:
        hash(key)
    except TypeError:
        return None
    # 1 and "1" are different keys
    return (type(key).__name__, key)


def _merge_composites(payloads: Sequence[Payload], policy: MergePolicy) -> dict[str, object]:
    merged: dict[str, object] = {}
    for payload in payloads:
        if isinstance(payload, Composite):
            _deep_merge(merged, payload.fields, prefer_latest=policy.prefer_latest)
    return merged


def _deep_merge(
    target: dict[str, object],
    source: Mapping[str, object],
    *,
    prefer_latest: bool,
) -> None:
    for key, incoming in source.items():
        if incoming is None:
            continue
        current = target.get(key)

        if isinstance(incoming, list | tuple):
            if isinstance(current, list):
                current.extend(copy.deepcopy(item) for item in incoming)
            else:
                target[key] = copy.deepcopy(list(incoming))
        elif isinstance(incoming, Mapping):
            if isinstance(current, dict):
                _deep_merge(current, incoming, prefer_latest=prefer_latest)
            else:
                target[key] = _copy_record(incoming)
        elif prefer_latest or current is None:
            target[key] = incoming


def _copy_record(record: Mapping[str, object]) -> dict[str, object]:
    copied: dict[str, object] = {}
    for key, value in record.items():
        if isinstance(value, Mapping):
            copied[key] = _copy_record(value)
        elif isinstance(value, list | tuple):
            copied[key] = copy.deepcopy(list(value))
        else:
            copied[key] = copy.deepcopy(value)
    return copied
