"""Payload classification and cross-target compatibility checks."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from .errors import IncompatibilityError

if TYPE_CHECKING:
    from collections.abc import Sequence


class PayloadKind(StrEnum):
    """Top-level kind of a decoded payload as observed at runtime."""

    ABSENT = "absent"
    COLLECTION = "collection"
    SINGLE = "single"


@dataclass(frozen=True, slots=True)
class Absent:
    kind: ClassVar[PayloadKind] = PayloadKind.ABSENT

    @property
    def raw(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class Collection:
    raw: list[object] | tuple[object, ...]
    kind: ClassVar[PayloadKind] = PayloadKind.COLLECTION

    @property
    def items(self) -> Sequence[object]:
        return self.raw


@dataclass(frozen=True, slots=True)
class Composite:
    raw: Mapping[str, object]
    kind: ClassVar[PayloadKind] = PayloadKind.SINGLE

    @property
    def fields(self) -> Mapping[str, object]:
        return self.raw


@dataclass(frozen=True, slots=True)
class Scalar:
    raw: object
    kind: ClassVar[PayloadKind] = PayloadKind.SINGLE


type Payload = Absent | Collection | Composite | Scalar

ABSENT = Absent()


def classify(value: object) -> Payload:
    """Wrap a decoded payload in its tagged variant."""

    if value is None:
        return ABSENT
    if isinstance(value, list | tuple):
        return Collection(value)
    if isinstance(value, Mapping):
        return Composite(value)
    return Scalar(value)


def validate_payloads(values: Sequence[object]) -> tuple[Payload, ...]:
    """Classify ``values`` and ensure every non-absent payload has the same kind.

    Absent payloads are compatible with anything. The expected kind is taken
    from the first non-absent payload; the first payload disagreeing with it
    raises :class:`IncompatibilityError`.
    """

    payloads = tuple(classify(value) for value in values)
    expected: PayloadKind | None = None
    for index, payload in enumerate(payloads):
        if payload.kind is PayloadKind.ABSENT:
            continue
        if expected is None:
            expected = payload.kind
            continue
        if payload.kind is not expected:
            raise IncompatibilityError(expected=expected, observed=payload.kind, index=index)
    return payloads
