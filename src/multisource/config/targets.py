"""Target and field configuration.

Targets are configured once, either in a TOML document::

    timeout_seconds = 10.0

    [[targets]]
    name = "primary"
    endpoint = "https://primary.example.com"

    [[targets]]
    name = "replica"
    endpoint = "https://replica.example.com"

    [fields.users]
    path = "/users"
    shape = "collection"
    dedupe_key = "id"
    prefer_latest = true

    [fields.events]
    path = "/events"
    shape = "collection"
    dedupe = false

or through ``MULTISOURCE_TARGETS`` (``name=url,name=url``) for a setup that
only needs the targets themselves.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from multisource.domain.merge import MergePolicy, OutputShape
from multisource.domain.targets import Target, TargetRegistry

from .env import optional_env_bool, optional_env_float, require_env_var
from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

TARGETS_ENV_VAR = "MULTISOURCE_TARGETS"
TIMEOUT_ENV_VAR = "MULTISOURCE_TIMEOUT_SECONDS"
DEDUPE_KEY_ENV_VAR = "MULTISOURCE_DEDUPE_KEY"
PREFER_LATEST_ENV_VAR = "MULTISOURCE_PREFER_LATEST"

_KEY_TYPES: dict[str, type] = {"string": str, "int": int, "float": float}


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TargetSpec(_ConfigModel):
    name: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class MergePolicySpec(_ConfigModel):
    dedupe: bool = True
    dedupe_key: str | None = "id"
    prefer_latest: bool = True
    key_types: tuple[Literal["string", "int", "float"], ...] = ("string", "int")

    def build(self) -> MergePolicy:
        return MergePolicy(
            dedupe_key=self.dedupe_key if self.dedupe else None,
            prefer_latest=self.prefer_latest,
            key_types=tuple(_KEY_TYPES[name] for name in self.key_types),
        )


class FieldSpec(MergePolicySpec):
    path: str = ""
    method: Literal["GET", "POST"] = "GET"
    shape: OutputShape = OutputShape.COMPOSITE
    targets: tuple[str, ...] | None = None


class TargetsDocument(_ConfigModel):
    timeout_seconds: float | None = Field(default=None, gt=0)
    targets: tuple[TargetSpec, ...] = Field(min_length=1)
    fields: dict[str, FieldSpec] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FieldConfig:
    name: str
    registry: TargetRegistry
    shape: OutputShape
    policy: MergePolicy
    path: str = ""
    method: str = "GET"


@dataclass(frozen=True, slots=True)
class TargetsConfig:
    registry: TargetRegistry
    timeout_seconds: float | None = None
    fields: Mapping[str, FieldConfig] = field(default_factory=dict[str, FieldConfig])

    def field_config(self, name: str) -> FieldConfig:
        try:
            return self.fields[name]
        except KeyError:
            known = ", ".join(sorted(self.fields)) or "<none>"
            raise ConfigurationError(f"Unknown field {name!r}; configured: {known}") from None


def load_targets_config(path: str | Path) -> TargetsConfig:
    """Load and validate a TOML targets document."""

    config_path = Path(path)
    try:
        with config_path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise MissingConfigurationError(f"Targets file not found: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc
    return targets_config_from_mapping(raw)


def targets_config_from_mapping(raw: Mapping[str, object]) -> TargetsConfig:
    try:
        document = TargetsDocument.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid targets configuration: {exc}") from exc

    registry = _build_registry((spec.name, spec.endpoint) for spec in document.targets)
    fields = {
        name: _build_field(name, spec, registry) for name, spec in document.fields.items()
    }
    return TargetsConfig(
        registry=registry,
        timeout_seconds=document.timeout_seconds,
        fields=fields,
    )


def get_targets_config() -> TargetsConfig:
    """Build a targets configuration from ``MULTISOURCE_*`` environment variables."""

    return TargetsConfig(
        registry=_build_registry(parse_targets_value(require_env_var(TARGETS_ENV_VAR))),
        timeout_seconds=optional_env_float(TIMEOUT_ENV_VAR),
    )


def get_merge_policy() -> MergePolicy:
    """Return the merge policy described by the environment, defaults otherwise."""

    dedupe_key = os.getenv(DEDUPE_KEY_ENV_VAR)
    prefer_latest = optional_env_bool(PREFER_LATEST_ENV_VAR)
    spec = MergePolicySpec(
        dedupe_key=dedupe_key.strip() if dedupe_key and dedupe_key.strip() else "id",
        prefer_latest=True if prefer_latest is None else prefer_latest,
    )
    return spec.build()


def parse_targets_value(value: str) -> list[tuple[str, str]]:
    """Parse ``name=url,name=url`` into ordered pairs."""

    pairs: list[tuple[str, str]] = []
    for entry in value.split(","):
        if not entry.strip():
            continue
        name, sep, endpoint = entry.partition("=")
        if not sep or not name.strip() or not endpoint.strip():
            raise ConfigurationError(f"Invalid target entry {entry.strip()!r}; expected name=url")
        pairs.append((name.strip(), endpoint.strip().rstrip("/")))
    if not pairs:
        raise ConfigurationError(f"{TARGETS_ENV_VAR} does not name any target")
    return pairs


def _build_registry(pairs: Iterable[tuple[str, str]]) -> TargetRegistry:
    try:
        return TargetRegistry(tuple(Target(name=name, address=address) for name, address in pairs))
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _build_field(name: str, spec: FieldSpec, registry: TargetRegistry) -> FieldConfig:
    field_registry = registry
    if spec.targets is not None:
        missing = [target for target in spec.targets if registry.get(target) is None]
        if missing:
            raise ConfigurationError(
                f"Field {name!r} references unknown targets: {', '.join(missing)}"
            )
        field_registry = _build_registry(
            (target.name, target.address) for target in registry.resolve(list(spec.targets))
        )
    try:
        policy = spec.build()
    except ValueError as exc:
        raise ConfigurationError(f"Field {name!r}: {exc}") from exc
    return FieldConfig(
        name=name,
        registry=field_registry,
        shape=spec.shape,
        policy=policy,
        path=spec.path,
        method=spec.method,
    )
