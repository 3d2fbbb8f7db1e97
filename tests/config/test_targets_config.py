from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from multisource.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_merge_policy,
    get_targets_config,
    load_targets_config,
    parse_targets_value,
    targets_config_from_mapping,
)
from multisource.domain import MergePolicy, OutputShape

if TYPE_CHECKING:
    from pathlib import Path

TARGETS_TOML = """
timeout_seconds = 5.0

[[targets]]
name = "primary"
endpoint = "https://primary.example.com/"

[[targets]]
name = "replica"
endpoint = "https://replica.example.com"

[[targets]]
name = "archive"
endpoint = "https://archive.example.com"

[fields.users]
path = "/users"
shape = "collection"
dedupe_key = "uid"
prefer_latest = false

[fields.profile]
shape = "composite"
targets = ["replica", "primary"]

[fields.events]
path = "/events"
shape = "collection"
dedupe = false
"""


def test_load_targets_config(tmp_path: Path) -> None:
    path = tmp_path / "targets.toml"
    path.write_text(TARGETS_TOML)

    config = load_targets_config(path)

    assert config.timeout_seconds == 5.0
    assert config.registry.names == ("primary", "replica", "archive")
    assert config.registry.default.address == "https://primary.example.com"

    users = config.field_config("users")
    assert users.shape is OutputShape.COLLECTION
    assert users.path == "/users"
    assert users.policy == MergePolicy(dedupe_key="uid", prefer_latest=False)
    assert users.registry.names == ("primary", "replica", "archive")

    profile = config.field_config("profile")
    assert profile.shape is OutputShape.COMPOSITE
    assert profile.registry.names == ("replica", "primary")
    assert profile.policy == MergePolicy()

    events = config.field_config("events")
    assert events.policy.dedupe_key is None


def test_unknown_field_lists_configured_fields(tmp_path: Path) -> None:
    path = tmp_path / "targets.toml"
    path.write_text(TARGETS_TOML)
    config = load_targets_config(path)

    with pytest.raises(ConfigurationError, match="configured: events, profile, users"):
        config.field_config("orders")


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(MissingConfigurationError, match="not found"):
        load_targets_config(tmp_path / "absent.toml")


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "targets.toml"
    path.write_text("[[targets]\nname=")

    with pytest.raises(ConfigurationError, match="Invalid TOML"):
        load_targets_config(path)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"targets": []}, "Invalid targets configuration"),
        ({"targets": [{"name": "a"}]}, "Invalid targets configuration"),
        (
            {"targets": [{"name": "a", "endpoint": "https://a"}], "extra": 1},
            "Invalid targets configuration",
        ),
        (
            {
                "targets": [
                    {"name": "a", "endpoint": "https://a"},
                    {"name": "a", "endpoint": "https://b"},
                ]
            },
            "Duplicate target name: a",
        ),
        (
            {
                "targets": [{"name": "a", "endpoint": "https://a"}],
                "fields": {"users": {"targets": ["ghost"]}},
            },
            "unknown targets: ghost",
        ),
        (
            {
                "targets": [{"name": "a", "endpoint": "https://a"}],
                "fields": {"users": {"shape": "table"}},
            },
            "Invalid targets configuration",
        ),
        (
            {
                "targets": [{"name": "a", "endpoint": "https://a"}],
                "fields": {"users": {"dedupe_key": ""}},
            },
            "Field 'users': dedupe_key",
        ),
    ],
)
def test_invalid_documents_fail_fast(raw: dict[str, object], message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        targets_config_from_mapping(raw)


def test_key_types_are_configurable() -> None:
    config = targets_config_from_mapping(
        {
            "targets": [{"name": "a", "endpoint": "https://a"}],
            "fields": {"prices": {"shape": "collection", "key_types": ["float"]}},
        }
    )

    assert config.field_config("prices").policy.key_types == (float,)


def test_parse_targets_value() -> None:
    assert parse_targets_value("primary=https://a.example.com/, replica=https://b") == [
        ("primary", "https://a.example.com"),
        ("replica", "https://b"),
    ]


@pytest.mark.parametrize("value", ["primary", "=https://a", "primary=", " , "])
def test_parse_targets_value_rejects_malformed_entries(value: str) -> None:
    with pytest.raises(ConfigurationError):
        parse_targets_value(value)


def test_get_targets_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MULTISOURCE_TARGETS", "primary=https://a,replica=https://b")
    monkeypatch.setenv("MULTISOURCE_TIMEOUT_SECONDS", "2.5")

    config = get_targets_config()

    assert config.registry.names == ("primary", "replica")
    assert config.timeout_seconds == 2.5
    assert config.fields == {}


@pytest.mark.parametrize("value", [None, "  "])
def test_get_targets_config_requires_targets(
    monkeypatch: pytest.MonkeyPatch, value: str | None
) -> None:
    if value is None:
        monkeypatch.delenv("MULTISOURCE_TARGETS", raising=False)
    else:
        monkeypatch.setenv("MULTISOURCE_TARGETS", value)

    with pytest.raises(MissingConfigurationError, match="MULTISOURCE_TARGETS"):
        get_targets_config()


def test_get_targets_config_rejects_bad_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MULTISOURCE_TARGETS", "primary=https://a")
    monkeypatch.setenv("MULTISOURCE_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ConfigurationError, match="must be a number"):
        get_targets_config()


def test_get_merge_policy_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MULTISOURCE_DEDUPE_KEY", "uuid")
    monkeypatch.setenv("MULTISOURCE_PREFER_LATEST", "no")

    assert get_merge_policy() == MergePolicy(dedupe_key="uuid", prefer_latest=False)


def test_get_merge_policy_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MULTISOURCE_DEDUPE_KEY", raising=False)
    monkeypatch.delenv("MULTISOURCE_PREFER_LATEST", raising=False)

    assert get_merge_policy() == MergePolicy()


def test_dedupe_flag_disables_dedupe() -> None:
    config = targets_config_from_mapping(
        {
            "targets": [{"name": "primary", "endpoint": "https://primary.example.com"}],
            "fields": {"events": {"dedupe": False, "dedupe_key": "uid"}},
        }
    )

    assert config.field_config("events").policy == MergePolicy(dedupe_key=None)
