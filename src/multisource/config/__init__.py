"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_bool, optional_env_float, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    get_resilience_config,
)
from .targets import (
    FieldConfig,
    FieldSpec,
    MergePolicySpec,
    TargetsConfig,
    TargetSpec,
    get_merge_policy,
    get_targets_config,
    load_targets_config,
    parse_targets_value,
    targets_config_from_mapping,
)

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "FieldConfig",
    "FieldSpec",
    "MergePolicySpec",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "TargetSpec",
    "TargetsConfig",
    "get_merge_policy",
    "get_resilience_config",
    "get_targets_config",
    "load_targets_config",
    "optional_env_bool",
    "optional_env_float",
    "parse_targets_value",
    "require_env_var",
    "require_env_vars",
    "targets_config_from_mapping",
]
