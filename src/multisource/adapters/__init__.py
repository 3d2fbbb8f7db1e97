"""Adapters connecting the fan-out core to HTTP and GraphQL."""

from __future__ import annotations

from .http_call import HttpTargetCaller, TargetCallError
from .http_resilience import ResilientClient

__all__ = ["HttpTargetCaller", "ResilientClient", "TargetCallError"]
