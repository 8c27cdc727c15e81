"""Exception types shared across lazytf."""

from __future__ import annotations


class LazyTfError(Exception):
    """Base class for lazytf errors."""


class ConfigError(LazyTfError):
    """Configuration could not be found, read or validated."""


class PreflightError(LazyTfError):
    """An operation was rejected before any process was spawned."""


class SpawnError(LazyTfError):
    """An external command could not be launched."""


class OperationBusy(LazyTfError):
    """Another operation already holds the single inflight slot."""
