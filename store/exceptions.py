"""Error types raised by the store layer."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for store failures."""


class ConfigurationError(StoreError, RuntimeError):
    """A store subclass is missing part of its table binding."""


class InvalidArgumentError(StoreError, ValueError):
    """A caller passed a field name, descriptor or record the store cannot use."""
