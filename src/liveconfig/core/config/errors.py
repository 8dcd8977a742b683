"""Exception types raised by the configuration layer."""

from __future__ import annotations


class LiveConfigError(Exception):
    """Base class for liveconfig errors."""


class InvalidSectionKeyError(LiveConfigError, ValueError):
    """Section key is empty or contains the key delimiter."""


class OptionsBindingError(LiveConfigError, ValueError):
    """A configuration section could not be bound to its options type."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class CircularReferenceError(LiveConfigError, ValueError):
    """An options value references one of its own ancestors."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Circular reference detected at '{path}'")


class UnsupportedValueError(LiveConfigError, TypeError):
    """An options value holds a member that is neither a scalar nor a structure."""

    def __init__(self, path: str, type_name: str):
        self.path = path
        self.type_name = type_name
        super().__init__(f"Unsupported value of type '{type_name}' at '{path}'")


class ConfigurationLoadError(LiveConfigError):
    """A configuration provider could not load its source."""
