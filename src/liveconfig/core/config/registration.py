"""
Process-wide registry of writable monitors.

Each section key has at most one writable monitor; it is the single place
callers obtain the current value of that section and update it.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Dict, Optional, Type, TypeVar

from liveconfig.core.utils.logger import log_debug, log_warning
from liveconfig.core.utils.paths import (
    DEFAULT_BASE_FILE,
    HostEnvironment,
    WritableOptionsSettings,
)

if TYPE_CHECKING:
    from .monitor import WritableOptionsMonitor
    from .root import ConfigurationRoot

T = TypeVar("T")

_writable_monitors: Dict[str, "WritableOptionsMonitor"] = {}
_registry_lock = threading.Lock()


def register_writable(monitor: "WritableOptionsMonitor") -> None:
    """Register ``monitor`` for its section key, replacing any previous one."""
    key = monitor.section_key.casefold()
    with _registry_lock:
        previous = _writable_monitors.get(key)
        _writable_monitors[key] = monitor
    if previous is not None and previous is not monitor:
        log_warning(
            "registration",
            f"Replacing writable monitor for section '{monitor.section_key}'",
            context=f"previous={previous.physical_path}; new={monitor.physical_path}",
        )
    else:
        log_debug("registration", f"Registered writable monitor for section '{monitor.section_key}'")


def get_writable(section_key: str) -> "WritableOptionsMonitor":
    """Return the writable monitor registered for ``section_key``."""
    with _registry_lock:
        monitor = _writable_monitors.get(section_key.casefold())
    if monitor is None:
        raise KeyError(f"No writable monitor registered for section '{section_key}'")
    return monitor


def unregister_writable(section_key: str) -> Optional["WritableOptionsMonitor"]:
    with _registry_lock:
        return _writable_monitors.pop(section_key.casefold(), None)


def clear_registry() -> None:
    """Drop every registration (mainly for testing)."""
    with _registry_lock:
        _writable_monitors.clear()


def configure_writable(
    options_type: Type[T],
    root: "ConfigurationRoot",
    section_key: str,
    host: Optional[HostEnvironment] = None,
    base_file_name: str = DEFAULT_BASE_FILE,
) -> "WritableOptionsMonitor[T]":
    """Create and register a writable monitor for ``section_key``."""
    from .monitor import WritableOptionsMonitor

    return WritableOptionsMonitor(
        options_type,
        root,
        section_key,
        host=host,
        settings=WritableOptionsSettings(json_base_file=base_file_name),
    )
