"""
liveconfig - Writable, live-reloading typed configuration

Binds sections of a layered configuration (JSON settings files, environment
variables, an in-memory override store) to typed options objects, and lets
callers persist changes back to the settings file and the override store
so that every monitor of the section sees the new value.

Package Structure:
- core/config/: Providers, configuration root, binding, persistence, monitors
- core/utils/: Logging and settings path resolution
- cli/: Command-line interface for inspecting and editing sections

"""

__version__ = "0.1.0"

from liveconfig.core.config import (
    ConfigurationRoot,
    OptionsMonitor,
    ProviderFlags,
    WritableOptionsMonitor,
    configure_writable,
    create_default_configuration,
    get_writable,
)

__all__ = [
    "ConfigurationRoot",
    "OptionsMonitor",
    "ProviderFlags",
    "WritableOptionsMonitor",
    "configure_writable",
    "create_default_configuration",
    "get_writable",
]
