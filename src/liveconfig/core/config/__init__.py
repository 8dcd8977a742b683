"""Configuration providers, binding, persistence and writable monitors."""

from .coercion import bind
from .errors import (
    CircularReferenceError,
    ConfigurationLoadError,
    InvalidSectionKeyError,
    LiveConfigError,
    OptionsBindingError,
    UnsupportedValueError,
)
from .monitor import OptionsMonitor, WritableOptionsMonitor
from .persistence import (
    patch_section,
    patch_section_async,
    read_settings_document,
    render_document,
    to_jsonable,
)
from .providers import (
    ConfigurationProvider,
    EnvironmentVariablesProvider,
    JsonFileProvider,
    MemoryProvider,
    ProviderFlags,
)
from .registration import (
    clear_registry,
    configure_writable,
    get_writable,
    register_writable,
    unregister_writable,
)
from .registry import ConfigSerializable, flatten, flatten_options, unflatten
from .root import ConfigurationRoot, create_default_configuration

__all__ = [
    "CircularReferenceError",
    "ConfigSerializable",
    "ConfigurationLoadError",
    "ConfigurationProvider",
    "ConfigurationRoot",
    "EnvironmentVariablesProvider",
    "InvalidSectionKeyError",
    "JsonFileProvider",
    "LiveConfigError",
    "MemoryProvider",
    "OptionsBindingError",
    "OptionsMonitor",
    "ProviderFlags",
    "UnsupportedValueError",
    "WritableOptionsMonitor",
    "bind",
    "clear_registry",
    "configure_writable",
    "create_default_configuration",
    "flatten",
    "flatten_options",
    "get_writable",
    "patch_section",
    "patch_section_async",
    "read_settings_document",
    "register_writable",
    "render_document",
    "to_jsonable",
    "unflatten",
    "unregister_writable",
]
