"""Layered configuration root with reload notifications."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from liveconfig.core.utils.logger import log_debug, log_error
from liveconfig.core.utils.paths import (
    DEFAULT_BASE_FILE,
    HostEnvironment,
    environment_file_name,
)

from .providers import (
    ENV_PREFIX,
    ConfigurationProvider,
    EnvironmentVariablesProvider,
    JsonFileProvider,
    MemoryProvider,
)
from .registry import KEY_DELIMITER

P = TypeVar("P", bound=ConfigurationProvider)
ReloadCallback = Callable[["ConfigurationRoot"], None]


def _unflatten_folded(pairs: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """Like ``registry.unflatten`` but merging segments that differ only by case."""
    nested: Dict[str, Any] = {}
    indexes: Dict[int, Dict[str, str]] = {id(nested): {}}

    def child_key(node: Dict[str, Any], segment: str) -> str:
        index = indexes[id(node)]
        return index.setdefault(segment.casefold(), segment)

    for key, value in pairs:
        parts = key.split(KEY_DELIMITER)
        cursor = nested
        for part in parts[:-1]:
            name = child_key(cursor, part)
            if not isinstance(cursor.get(name), dict):
                cursor[name] = {}
                indexes[id(cursor[name])] = {}
            cursor = cursor[name]
        name = child_key(cursor, parts[-1])
        if isinstance(cursor.get(name), dict):
            continue
        cursor[name] = value
    return nested


class ConfigurationRoot:
    """
    Merged view over an ordered list of providers.

    Later providers override earlier ones; keys compare case-insensitively.
    ``reload()`` re-reads every provider and notifies subscribers, which is
    how options monitors learn that a persisted update has landed.
    """

    def __init__(self, providers: Iterable[ConfigurationProvider] = ()) -> None:
        self._providers: List[ConfigurationProvider] = list(providers)
        self._callbacks: List[ReloadCallback] = []
        self._merged: Dict[str, Tuple[str, str]] = {}
        for provider in self._providers:
            provider.load()
        self._rebuild()

    @property
    def providers(self) -> Tuple[ConfigurationProvider, ...]:
        return tuple(self._providers)

    def add_provider(self, provider: ConfigurationProvider) -> None:
        provider.load()
        self._providers.append(provider)
        self._rebuild()

    def find_provider(self, provider_type: Type[P]) -> Optional[P]:
        """Return the last registered provider of ``provider_type``."""
        for provider in reversed(self._providers):
            if isinstance(provider, provider_type):
                return provider
        return None

    def _rebuild(self) -> None:
        merged: Dict[str, Tuple[str, str]] = {}
        for provider in self._providers:
            for key, value in provider.items():
                folded = key.casefold()
                original = merged[folded][0] if folded in merged else key
                merged[folded] = (original, value)
        self._merged = merged

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._merged.get(key.casefold())
        return default if entry is None else entry[1]

    def __getitem__(self, key: str) -> str:
        entry = self._merged.get(key.casefold())
        if entry is None:
            raise KeyError(key)
        return entry[1]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.casefold() in self._merged

    def as_flat(self) -> Dict[str, str]:
        return {original: value for original, value in self._merged.values()}

    def get_section(self, key: str) -> Dict[str, Any]:
        """Nested mapping of every value under ``key``."""
        prefix = key.casefold() + KEY_DELIMITER
        pairs = [
            (original[len(prefix):], value)
            for folded, (original, value) in self._merged.items()
            if folded.startswith(prefix)
        ]
        return _unflatten_folded(pairs)

    def section_exists(self, key: str) -> bool:
        prefix = key.casefold() + KEY_DELIMITER
        return key.casefold() in self._merged or any(
            folded.startswith(prefix) for folded in self._merged
        )

    def on_reload(self, callback: ReloadCallback) -> Callable[[], None]:
        """Register ``callback(root)``; returns a function that unsubscribes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def reload(self) -> None:
        """Reload every provider, then notify subscribers in registration order."""
        for provider in self._providers:
            provider.load()
        self._rebuild()
        log_debug("root", "Configuration reloaded", context=f"providers={len(self._providers)}")
        for callback in list(self._callbacks):
            try:
                callback(self)
            except Exception as exc:
                log_error("root", "Reload subscriber failed", context=repr(callback), exception=exc)


def create_default_configuration(
    host: Optional[HostEnvironment] = None,
    base_file_name: str = DEFAULT_BASE_FILE,
    memory: bool = True,
    env_prefix: str = ENV_PREFIX,
) -> ConfigurationRoot:
    """
    Build the usual provider stack for a host.

    ``appsettings.json``, then ``appsettings.{environment}.json``, then
    environment variables, then (optionally) an in-memory override store.
    """
    host = host or HostEnvironment.from_env()
    root_dir = host.content_root
    providers: List[ConfigurationProvider] = [JsonFileProvider(root_dir / base_file_name)]
    if host.environment_name:
        providers.append(
            JsonFileProvider(root_dir / environment_file_name(base_file_name, host.environment_name))
        )
    providers.append(EnvironmentVariablesProvider(env_prefix))
    if memory:
        providers.append(MemoryProvider())
    return ConfigurationRoot(providers)
