"""
Options monitors: the current typed value of a configuration section.

``OptionsMonitor`` binds a section of a :class:`ConfigurationRoot` to an
options type and re-binds whenever the root reloads.

``WritableOptionsMonitor`` adds ``update``/``update_async``: apply a change
to a copy of the current value, persist it to the JSON settings file and/or
the in-memory override store, then reload the root so every monitor (and
every listener registered with ``on_change``) observes the new value.

Update semantics:
- Every requested store is attempted, JSON first, even if one fails.
- The result is ``True`` only if every requested store succeeded;
  requesting no store returns ``False``.
- There is no rollback: a partial failure leaves the stores divergent.
- The live snapshot is never mutated; if every store fails it is unchanged.

Callers must serialise updates to the same section themselves.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar

from liveconfig.core.utils.logger import log_debug, log_error, log_info, log_warning
from liveconfig.core.utils.paths import (
    HostEnvironment,
    WritableOptionsSettings,
    resolve_settings_path,
)

from .coercion import bind
from .errors import ConfigurationLoadError, InvalidSectionKeyError, OptionsBindingError
from .persistence import patch_section, patch_section_async
from .providers import MemoryProvider, ProviderFlags
from .registration import register_writable
from .registry import KEY_DELIMITER, flatten_options
from .root import ConfigurationRoot

T = TypeVar("T")
ChangeListener = Callable[[Any, str], None]
ApplyChanges = Callable[[T], Optional[T]]


def validate_section_key(section_key: str) -> str:
    if not isinstance(section_key, str) or not section_key.strip():
        raise InvalidSectionKeyError("Section key must be a non-empty string")
    if KEY_DELIMITER in section_key:
        raise InvalidSectionKeyError(
            f"Section key {section_key!r} must be a top-level name without '{KEY_DELIMITER}'"
        )
    return section_key


class OptionsMonitor(Generic[T]):
    """Current bound value of one configuration section."""

    def __init__(self, options_type: Type[T], root: ConfigurationRoot, section_key: str):
        self._options_type = options_type
        self._root = root
        self._section_key = validate_section_key(section_key)
        self._current: Optional[T] = None
        self._bound = False
        self._listeners: List[ChangeListener] = []
        self._unsubscribe_root = root.on_reload(self._on_root_reload)

    @property
    def options_type(self) -> Type[T]:
        return self._options_type

    @property
    def section_key(self) -> str:
        return self._section_key

    @property
    def root(self) -> ConfigurationRoot:
        return self._root

    @property
    def current_value(self) -> T:
        """The most recently bound value; bound on first access."""
        if not self._bound:
            self._current = self._bind()
            self._bound = True
        return self._current  # type: ignore[return-value]

    def _bind(self) -> T:
        return bind(self._options_type, self._root.get_section(self._section_key))

    def _on_root_reload(self, root: ConfigurationRoot) -> None:
        try:
            value = self._bind()
        except OptionsBindingError as exc:
            log_error(
                "monitor",
                f"Could not bind section '{self._section_key}' after reload; keeping previous value",
                context=str(exc),
            )
            return
        self._current = value
        self._bound = True
        for listener in list(self._listeners):
            try:
                listener(value, self._section_key)
            except Exception as exc:
                log_error("monitor", "Change listener failed", context=repr(listener), exception=exc)

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(value, section_key)``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reload(self) -> None:
        self._root.reload()

    def close(self) -> None:
        """Stop following root reloads."""
        self._unsubscribe_root()
        self._listeners.clear()


class WritableOptionsMonitor(OptionsMonitor[T]):
    """
    Options monitor that can persist changes to its section.

    The settings file is resolved once, at construction: the environment
    file (``appsettings.{environment}.json``) when it exists, otherwise the
    base file. Constructing a monitor registers it as the writable monitor
    for its section key.
    """

    def __init__(
        self,
        options_type: Type[T],
        root: ConfigurationRoot,
        section_key: str,
        host: Optional[HostEnvironment] = None,
        settings: Optional[WritableOptionsSettings] = None,
        register: bool = True,
    ):
        super().__init__(options_type, root, section_key)
        host = host or HostEnvironment.from_env()
        settings = settings or WritableOptionsSettings()
        self._physical_path = resolve_settings_path(
            settings.json_base_file, host.environment_name, host.content_root
        )
        log_debug(
            "monitor",
            f"Writable monitor for section '{self._section_key}'",
            context=f"path={self._physical_path}",
        )
        if register:
            register_writable(self)

    @property
    def physical_path(self) -> Path:
        return self._physical_path

    def _prepare(self, apply_changes: ApplyChanges) -> T:
        candidate = copy.deepcopy(self.current_value)
        result = apply_changes(candidate)
        return candidate if result is None else result

    def _write_memory(self, value: T) -> bool:
        provider = self._root.find_provider(MemoryProvider)
        if provider is None:
            log_warning(
                "monitor",
                "In-memory update requested but no in-memory provider is registered",
                context=f"section={self._section_key}",
            )
            return False
        for key, text in flatten_options(value, self._section_key).items():
            provider.set(key, text)
        return True

    def _finish(self, results: List[bool]) -> bool:
        if not results:
            log_debug("monitor", f"No provider selected for section '{self._section_key}'")
            return False
        success = all(results)
        if any(results):
            try:
                self._root.reload()
            except ConfigurationLoadError as exc:
                log_warning(
                    "monitor",
                    "Settings persisted but configuration reload failed",
                    context=f"section={self._section_key}; cause={exc}",
                )
                return False
        if success:
            log_info("monitor", f"Section '{self._section_key}' updated")
        return success

    def update(self, apply_changes: ApplyChanges, providers: ProviderFlags) -> bool:
        """
        Apply ``apply_changes`` to a copy of the current value and persist it.

        ``apply_changes`` mutates the copy in place or returns a replacement
        (useful for frozen dataclasses).

        Returns:
            ``True`` if every requested store was written, otherwise ``False``.
        """
        providers = ProviderFlags(providers)
        new_value = self._prepare(apply_changes)
        results: List[bool] = []
        if providers & ProviderFlags.JSON:
            results.append(patch_section(self._physical_path, self._section_key, new_value))
        if providers & ProviderFlags.MEMORY:
            results.append(self._write_memory(new_value))
        return self._finish(results)

    async def update_async(self, apply_changes: ApplyChanges, providers: ProviderFlags) -> bool:
        """Async variant of :meth:`update`; only the file read and write are awaited."""
        providers = ProviderFlags(providers)
        new_value = self._prepare(apply_changes)
        results: List[bool] = []
        if providers & ProviderFlags.JSON:
            results.append(
                await patch_section_async(self._physical_path, self._section_key, new_value)
            )
        if providers & ProviderFlags.MEMORY:
            results.append(self._write_memory(new_value))
        return self._finish(results)
