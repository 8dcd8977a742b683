"""Configuration providers feeding the configuration root."""

from __future__ import annotations

import enum
import os
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Union

from liveconfig.core.utils.logger import log_debug

from .errors import ConfigurationLoadError
from .persistence import read_settings_document
from .registry import KEY_DELIMITER, flatten

PathLike = Union[str, "os.PathLike[str]"]

ENV_PREFIX = "LIVECONFIG_"


class ProviderFlags(enum.IntFlag):
    """Backing stores a writable update targets."""

    NONE = 0
    JSON = 1
    MEMORY = 2
    BOTH = JSON | MEMORY


class ConfigurationProvider:
    """
    A source of colon-keyed string values.

    Keys compare case-insensitively; the casing of the first write is kept.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._index: Dict[str, str] = {}

    def load(self) -> None:
        """(Re)load values from the underlying source."""

    def _replace(self, data: Mapping[str, str]) -> None:
        self._data = {}
        self._index = {}
        for key, value in data.items():
            self.set(key, value)

    def set(self, key: str, value: str) -> None:
        folded = key.casefold()
        existing = self._index.get(folded)
        if existing is not None:
            self._data[existing] = value
        else:
            self._index[folded] = key
            self._data[key] = value

    def get(self, key: str) -> Optional[str]:
        existing = self._index.get(key.casefold())
        return None if existing is None else self._data[existing]

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._data.items()))

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._data)} keys)"


class JsonFileProvider(ConfigurationProvider):
    """Values from a JSON settings file; comments and trailing commas allowed."""

    def __init__(self, path: PathLike, optional: bool = True) -> None:
        super().__init__()
        self.path = Path(path)
        self.optional = optional

    def load(self) -> None:
        try:
            document, _ = read_settings_document(self.path)
        except FileNotFoundError as exc:
            if not self.optional:
                raise ConfigurationLoadError(f"Settings file not found: {self.path}") from exc
            log_debug("providers", "Optional settings file not found", context=f"path={self.path}")
            self._replace({})
            return
        except (OSError, ValueError) as exc:
            raise ConfigurationLoadError(f"Could not load settings file {self.path}: {exc}") from exc
        self._replace(flatten(document))

    def __repr__(self) -> str:
        return f"JsonFileProvider({str(self.path)!r}, optional={self.optional})"


class MemoryProvider(ConfigurationProvider):
    """In-memory override store; values survive reloads."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        super().__init__()
        if initial:
            self._replace(initial)


class EnvironmentVariablesProvider(ConfigurationProvider):
    """
    Values from environment variables starting with ``prefix``.

    The prefix is stripped and ``__`` maps to the key delimiter, so
    ``LIVECONFIG_App__Name`` becomes ``App:Name``.
    """

    def __init__(
        self, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None
    ) -> None:
        super().__init__()
        self.prefix = prefix
        self._environ = environ

    def load(self) -> None:
        environ = os.environ if self._environ is None else self._environ
        folded_prefix = self.prefix.casefold()
        data: Dict[str, str] = {}
        for name, value in environ.items():
            if not name.casefold().startswith(folded_prefix):
                continue
            key = name[len(self.prefix):].replace("__", KEY_DELIMITER)
            if key:
                data[key] = value
        self._replace(data)
