"""Settings file location and host environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

DEFAULT_BASE_FILE = "appsettings.json"
DEFAULT_ENVIRONMENT = "Production"

ENVIRONMENT_ENV = "LIVECONFIG_ENVIRONMENT"
CONTENT_ROOT_ENV = "LIVECONFIG_CONTENT_ROOT"

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class HostEnvironment:
    """Where settings files live and which environment overlay applies."""

    environment_name: str = DEFAULT_ENVIRONMENT
    content_root: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_env(cls) -> "HostEnvironment":
        """Build from LIVECONFIG_ENVIRONMENT / LIVECONFIG_CONTENT_ROOT."""
        environment_name = os.getenv(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)
        content_root_env = os.getenv(CONTENT_ROOT_ENV)
        content_root = Path(content_root_env) if content_root_env else Path.cwd()
        return cls(environment_name=environment_name, content_root=content_root.resolve())


@dataclass
class WritableOptionsSettings:
    """Options for a writable monitor."""

    json_base_file: str = DEFAULT_BASE_FILE


def environment_file_name(base_file_name: str, environment_name: str) -> str:
    """Return ``{stem}.{environment}{suffix}`` for a base settings file name."""
    base = Path(base_file_name)
    return f"{base.stem}.{environment_name}{base.suffix}"


def resolve_settings_path(
    base_file_name: str,
    environment_name: str,
    content_root: PathLike,
) -> Path:
    """
    Resolve the physical settings file a writable monitor persists to.

    The environment-specific file (``appsettings.Development.json``) wins when
    it exists; otherwise the base file is returned whether or not it exists.
    A missing file is reported later, when the first write reads it.
    """
    root = Path(content_root).resolve()
    if environment_name:
        candidate = root / environment_file_name(base_file_name, environment_name)
        if candidate.is_file():
            return candidate
    return root / base_file_name
