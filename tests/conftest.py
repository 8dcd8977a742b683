"""
Shared pytest fixtures and configuration for liveconfig tests.

This module provides fixtures for settings files on disk, a clean
environment and a clean writable-monitor registry for every test.
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Union

import pytest

_REPO_ROOT = Path(__file__).resolve().parent.parent

# Put `src/` first so `import liveconfig` uses workspace code.
sys.path.insert(0, str(_REPO_ROOT / "src"))
# Put repo root early so `import tests.*` resolves locally.
sys.path.insert(1, str(_REPO_ROOT))

from liveconfig.core.config.persistence import UTF8_BOM  # noqa: E402
from liveconfig.core.config.registration import clear_registry  # noqa: E402
from liveconfig.core.utils.logger import reset_logging  # noqa: E402
from liveconfig.core.utils.paths import HostEnvironment  # noqa: E402

SettingsWriter = Callable[..., Path]


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    """Clear LIVECONFIG_* variables, the monitor registry and logger handlers."""
    for key in list(os.environ.keys()):
        if key.startswith("LIVECONFIG_"):
            monkeypatch.delenv(key, raising=False)
    clear_registry()
    reset_logging()
    yield
    clear_registry()
    reset_logging()


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Directory holding the settings files for a test."""
    return tmp_path


@pytest.fixture
def host(content_root: Path) -> HostEnvironment:
    """Production host rooted at the test's content root."""
    return HostEnvironment(environment_name="Production", content_root=content_root)


@pytest.fixture
def write_settings(content_root: Path) -> SettingsWriter:
    """
    Write a settings file and return its path.

    ``content`` may be a dict (rendered with 2-space indentation) or raw text.
    """

    def _write(
        content: Union[Dict[str, Any], str],
        name: str = "appsettings.json",
        bom: bool = False,
    ) -> Path:
        text = content if isinstance(content, str) else json.dumps(content, indent=2) + "\n"
        payload = text.encode("utf-8")
        path = content_root / name
        path.write_bytes(UTF8_BOM + payload if bom else payload)
        return path

    return _write


def read_json(path: Path) -> Any:
    """Parse a settings file written by liveconfig (BOM tolerated)."""
    return json.loads(path.read_bytes().decode("utf-8-sig"))
