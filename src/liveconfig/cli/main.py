"""
Typer-based CLI for liveconfig.

Commands:
- path: show which settings file updates are written to
- show: print the effective value of a section
- set:  change leaf values of a section and persist them

Examples:
    liveconfig --content-root ./deploy --environment Development show App
    liveconfig set App Name=svc Limits.MaxItems=10 --provider json
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer
from rich.console import Console
from rich.syntax import Syntax

from liveconfig.core.config.errors import ConfigurationLoadError, InvalidSectionKeyError
from liveconfig.core.config.monitor import WritableOptionsMonitor
from liveconfig.core.config.persistence import read_settings_document
from liveconfig.core.config.providers import ProviderFlags
from liveconfig.core.config.registry import KEY_DELIMITER
from liveconfig.core.config.root import create_default_configuration
from liveconfig.core.utils.logger import log_configuration_change, setup_logging
from liveconfig.core.utils.paths import (
    CONTENT_ROOT_ENV,
    DEFAULT_BASE_FILE,
    DEFAULT_ENVIRONMENT,
    ENVIRONMENT_ENV,
    HostEnvironment,
    WritableOptionsSettings,
    resolve_settings_path,
)

from .exit_codes import CliExit

console = Console()

app = typer.Typer(
    name="liveconfig",
    help="Inspect and edit live settings sections",
    no_args_is_help=True,
)

PROVIDER_CHOICES = {
    "json": ProviderFlags.JSON,
    "memory": ProviderFlags.MEMORY,
    "both": ProviderFlags.BOTH,
}


@dataclass
class CliContext:
    host: HostEnvironment
    base_file: str


def _context(ctx: typer.Context) -> CliContext:
    return ctx.obj


def _load_root(state: CliContext, memory: bool):
    try:
        return create_default_configuration(state.host, state.base_file, memory=memory)
    except ConfigurationLoadError as exc:
        raise CliExit.error(str(exc))


@app.callback()
def main(
    ctx: typer.Context,
    content_root: Optional[Path] = typer.Option(
        None, "--content-root", "-r", help=f"Directory holding settings files (env: {CONTENT_ROOT_ENV})"
    ),
    environment: Optional[str] = typer.Option(
        None, "--environment", "-e", help=f"Environment overlay name (env: {ENVIRONMENT_ENV})"
    ),
    base_file: str = typer.Option(DEFAULT_BASE_FILE, "--file", "-f", help="Base settings file name"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    """Inspect and edit live settings sections."""
    setup_logging(log_level)
    root_dir = content_root or Path(os.getenv(CONTENT_ROOT_ENV) or Path.cwd())
    environment_name = environment if environment is not None else os.getenv(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)
    ctx.obj = CliContext(
        host=HostEnvironment(environment_name=environment_name, content_root=root_dir.resolve()),
        base_file=base_file,
    )


@app.command("path")
def show_path(ctx: typer.Context):
    """Print the settings file that updates are written to."""
    state = _context(ctx)
    path = resolve_settings_path(state.base_file, state.host.environment_name, state.host.content_root)
    typer.echo(str(path))
    if not path.exists():
        console.print("[yellow]File does not exist yet[/yellow]")


@app.command("show")
def show_section(
    ctx: typer.Context,
    section: str = typer.Argument(..., help="Section key, e.g. App"),
    raw: bool = typer.Option(False, "--raw", help="Print plain JSON without highlighting"),
):
    """Print the effective value of a section as JSON."""
    state = _context(ctx)
    root = _load_root(state, memory=False)
    if not root.section_exists(section):
        raise CliExit.error(f"Section '{section}' not found")
    rendered = json.dumps(root.get_section(section), indent=2, ensure_ascii=False)
    if raw:
        typer.echo(rendered)
    else:
        console.print(Syntax(rendered, "json"))


def parse_assignment(text: str) -> Tuple[List[str], Any]:
    """Split ``Key.Sub=value`` into key parts and a JSON-decoded (or string) value."""
    key, sep, value = text.partition("=")
    parts = [part for part in key.strip().replace(".", KEY_DELIMITER).split(KEY_DELIMITER) if part]
    if not sep or not parts:
        raise ValueError(f"Expected KEY=VALUE, got {text!r}")
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    return parts, parsed


def assign(target: Dict[str, Any], parts: List[str], value: Any) -> Any:
    """Set ``value`` at ``parts``, creating mappings on the way; returns the old value."""
    cursor = target
    for part in parts[:-1]:
        if not isinstance(cursor.get(part), dict):
            cursor[part] = {}
        cursor = cursor[part]
    previous = cursor.get(parts[-1])
    cursor[parts[-1]] = value
    return previous


def _file_section(path: Path, section: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
    """Section as stored in the file (native JSON types), else ``fallback``."""
    try:
        document, _ = read_settings_document(path)
    except (OSError, ValueError):
        return fallback
    stored = document.get(section)
    return copy.deepcopy(stored) if isinstance(stored, dict) else fallback


@app.command("set")
def set_values(
    ctx: typer.Context,
    section: str = typer.Argument(..., help="Section key, e.g. App"),
    assignments: List[str] = typer.Argument(..., help="KEY=VALUE pairs; nested keys use '.' or ':'"),
    provider: str = typer.Option("json", "--provider", "-p", help="json, memory or both"),
):
    """Change values in a section and persist them."""
    state = _context(ctx)
    flags = PROVIDER_CHOICES.get(provider.lower())
    if flags is None:
        raise CliExit.config_error(f"Unknown provider '{provider}' (choose json, memory or both)")
    try:
        changes = [parse_assignment(item) for item in assignments]
    except ValueError as exc:
        raise CliExit.config_error(str(exc))

    root = _load_root(state, memory=True)
    try:
        monitor = WritableOptionsMonitor(
            dict,
            root,
            section,
            host=state.host,
            settings=WritableOptionsSettings(json_base_file=state.base_file),
            register=False,
        )
    except InvalidSectionKeyError as exc:
        raise CliExit.config_error(str(exc))

    def apply_changes(current: Dict[str, Any]) -> Dict[str, Any]:
        updated = _file_section(monitor.physical_path, section, current)
        for parts, value in changes:
            previous = assign(updated, parts, value)
            log_configuration_change(KEY_DELIMITER.join([section, *parts]), previous, value)
        return updated

    if not monitor.update(apply_changes, flags):
        raise CliExit.error(f"Could not update section '{section}' in {monitor.physical_path}")
    console.print(f"[green]Updated section '{section}'[/green] ({provider.lower()})")
