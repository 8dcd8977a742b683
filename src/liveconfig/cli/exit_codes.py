"""
Standardized exit codes for liveconfig CLI commands.

Commands exit 0 on success, 1 when a settings update could not be
persisted, and 2 when the arguments themselves are invalid.
"""

from typing import Optional

import typer

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2


class CliExit(typer.Exit):
    """
    CLI exit exception with consistent codes.

    Usage:
        raise CliExit.success()
        raise CliExit.error("Update failed")
        raise CliExit.config_error("Expected KEY=VALUE")
    """

    def __init__(self, code: int, message: Optional[str] = None):
        self.message = message
        super().__init__(code)
        if message:
            typer.echo(message, err=code != EXIT_SUCCESS)

    @classmethod
    def success(cls, message: Optional[str] = None) -> "CliExit":
        return cls(EXIT_SUCCESS, message)

    @classmethod
    def error(cls, message: Optional[str] = None) -> "CliExit":
        return cls(EXIT_ERROR, message)

    @classmethod
    def config_error(cls, message: Optional[str] = None) -> "CliExit":
        """Invalid arguments or options."""
        return cls(EXIT_CONFIG_ERROR, message)
