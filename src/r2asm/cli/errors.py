"""
CLI Error Handling
==================

Maps exceptions raised while running ``r2asm`` to a message on stderr and
a process exit code.

| Exit code | Cause                                             |
|-----------|---------------------------------------------------|
| 0         | success                                           |
| 1         | the source did not assemble (any R2AsmError)      |
| 2         | bad option value, unreadable or unwritable file   |
| 3         | anything else (a bug in the assembler)            |
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from r2asm.errors import R2AsmError


class ExitCode(IntEnum):
    """Exit codes of the r2asm command."""
    SUCCESS = 0
    BUILD_ERROR = 1
    INVALID_ARGS = 2
    INTERNAL_ERROR = 3


def exit_code_for(error: Exception) -> ExitCode:
    """Classify an exception escaping the command."""
    if isinstance(error, R2AsmError):
        return ExitCode.BUILD_ERROR
    if isinstance(error, (click.BadParameter, OSError)):
        return ExitCode.INVALID_ARGS
    return ExitCode.INTERNAL_ERROR


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report an exception and exit.

    Args:
        error: The exception that was raised
        verbose: If True, print the traceback of internal errors
        error_type: Prefix for assembly errors (e.g. "Assembly")

    Raises:
        SystemExit: Always
    """
    code = exit_code_for(error)

    if code == ExitCode.BUILD_ERROR:
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
    elif code == ExitCode.INVALID_ARGS:
        click.echo(f"Error: {error}", err=True)
    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()

    sys.exit(code)
