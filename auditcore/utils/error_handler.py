"""Command error handling: every failure lands in .pf/error.log before click reports it."""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import Any

import click

from auditcore.errors import AuditError, iter_errors
from auditcore.utils.logging import logger

from .constants import ERROR_LOG_FILE, PF_DIR

# Failures the user can act on without a traceback
EXPECTED_ERRORS = (AuditError, FileNotFoundError, BaseExceptionGroup)


def write_error_log(command: str, error: BaseException) -> None:
    """Append one entry per underlying error, then the full traceback."""
    PF_DIR.mkdir(parents=True, exist_ok=True)
    with open(ERROR_LOG_FILE, "a", encoding="utf-8") as f:
        f.write(f"[{datetime.now().isoformat()}] {command} failed\n")
        for inner in iter_errors(error):
            f.write(f"  {type(inner).__name__}: {inner}\n")
        f.write("".join(traceback.format_exception(error)))
        f.write("\n")


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Log a failed command and re-raise it as a ClickException (exit code 1)."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except Exception as e:
            command = func.__name__
            write_error_log(command, e)
            if isinstance(e, EXPECTED_ERRORS):
                logger.error(f"Command '{command}' failed: {e}")
                details = "\n".join(f"  - {inner}" for inner in iter_errors(e))
                message = f"{e}" if len(iter_errors(e)) == 1 else f"{e}:\n{details}"
            else:
                logger.opt(exception=True).error(f"Command '{command}' failed: {e}")
                message = f"{type(e).__name__}: {e}"
            raise click.ClickException(f"{message}\n\nDetails logged to: {ERROR_LOG_FILE}") from e

    return wrapper
