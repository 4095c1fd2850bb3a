"""Thin wrapper for running external CLIs through plumbum."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from plumbum import CommandNotFound, local
from plumbum.commands.processes import ProcessExecutionError, ProcessTimedOut

from ocp_lab_prep._lab_errors import PrerequisiteMissingError, RemoteOperationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandContext:
    """Execution options for :func:`run_command`."""

    env: dict[str, str] | None = None
    stdin: str | None = None
    timeout: int | None = None
    # Arguments at these positions are replaced by ``***`` in logs and errors.
    secret_positions: tuple[int, ...] = ()


def describe(command: str, args: tuple[str, ...], secret_positions: tuple[int, ...]) -> str:
    """Return a printable command line with secret arguments masked.

    Examples
    --------
    >>> describe("htpasswd", ("-b", "file", "admin", "pw"), (3,))
    'htpasswd -b file admin ***'
    """
    shown = ["***" if index in secret_positions else arg for index, arg in enumerate(args)]
    return " ".join([command, *shown])


def run_command(
    command: str,
    *args: str,
    context: CommandContext | None = None,
) -> str:
    """Execute an external command and return its standard output.

    Raises
    ------
    PrerequisiteMissingError
        If ``command`` is not on ``PATH``.
    RemoteOperationError
        If the command exits non-zero or times out.

    Examples
    --------
    >>> run_command("printf", "hello")
    'hello'
    """
    ctx = context or CommandContext()
    shown = describe(command, args, ctx.secret_positions)
    logger.debug("Running %s", shown)
    try:
        bound = local[command][list(args)]
    except CommandNotFound as exc:
        msg = f"{command} is not installed or not on PATH"
        raise PrerequisiteMissingError(msg) from exc
    try:
        if ctx.stdin is None:
            _, stdout, _ = bound.run(env=ctx.env, timeout=ctx.timeout)
        else:
            _, stdout, _ = (bound << ctx.stdin).run(env=ctx.env, timeout=ctx.timeout)
    except ProcessTimedOut as exc:
        msg = f"{shown} timed out after {ctx.timeout}s"
        raise RemoteOperationError(msg) from exc
    except ProcessExecutionError as exc:
        detail = (exc.stderr or exc.stdout or "").strip() or f"exit status {exc.retcode}"
        msg = f"{shown} failed: {detail}"
        raise RemoteOperationError(msg) from exc
    return stdout


__all__ = ["CommandContext", "describe", "run_command"]
