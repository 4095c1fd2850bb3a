"""Shared plumbing for the operator entrypoints."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable

from ocp_lab_prep._govc import VSphereConnection
from ocp_lab_prep._lab_errors import LabPrepError, OperatorAbort
from ocp_lab_prep._prompts import Prompter
from ocp_lab_prep._run_context import ProgressTracker, install_signal_handlers
from ocp_lab_prep._validators import validate_url

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def report_error(exc: LabPrepError) -> None:
    """Print ``exc`` and its remediation hint to stderr."""
    print(f"error: {exc}", file=sys.stderr)
    if exc.remediation:
        print(f"hint: {exc.remediation}", file=sys.stderr)


def run_guarded(body: Callable[[ProgressTracker], int], tracker: ProgressTracker | None = None) -> int:
    """Run ``body`` with signal handling and map errors to exit codes.

    Operator cancellation exits 0; any other lab error prints the message,
    the hint and the partial progress, then exits 1.
    """
    tracker = tracker or ProgressTracker()
    restore = install_signal_handlers(tracker)
    try:
        return body(tracker)
    except OperatorAbort as exc:
        print(f"Aborted: {exc}")
        return 0
    except LabPrepError as exc:
        logger.debug("Run failed", exc_info=True)
        report_error(exc)
        if tracker.completed or tracker.node_states:
            print("partial progress:", file=sys.stderr)
            for line in tracker.summary():
                print(f"  {line}", file=sys.stderr)
        return 1
    finally:
        restore()


def prompt_connection(prompter: Prompter, *, datacenter: str | None = None) -> VSphereConnection:
    """Ask for the vCenter endpoint and login."""
    url = prompter.ask_validated("vCenter URL (e.g. https://vcenter.example.com): ", validate_url)
    username = prompter.ask_text("vCenter username: ", label="username")
    password = prompter.ask_secret("vCenter password: ", label="password")
    if datacenter is None:
        datacenter = prompter.ask_text("Datacenter name: ", label="datacenter")
    return VSphereConnection(url=url, username=username, password=password, datacenter=datacenter)


__all__ = ["configure_logging", "prompt_connection", "report_error", "run_guarded"]
