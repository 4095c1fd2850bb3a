"""Progress tracking and interrupt handling for a single operator run."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from types import FrameType

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130
EXIT_TERMINATED = 143


@dataclass(slots=True)
class ProgressTracker:
    """Records what a run has changed so far.

    ``cancel`` is shared with :func:`~ocp_lab_prep._waiting.wait_until` so an
    interrupt also stops any in-flight wait.
    """

    completed: list[str] = field(default_factory=list)
    node_states: dict[str, str] = field(default_factory=dict)
    cancel: threading.Event = field(default_factory=threading.Event)

    def step_done(self, step: str) -> None:
        """Record a completed run-level step."""
        logger.info("Step complete: %s", step)
        self.completed.append(step)

    def node_state(self, node: str, state: str) -> None:
        """Record the latest state reached by ``node``."""
        logger.info("%s -> %s", node, state)
        self.node_states[node] = state

    def summary(self) -> list[str]:
        """Return human-readable lines describing partial progress.

        Examples
        --------
        >>> tracker = ProgressTracker(); tracker.step_done("iso uploaded")
        >>> tracker.summary()
        ['completed: iso uploaded']
        """
        lines = [f"completed: {step}" for step in self.completed]
        lines += [f"{node}: {state}" for node, state in self.node_states.items()]
        return lines or ["nothing was changed"]


def _exit_code(signum: int) -> int:
    return EXIT_TERMINATED if signum == signal.SIGTERM else EXIT_INTERRUPTED


def install_signal_handlers(
    tracker: ProgressTracker,
    *,
    exit_fn: Callable[[int], object] = sys.exit,
) -> Callable[[], None]:
    """Report partial progress and exit non-zero on SIGINT or SIGTERM.

    Returns a callable that restores the previous handlers.
    """

    def handle(signum: int, _frame: FrameType | None) -> None:
        name = signal.Signals(signum).name
        tracker.cancel.set()
        logger.warning("Received %s; aborting run", name)
        print(f"\nerror: aborted by {name}; partial progress:", file=sys.stderr)
        for line in tracker.summary():
            print(f"  {line}", file=sys.stderr)
        exit_fn(_exit_code(signum))

    previous = {
        signum: signal.signal(signum, handle) for signum in (signal.SIGINT, signal.SIGTERM)
    }

    def restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return restore


__all__ = ["EXIT_INTERRUPTED", "EXIT_TERMINATED", "ProgressTracker", "install_signal_handlers"]
