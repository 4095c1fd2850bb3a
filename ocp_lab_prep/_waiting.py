"""Bounded polling used instead of fixed sleeps."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from ocp_lab_prep._lab_errors import LabPrepError, WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WaitCancelled(LabPrepError):
    """Raised when a wait is cancelled through its event."""


@dataclass(frozen=True, slots=True)
class WaitPolicy:
    """Timeout and pacing for :func:`wait_until`.

    Attributes
    ----------
    timeout
        Total seconds to wait before giving up.
    interval
        Seconds before the second check.
    backoff
        Multiplier applied to the interval after each failed check.
    max_interval
        Upper bound for the interval.
    """

    timeout: float
    interval: float = 2.0
    backoff: float = 1.5
    max_interval: float = 15.0


def wait_until(
    check: Callable[[], T | None],
    policy: WaitPolicy,
    *,
    description: str,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], object] | None = None,
) -> T:
    """Call ``check`` until it returns a truthy value or the timeout expires.

    Parameters
    ----------
    check : Callable[[], T | None]
        Readiness check; a falsy result means "not yet".
    policy : WaitPolicy
        Timeout, interval and backoff.
    description : str
        Human-readable name of the awaited state, used in errors.
    cancel : threading.Event | None, optional
        Setting this event stops the wait with :class:`WaitCancelled`.
    clock, sleep : optional
        Overrides for tests.

    Returns
    -------
    T
        The first truthy check result.

    Raises
    ------
    WaitTimeoutError
        If ``policy.timeout`` seconds pass without a truthy result.

    Examples
    --------
    >>> wait_until(lambda: "ready", WaitPolicy(timeout=1), description="demo")
    'ready'
    """
    event = cancel or threading.Event()
    pause = sleep or event.wait
    deadline = clock() + policy.timeout
    interval = policy.interval
    attempt = 0
    while True:
        attempt += 1
        result = check()
        if result:
            logger.debug("%s after %d check(s)", description, attempt)
            return result
        remaining = deadline - clock()
        if remaining <= 0:
            msg = f"timed out after {policy.timeout:g}s waiting for {description}"
            raise WaitTimeoutError(msg)
        if event.is_set():
            msg = f"wait for {description} cancelled"
            raise WaitCancelled(msg)
        pause(min(interval, remaining))
        if event.is_set():
            msg = f"wait for {description} cancelled"
            raise WaitCancelled(msg)
        interval = min(interval * policy.backoff, policy.max_interval)


__all__ = ["WaitCancelled", "WaitPolicy", "wait_until"]
