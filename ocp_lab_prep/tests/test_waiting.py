"""Unit tests for bounded polling."""

from __future__ import annotations

import threading

import pytest

from ocp_lab_prep._lab_errors import WaitTimeoutError
from ocp_lab_prep._waiting import WaitCancelled, WaitPolicy, wait_until


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_wait_until_returns_first_truthy_result() -> None:
    clock = FakeClock()
    answers = iter([None, "", "192.168.10.21"])
    result = wait_until(
        lambda: next(answers),
        WaitPolicy(timeout=60, interval=2, backoff=2),
        description="an IP",
        clock=clock,
        sleep=clock.sleep,
    )
    assert result == "192.168.10.21"
    assert clock.sleeps == [2, 4], "interval should back off between checks"


def test_wait_until_caps_interval_and_times_out() -> None:
    clock = FakeClock()
    with pytest.raises(WaitTimeoutError, match="authentication"):
        wait_until(
            lambda: False,
            WaitPolicy(timeout=30, interval=10, backoff=3, max_interval=12),
            description="authentication",
            clock=clock,
            sleep=clock.sleep,
        )
    assert clock.sleeps == [10, 12, 8], "last sleep must not overshoot the deadline"


def test_wait_timeout_is_a_builtin_timeout() -> None:
    with pytest.raises(TimeoutError):
        wait_until(lambda: None, WaitPolicy(timeout=0), description="never")


def test_wait_until_honours_cancellation() -> None:
    cancel = threading.Event()
    clock = FakeClock()

    def check() -> bool:
        cancel.set()
        return False

    with pytest.raises(WaitCancelled):
        wait_until(
            check,
            WaitPolicy(timeout=60),
            description="power state",
            cancel=cancel,
            clock=clock,
            sleep=clock.sleep,
        )
    assert clock.sleeps == []
