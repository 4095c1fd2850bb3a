"""Unit tests for progress tracking and signal handling."""

from __future__ import annotations

import signal

import pytest

from ocp_lab_prep._run_context import (
    EXIT_INTERRUPTED,
    EXIT_TERMINATED,
    ProgressTracker,
    install_signal_handlers,
)


def test_summary_lists_steps_and_nodes() -> None:
    tracker = ProgressTracker()
    assert tracker.summary() == ["nothing was changed"]
    tracker.step_done("ISO uploaded")
    tracker.node_state("demo-ocp-mgmt-master-01", "created")
    assert tracker.summary() == [
        "completed: ISO uploaded",
        "demo-ocp-mgmt-master-01: created",
    ]


@pytest.mark.parametrize(
    ("signum", "code"),
    [
        pytest.param(signal.SIGINT, EXIT_INTERRUPTED, id="sigint"),
        pytest.param(signal.SIGTERM, EXIT_TERMINATED, id="sigterm"),
    ],
)
def test_signal_reports_progress_and_exits_non_zero(
    signum: int, code: int, capsys: pytest.CaptureFixture[str]
) -> None:
    tracker = ProgressTracker()
    tracker.node_state("demo-ocp-mgmt-master-01", "disk-configured")
    exits: list[int] = []
    restore = install_signal_handlers(tracker, exit_fn=exits.append)
    try:
        handler = signal.getsignal(signum)
        assert callable(handler)
        handler(signum, None)
    finally:
        restore()

    assert exits == [code]
    assert tracker.cancel.is_set(), "in-flight waits must be cancelled"
    err = capsys.readouterr().err
    assert "aborted by" in err
    assert "demo-ocp-mgmt-master-01: disk-configured" in err


def test_restore_reinstates_previous_handlers() -> None:
    before = signal.getsignal(signal.SIGTERM)
    restore = install_signal_handlers(ProgressTracker(), exit_fn=lambda _code: None)
    assert signal.getsignal(signal.SIGTERM) is not before
    restore()
    assert signal.getsignal(signal.SIGTERM) is before
