from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[2]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


@pytest.fixture
def fake_govc():
    """Return a fresh recording govc double."""
    from ocp_lab_prep.tests._fakes import FakeGovc

    return FakeGovc()
