from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROG = Path(__file__).with_name("prog_for_tests.py")


@pytest.fixture
def prog() -> list[str]:
    """Command prefix that runs the scriptable test program."""

    return [sys.executable, str(PROG)]
