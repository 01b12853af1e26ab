from __future__ import annotations

import pytest

from edit_guard.config import GuardConfig

from .helpers import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return GuardConfig(
        raw={
            "threshold": 50,
            "warn_threshold": 25,
            "min_lines": 20,
            "retry_window": 120,
            "cleanup_batch": 20,
            "cache_dir": str(tmp_path / "tokens"),
        }
    )
