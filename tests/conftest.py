import sys, os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
sys.path.append(os.path.dirname(__file__))

import pytest

from dawaverify.utils.metrics import reset as metrics_reset
from dawaverify.utils.ratelimit import reset_rate_limit


@pytest.fixture(autouse=True)
def _quiet_env(monkeypatch):
    # No display pause, no log file, generous limiter; fresh counters per test
    monkeypatch.setenv("SCAN_MIN_DISPLAY_SECONDS", "0")
    monkeypatch.setenv("LOG_FILE", "")
    monkeypatch.setenv("RL_MAX_REQS", "100")
    monkeypatch.setenv("RL_WINDOW_SECONDS", "60")
    monkeypatch.delenv("HISTORY_DB_URL", raising=False)
    metrics_reset()
    reset_rate_limit()
    yield
