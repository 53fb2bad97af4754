# =============================================
# File: dawaverify/utils/ratelimit.py
# Purpose: In-memory per-user rate limiter for scan submissions
# =============================================

# Sliding window per key: timestamps of the last RL_WINDOW_SECONDS, kept in memory

from __future__ import annotations
import os
import time
from collections import deque
from typing import Dict, Deque

# In-memory store: key -> timestamps deque; keys idle for a whole window are dropped
_store: Dict[str, Deque[float]] = {}

class RateLimited(RuntimeError):
    """Raised when a key exceeded its submissions within the window."""

def _get_limits() -> tuple[int, int]:
    """Read limits at call time so tests/env overrides take effect."""
    max_reqs = int(os.getenv("RL_MAX_REQS", "30"))
    window_s = int(os.getenv("RL_WINDOW_SECONDS", "60"))
    return max_reqs, window_s

def _prune(cutoff: float) -> None:
    for key in [k for k, dq in _store.items() if not dq or dq[-1] < cutoff]:
        del _store[key]

def check_rate_limit(key: str) -> None:
    """Raise RateLimited when `key` is over its budget."""
    now = time.time()
    max_reqs, window_s = _get_limits()

    cutoff = now - window_s
    _prune(cutoff)

    dq = _store.setdefault(key, deque())
    # Drop timestamps outside the window
    while dq and dq[0] < cutoff:
        dq.popleft()

    if len(dq) >= max_reqs:
        raise RateLimited(f"rate limit exceeded for {key}")

    dq.append(now)

def reset_rate_limit() -> None:
    """For tests: clear in-memory counters."""
    _store.clear()
