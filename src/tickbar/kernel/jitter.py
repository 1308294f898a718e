"""
Jitter - random start-up delays that spread module updates over time.

All workers share one random source. It is seeded lazily, exactly once,
no matter how many workers ask for a delay at the same time.
"""

from __future__ import annotations

import random
import threading
import time

_lock = threading.Lock()
_rng: random.Random | None = None


def _source() -> random.Random:
    global _rng
    if _rng is None:
        with _lock:
            if _rng is None:
                _rng = random.Random(time.time_ns())
    return _rng


def jitter(max_ms: int) -> float:
    """
    Return a random delay in seconds, lower than ``max_ms`` milliseconds.

    A maximum of 0 disables jitter and always returns 0.
    """
    if max_ms <= 0:
        return 0.0
    return _source().randrange(max_ms) / 1000
