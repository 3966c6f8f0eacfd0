"""
Fixed-interval limiter: ``wait(key)`` sleeps until ``min_interval`` has passed since the last hit.
"""
from __future__ import annotations

import threading
import time
from typing import Dict


class RateLimiter:
    def __init__(self) -> None:
        self._limits: Dict[str, float] = {}
        self._last_hit: Dict[str, float] = {}
        self._lock = threading.Lock()

    def configure(self, key: str, min_interval: float) -> None:
        self._limits[key] = min_interval

    def wait(self, key: str) -> None:
        interval = self._limits.get(key)
        if not interval:
            return
        with self._lock:
            now = time.monotonic()
            last = self._last_hit.get(key)
            if last is not None and now - last < interval:
                time.sleep(interval - (now - last))
            self._last_hit[key] = time.monotonic()
