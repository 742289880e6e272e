import threading
import time
from collections import deque
from typing import Callable, Deque, Dict


class RateLimiter:
    """
    In-memory sliding-window limiter: at most `limit_per_window` run
    submissions per client key (IP) within `window_seconds`.
    """
    def __init__(self, limit_per_window: int, window_seconds: int = 60,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = int(limit_per_window)
        self.window = int(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Deque[float]] = {}

    def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            q = self._hits.setdefault(key, deque())
            while q and (now - q[0]) >= self.window:
                q.popleft()
            if len(q) >= self.limit:
                return False
            q.append(now)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
