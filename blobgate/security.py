from __future__ import annotations

import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from threading import Lock


@dataclass(slots=True)
class FailedAttemptLimiter:
    """In-memory sliding window over failed attempts per client.

    A client is blocked once it has `limit` failures within `window_s`.
    Successful attempts are never recorded. `limit <= 0` disables blocking.
    """

    limit: int
    window_s: float
    max_keys: int = 10_000
    _failures: "OrderedDict[str, deque[float]]" = field(default_factory=OrderedDict)
    _lock: Lock = field(default_factory=Lock)

    def blocked(self, key: str, now: float | None = None) -> bool:
        if self.limit <= 0:
            return False
        key = key or "unknown"
        if now is None:
            now = time.time()
        with self._lock:
            q = self._failures.get(key)
            if q is None:
                return False
            self._expire(key, q, now - self.window_s)
            return len(q) >= self.limit

    def record_failure(self, key: str, now: float | None = None) -> None:
        if self.limit <= 0:
            return
        key = key or "unknown"
        if now is None:
            now = time.time()
        with self._lock:
            q = self._failures.get(key)
            if q is None:
                while self.max_keys > 0 and len(self._failures) >= self.max_keys:
                    self._failures.popitem(last=False)
                q = deque()
                self._failures[key] = q
            else:
                self._failures.move_to_end(key)
            cutoff = now - self.window_s
            while q and q[0] <= cutoff:
                q.popleft()
            q.append(now)
            # only the newest `limit` entries can affect the decision
            while len(q) > self.limit:
                q.popleft()

    def _expire(self, key: str, q: deque[float], cutoff: float) -> None:
        while q and q[0] <= cutoff:
            q.popleft()
        if not q:
            self._failures.pop(key, None)
