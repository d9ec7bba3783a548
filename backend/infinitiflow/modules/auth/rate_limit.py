"""
Per-user request throttling.

Sliding-window counter keyed by (scope, user id) and held in process
memory. Entries live in an LRU with TTL so the map stays bounded no
matter how many distinct users hit the API.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from collections import OrderedDict


@dataclass
class RequestWindow:
    """Request timestamps (seconds) for one user within one scope"""
    timestamps: List[float] = field(default_factory=list)
    window_seconds: float = 0.0

    @property
    def last_seen(self) -> float:
        return self.timestamps[-1] if self.timestamps else 0.0


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: Optional[int] = None


class UserRateLimiter:
    """
    LRU cache of per-user sliding windows.

    Features:
    - Sliding window: only requests newer than now - window count
    - TTL: an entry whose newest request is older than its window is dropped
    - LRU eviction when max_size entries are tracked
    """

    MAX_SIZE = 10000

    def __init__(self, max_size: int = MAX_SIZE):
        self.max_size = max_size
        self._windows: "OrderedDict[Tuple[str, str], RequestWindow]" = OrderedDict()
        self._stats = {
            "allowed": 0,
            "rejected": 0,
            "evictions": 0
        }

    def hit(
        self,
        scope: str,
        user_id: str,
        max_requests: int,
        window_ms: int,
        now: Optional[float] = None
    ) -> RateLimitResult:
        """
        Record a request and report whether it is within budget.

        A rejected request is not recorded.
        """
        now = time.time() if now is None else now
        window_seconds = window_ms / 1000.0
        window_start = now - window_seconds
        key = (scope, str(user_id))

        entry = self._windows.get(key)
        if entry is None:
            self._evict_expired(now)
            while len(self._windows) >= self.max_size:
                self._windows.popitem(last=False)
                self._stats["evictions"] += 1
            entry = RequestWindow(window_seconds=window_seconds)
            self._windows[key] = entry
        else:
            self._windows.move_to_end(key)

        entry.window_seconds = window_seconds
        entry.timestamps = [t for t in entry.timestamps if t > window_start]

        if len(entry.timestamps) >= max_requests:
            self._stats["rejected"] += 1
            retry_after = int(entry.timestamps[0] + window_seconds - now) + 1
            return RateLimitResult(allowed=False, remaining=0, retry_after=max(retry_after, 1))

        entry.timestamps.append(now)
        self._stats["allowed"] += 1
        return RateLimitResult(allowed=True, remaining=max_requests - len(entry.timestamps))

    def _evict_expired(self, now: float) -> None:
        """Drop entries whose newest request has aged out of its window (TTL)"""
        expired = [
            key for key, entry in self._windows.items()
            if now - entry.last_seen > entry.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)

    def clear(self):
        """Forget every tracked user"""
        self._windows.clear()
        self._stats = {"allowed": 0, "rejected": 0, "evictions": 0}

    def get_stats(self) -> Dict:
        return {
            "size": len(self._windows),
            "max_size": self.max_size,
            **self._stats,
        }
