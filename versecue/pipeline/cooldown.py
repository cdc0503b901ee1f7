"""Time-windowed suppression of repeated detections.

Keyed purely by canonical reference string. Timestamps are supplied by the
caller (monotonic seconds) so expiry can be driven deterministically in tests.
"""

import logging
import threading

logger = logging.getLogger("versecue.detector")


class CooldownCache:
    """Canonical reference -> last emitted timestamp.

    An entry older than ``window`` seconds is expired: it never suppresses a
    new detection, and expire() removes it. Once the cache grows past
    ``prune_threshold`` entries, the next write runs an expiry scan.

    All reads and writes hold one lock, so concurrent detect() calls see a
    consistent view. try_acquire() is the atomic check-and-record used by the
    detector.
    """

    def __init__(self, window: float = 60.0, prune_threshold: int = 100):
        self.window = window
        self.prune_threshold = prune_threshold
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, reference: str) -> bool:
        with self._lock:
            return reference in self._entries

    def _active(self, reference: str, now: float) -> bool:
        last = self._entries.get(reference)
        return last is not None and now - last < self.window

    def is_cooling(self, reference: str, now: float) -> bool:
        """True while the reference was emitted less than ``window`` seconds ago."""
        with self._lock:
            return self._active(reference, now)

    def record(self, reference: str, now: float):
        with self._lock:
            self._record(reference, now)

    def _record(self, reference: str, now: float):
        self._entries[reference] = now
        if len(self._entries) > self.prune_threshold:
            self._expire(now)

    def try_acquire(self, reference: str, now: float) -> bool:
        """Record the reference unless it is cooling down. Returns False when suppressed."""
        with self._lock:
            if self._active(reference, now):
                return False
            self._record(reference, now)
            return True

    def expire(self, now: float) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            return self._expire(now)

    def _expire(self, now: float) -> int:
        stale = [ref for ref, last in self._entries.items() if now - last >= self.window]
        for ref in stale:
            del self._entries[ref]
        if stale:
            logger.debug(f"Cooldown cache pruned {len(stale)} expired entries")
        return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            return dict(self._entries)
