"""Per-client rate limiting and the global heavy-job ceiling."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Callable, Deque, Dict, Iterator, Mapping, Optional, Tuple

from nodes_media.config import GuardSettings, RateLimitRule
from nodes_media.errors import RateLimitedError, ServerBusyError

Clock = Callable[[], float]


class RateLimiter:
    """Sliding-window request log per ``(bucket, client_ip)``."""

    def __init__(self, rules: Mapping[str, RateLimitRule], *, clock: Clock = time.monotonic) -> None:
        self._rules = dict(rules)
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}

    def rule(self, bucket: str) -> RateLimitRule:
        try:
            return self._rules[bucket]
        except KeyError:
            raise ValueError(f"Unknown rate limit bucket '{bucket}'") from None

    @staticmethod
    def _prune(hits: Deque[float], now: float, window: float) -> None:
        while hits and hits[0] <= now - window:
            hits.popleft()

    def check(self, client_ip: str, bucket: str) -> None:
        """Record a request, raising `RateLimitedError` when over quota."""
        rule = self.rule(bucket)
        with self._lock:
            now = self._clock()
            hits = self._hits.setdefault((bucket, client_ip), deque())
            self._prune(hits, now, rule.window_seconds)
            if len(hits) >= rule.max_requests:
                retry_after = math.ceil(hits[0] + rule.window_seconds - now)
                raise RateLimitedError(
                    "Too many requests. Please try again later.",
                    retry_after_seconds=max(1, retry_after),
                    details=f"{bucket} limit is {rule.max_requests} per {rule.window_seconds}s",
                )
            hits.append(now)

    def remaining(self, client_ip: str, bucket: str) -> int:
        rule = self.rule(bucket)
        with self._lock:
            hits = self._hits.get((bucket, client_ip))
            if not hits:
                return rule.max_requests
            self._prune(hits, self._clock(), rule.window_seconds)
            return max(0, rule.max_requests - len(hits))

    def sweep(self) -> int:
        """Drop keys whose whole log has expired; returns how many were removed."""
        removed = 0
        with self._lock:
            now = self._clock()
            for key in list(self._hits):
                hits = self._hits[key]
                self._prune(hits, now, self.rule(key[0]).window_seconds)
                if not hits:
                    del self._hits[key]
                    removed += 1
        return removed

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)


class ConcurrencyGuard:
    """Lock-protected counter of heavy jobs; full means reject, never queue."""

    def __init__(self, max_concurrent: int = 4, busy_retry_seconds: int = 10) -> None:
        self.max_concurrent = max_concurrent
        self.busy_retry_seconds = busy_retry_seconds
        self._lock = threading.Lock()
        self._active = 0

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def try_acquire(self) -> bool:
        with self._lock:
            if self._active >= self.max_concurrent:
                return False
            self._active += 1
            return True

    def release(self) -> None:
        with self._lock:
            self._active = max(0, self._active - 1)

    def busy_error(self) -> ServerBusyError:
        return ServerBusyError(
            "Server is busy processing other requests. Please try again shortly.",
            retry_after_seconds=self.busy_retry_seconds,
        )

    @contextmanager
    def slot(self) -> Iterator[None]:
        if not self.try_acquire():
            raise self.busy_error()
        try:
            yield
        finally:
            self.release()


class ResourceGuard:
    """Admission control combining the rate limiter and the heavy-job ceiling."""

    def __init__(
        self,
        limiter: RateLimiter,
        concurrency: ConcurrencyGuard,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.limiter = limiter
        self.concurrency = concurrency
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: GuardSettings,
        *,
        clock: Clock = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> "ResourceGuard":
        return cls(
            RateLimiter(settings.rate_limits, clock=clock),
            ConcurrencyGuard(settings.max_concurrent_heavy, settings.busy_retry_seconds),
            logger,
        )

    @contextmanager
    def admit(self, client_ip: str, bucket: str, *, heavy: bool = False) -> Iterator[None]:
        try:
            self.limiter.check(client_ip, bucket)
        except RateLimitedError:
            self.logger.warning("Rate limited %s on %s bucket", client_ip, bucket)
            raise

        if not heavy:
            yield
            return

        if not self.concurrency.try_acquire():
            self.logger.warning(
                "Rejected heavy job from %s: all %s slots busy",
                client_ip,
                self.concurrency.max_concurrent,
            )
            raise self.concurrency.busy_error()
        try:
            yield
        finally:
            self.concurrency.release()

    def sweep(self) -> int:
        removed = self.limiter.sweep()
        if removed:
            self.logger.debug("Swept %s stale rate-limit entries", removed)
        return removed


__all__ = ["ConcurrencyGuard", "RateLimiter", "ResourceGuard"]
