"""Lightweight in-process metrics for development and tests.

Counters and timings recorded by the engine and the orchestrator. No external
exporter; ``snapshot()`` is what the CLI daemon logs and tests read.

Only the most recent ``max_samples`` durations are kept per key, so a
long-running daemon stays bounded; per-key totals cover every sample.

Usage:
    from applist_backup.backup_engine.metrics import metrics
    metrics.inc("orchestrator.refresh_coalesced")
    with metrics.timed("producer.produce"):
        ...
"""

from __future__ import annotations

import time
from collections import defaultdict, deque
from collections.abc import Iterator
from contextlib import contextmanager
from threading import RLock
from typing import Any

DEFAULT_MAX_SAMPLES = 256


class _Metrics:
    def __init__(self, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        self._max_samples = max(1, int(max_samples))
        self._counters: dict[str, int] = defaultdict(int)
        self._samples: dict[str, deque[float]] = {}
        self._totals: dict[str, list[float]] = {}  # key -> [count, total_s, max_s]
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def observe(self, key: str, seconds: float) -> None:
        with self._lock:
            samples = self._samples.get(key)
            if samples is None:
                samples = self._samples[key] = deque(maxlen=self._max_samples)
                self._totals[key] = [0, 0.0, 0.0]
            samples.append(seconds)
            agg = self._totals[key]
            agg[0] += 1
            agg[1] += seconds
            agg[2] = max(agg[2], seconds)

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(key, time.perf_counter() - start)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: list(v) for k, v in self._samples.items()},
                "timing_totals": {
                    k: {"count": int(c), "total_s": total, "max_s": peak}
                    for k, (c, total, peak) in self._totals.items()
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._samples.clear()
            self._totals.clear()


metrics = _Metrics()
