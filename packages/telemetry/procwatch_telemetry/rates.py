"""Delta-based rate computation over cumulative kernel counters."""

from __future__ import annotations

from typing import Any

from .models import CpuSample, DiskSample, EntityKey, NetSample


PLACEHOLDER = 0.0


class RateEngine:
    """Owns the previous sample per entity and derives instantaneous metrics from it.

    Every compute call stores the new sample for its key before returning, including
    the first observation of a key (which yields ``PLACEHOLDER``), so the next cycle
    always has a baseline. When no time has elapsed, or the CPU total has not moved at
    all, the last value computed for that key is returned unchanged. Decreasing
    counters clamp to zero. Entries are never evicted; a key that stops
    being reported is simply never read again.
    """

    def __init__(self) -> None:
        self._previous: dict[EntityKey, Any] = {}
        self._last: dict[tuple[EntityKey, str], float] = {}

    def __contains__(self, key: EntityKey) -> bool:
        return key in self._previous

    def previous(self, key: EntityKey) -> Any | None:
        return self._previous.get(key)

    @property
    def tracked_keys(self) -> list[EntityKey]:
        return list(self._previous)

    def _swap(self, key: EntityKey, sample: Any) -> Any | None:
        prev = self._previous.get(key)
        self._previous[key] = sample
        return prev

    def _remember(self, key: EntityKey, metric: str, value: float) -> float:
        self._last[(key, metric)] = value
        return value

    def _last_known(self, key: EntityKey, metric: str) -> float:
        return self._last.get((key, metric), PLACEHOLDER)

    def _per_second(self, key: EntityKey, metric: str, before: int, after: int, elapsed: float) -> float:
        if elapsed <= 0:
            return self._last_known(key, metric)
        return self._remember(key, metric, max(after - before, 0) / elapsed)

    def cpu_usage(self, key: EntityKey, sample: CpuSample) -> float:
        """Busy percentage: ``100 * (1 - idle_delta / total_delta)``."""
        prev = self._swap(key, sample)
        if prev is None:
            return self._remember(key, "usage", PLACEHOLDER)

        total_delta = sample.total - prev.total
        if total_delta == 0:
            return self._last_known(key, "usage")
        if total_delta < 0:
            return self._remember(key, "usage", 0.0)

        idle_delta = sample.idle - prev.idle
        usage = 100.0 * (1.0 - idle_delta / total_delta)
        return self._remember(key, "usage", min(max(usage, 0.0), 100.0))

    def disk_rates(self, key: EntityKey, sample: DiskSample) -> tuple[float, float]:
        """Completed read and write operations per second."""
        prev = self._swap(key, sample)
        if prev is None:
            return self._remember(key, "reads", PLACEHOLDER), self._remember(key, "writes", PLACEHOLDER)

        elapsed = sample.timestamp - prev.timestamp
        return (
            self._per_second(key, "reads", prev.reads, sample.reads, elapsed),
            self._per_second(key, "writes", prev.writes, sample.writes, elapsed),
        )

    def throughput(self, key: EntityKey, sample: NetSample) -> tuple[float, float]:
        """Received and sent bytes per second."""
        prev = self._swap(key, sample)
        if prev is None:
            return self._remember(key, "rx", PLACEHOLDER), self._remember(key, "tx", PLACEHOLDER)

        elapsed = sample.timestamp - prev.timestamp
        return (
            self._per_second(key, "rx", prev.bytes_received, sample.bytes_received, elapsed),
            self._per_second(key, "tx", prev.bytes_sent, sample.bytes_sent, elapsed),
        )
