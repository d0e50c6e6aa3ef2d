"""Poll loop: one read/compute/render cycle at a time, stopped only between cycles."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from procwatch_telemetry import AggregateError, SystemSnapshot, TelemetryProvider

from .config import clamp_interval_ms
from .logging_setup import get_logger


class LoopState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    DEGRADED = "Degraded"
    STOPPED = "Stopped"


@dataclass
class PollStatus:
    state: LoopState = LoopState.IDLE
    interval_ms: int = 1000
    cycles: int = 0
    failed_cycles: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    last_ok_utc: str | None = None


Renderer = Callable[[SystemSnapshot, PollStatus], None]


class PollController:
    def __init__(
        self,
        provider: TelemetryProvider,
        render: Renderer,
        interval_ms: int = 1000,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.provider = provider
        self.interval_ms = clamp_interval_ms(interval_ms)

        self._render = render
        self._stop = stop_event or threading.Event()
        self._status = PollStatus(interval_ms=self.interval_ms)
        self._snapshot: SystemSnapshot | None = None
        self._events: list[dict[str, Any]] = []
        self._logger = get_logger()

    @property
    def status(self) -> PollStatus:
        return self._status

    @property
    def snapshot(self) -> SystemSnapshot | None:
        return self._snapshot

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events[-limit:]

    def request_stop(self) -> None:
        self._stop.set()

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "state": self._status.state.value,
        }
        row.update(fields)
        self._events.append(row)
        if len(self._events) > 1000:
            self._events = self._events[-1000:]

    def run_cycle(self) -> SystemSnapshot | None:
        """Update once; on failure the previous snapshot is kept and nothing is rendered."""
        try:
            snapshot = self.provider.update(self._snapshot)
        except AggregateError as exc:
            self._status.failed_cycles += 1
            self._status.consecutive_failures += 1
            self._status.last_error = str(exc)
            self._status.state = LoopState.DEGRADED
            self._log_event("cycle_failed", domain=exc.domain, kind=exc.cause.kind.value, error=str(exc))
            self._logger.warning(f"cycle failed: {exc}", extra={"event": "cycle_failed"})
            return self._snapshot

        self._snapshot = snapshot
        self._status.cycles += 1
        self._status.consecutive_failures = 0
        self._status.state = LoopState.RUNNING
        self._status.last_ok_utc = snapshot.timestamp.isoformat()
        self._log_event("cycle_ok", cycle=snapshot.cycle)
        self._render(snapshot, self._status)
        return snapshot

    def run(self) -> int:
        """Cycle until a stop is requested; returns the number of successful cycles."""
        self._status.state = LoopState.RUNNING
        self._log_event("loop_start", interval_ms=self.interval_ms)
        while not self._stop.is_set():
            self.run_cycle()
            self._stop.wait(self.interval_ms / 1000)
        self._status.state = LoopState.STOPPED
        self._log_event("loop_stop", cycles=self._status.cycles, failed_cycles=self._status.failed_cycles)
        return self._status.cycles
