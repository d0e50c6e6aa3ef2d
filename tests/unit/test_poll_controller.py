import sys
import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from procwatch_core.poll_controller import LoopState, PollController
from procwatch_telemetry.errors import AggregateError, ErrorKind, ReadError
from procwatch_telemetry.models import CpuMetrics, GpuMetrics, MemoryMetrics, SystemSnapshot


def make_snapshot(cycle: int) -> SystemSnapshot:
    return SystemSnapshot(
        cpu=CpuMetrics(usage=12.5, cores=4, model_name="Test CPU"),
        memory=MemoryMetrics(
            total=1000, free=500, available=600, used=300, buffers=100, cached=100,
            swap_total=0, swap_free=0, usage=30.0, swap_usage=0.0,
        ),
        disks=(),
        gpu=GpuMetrics(backend="none", driver_available=False),
        network=(),
        cycle=cycle,
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class ScriptedProvider:
    """Fails on the cycles listed in ``fail_on`` (1-based call numbers)."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = 0
        self.previous_seen = []

    def update(self, previous):
        self.calls += 1
        self.previous_seen.append(previous)
        if self.calls in self.fail_on:
            raise AggregateError("disk", ReadError(ErrorKind.UNAVAILABLE, "/proc/diskstats", "gone"))
        return make_snapshot(previous.cycle + 1 if previous else 1)


class PollControllerTests(unittest.TestCase):
    def setUp(self):
        self.rendered = []

    def render(self, snapshot, status):
        self.rendered.append((snapshot.cycle, status.state))

    def test_successful_cycle_renders(self):
        controller = PollController(ScriptedProvider(), self.render, interval_ms=100)
        snap = controller.run_cycle()
        self.assertEqual(snap.cycle, 1)
        self.assertIs(controller.snapshot, snap)
        self.assertEqual(self.rendered, [(1, LoopState.RUNNING)])
        self.assertEqual(controller.status.cycles, 1)

    def test_failed_cycle_keeps_previous_snapshot_and_skips_render(self):
        provider = ScriptedProvider(fail_on={2})
        controller = PollController(provider, self.render, interval_ms=100)
        first = controller.run_cycle()

        kept = controller.run_cycle()
        self.assertIs(kept, first)
        self.assertIs(controller.snapshot, first)
        self.assertEqual(len(self.rendered), 1)
        self.assertEqual(controller.status.state, LoopState.DEGRADED)
        self.assertEqual(controller.status.failed_cycles, 1)
        self.assertIn("disk", controller.status.last_error)
        self.assertEqual(controller.recent_events()[-1]["kind"], "Unavailable")

        third = controller.run_cycle()
        self.assertEqual(third.cycle, 2)
        self.assertIs(provider.previous_seen[2], first)
        self.assertEqual(controller.status.consecutive_failures, 0)
        self.assertEqual(controller.status.state, LoopState.RUNNING)

    def test_failure_before_first_snapshot(self):
        controller = PollController(ScriptedProvider(fail_on={1}), self.render)
        self.assertIsNone(controller.run_cycle())
        self.assertEqual(self.rendered, [])

    def test_interval_is_clamped(self):
        controller = PollController(ScriptedProvider(), self.render, interval_ms=10)
        self.assertEqual(controller.interval_ms, 100)
        self.assertEqual(controller.status.interval_ms, 100)

    def test_run_returns_immediately_when_already_stopped(self):
        stop = threading.Event()
        stop.set()
        provider = ScriptedProvider()
        controller = PollController(provider, self.render, stop_event=stop)
        self.assertEqual(controller.run(), 0)
        self.assertEqual(provider.calls, 0)
        self.assertEqual(controller.status.state, LoopState.STOPPED)

    def test_stop_requested_mid_cycle_finishes_that_cycle(self):
        controller = None

        def render(snapshot, status):
            self.rendered.append(snapshot.cycle)
            if snapshot.cycle == 2:
                controller.request_stop()

        controller = PollController(ScriptedProvider(), render, interval_ms=100)
        self.assertEqual(controller.run(), 2)
        self.assertEqual(self.rendered, [1, 2])
        self.assertTrue(controller.stop_event.is_set())
        self.assertEqual(controller.recent_events()[-1]["event"], "loop_stop")


if __name__ == "__main__":
    unittest.main()
