import math
import random
import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from procwatch_telemetry.models import CPU_KEY, CpuSample, DiskSample, EntityKey, NetSample
from procwatch_telemetry.rates import PLACEHOLDER, RateEngine


def _net(rx: int, tx: int, ts: float) -> NetSample:
    return NetSample(
        bytes_received=rx,
        bytes_sent=tx,
        packets_received=0,
        packets_sent=0,
        errors_in=0,
        errors_out=0,
        drops_in=0,
        drops_out=0,
        timestamp=ts,
    )


class CpuUsageTests(unittest.TestCase):
    def test_first_observation_is_placeholder_and_stored(self):
        engine = RateEngine()
        sample = CpuSample(idle=1000, total=4000, timestamp=10.0)
        self.assertEqual(engine.cpu_usage(CPU_KEY, sample), PLACEHOLDER)
        self.assertIs(engine.previous(CPU_KEY), sample)

    def test_half_busy_between_two_samples(self):
        engine = RateEngine()
        engine.cpu_usage(CPU_KEY, CpuSample(idle=1000, total=4000, timestamp=10.0))
        usage = engine.cpu_usage(CPU_KEY, CpuSample(idle=1500, total=5000, timestamp=11.0))
        self.assertAlmostEqual(usage, 50.0)

    def test_frozen_counters_keep_last_value(self):
        engine = RateEngine()
        engine.cpu_usage(CPU_KEY, CpuSample(idle=1000, total=4000, timestamp=1.0))
        engine.cpu_usage(CPU_KEY, CpuSample(idle=1250, total=5000, timestamp=2.0))
        usage = engine.cpu_usage(CPU_KEY, CpuSample(idle=1250, total=5000, timestamp=3.0))
        self.assertAlmostEqual(usage, 75.0)

    def test_frozen_counters_before_any_value_report_placeholder(self):
        engine = RateEngine()
        engine.cpu_usage(CPU_KEY, CpuSample(idle=10, total=20, timestamp=1.0))
        self.assertEqual(engine.cpu_usage(CPU_KEY, CpuSample(idle=10, total=20, timestamp=2.0)), 0.0)

    def test_decreasing_counters_clamp_into_range(self):
        engine = RateEngine()
        engine.cpu_usage(CPU_KEY, CpuSample(idle=1000, total=4000, timestamp=1.0))
        # idle grew more than total: would be negative without clamping
        usage = engine.cpu_usage(CPU_KEY, CpuSample(idle=3000, total=5000, timestamp=2.0))
        self.assertEqual(usage, 0.0)

    def test_total_going_backwards_reports_zero(self):
        engine = RateEngine()
        engine.cpu_usage(CPU_KEY, CpuSample(idle=1000, total=4000, timestamp=1.0))
        self.assertAlmostEqual(engine.cpu_usage(CPU_KEY, CpuSample(idle=1250, total=5000, timestamp=2.0)), 75.0)
        self.assertEqual(engine.cpu_usage(CPU_KEY, CpuSample(idle=100, total=200, timestamp=3.0)), 0.0)
        # the reset sample becomes the new baseline
        usage = engine.cpu_usage(CPU_KEY, CpuSample(idle=150, total=300, timestamp=4.0))
        self.assertAlmostEqual(usage, 50.0)

    def test_usage_stays_in_range_for_valid_deltas(self):
        rng = random.Random(7)
        engine = RateEngine()
        idle, total, ts = 0, 0, 0.0
        engine.cpu_usage(CPU_KEY, CpuSample(idle=idle, total=total, timestamp=ts))
        for _ in range(500):
            d_total = rng.randint(0, 10_000)
            d_idle = rng.randint(0, d_total)
            idle, total, ts = idle + d_idle, total + d_total, ts + rng.uniform(0.01, 2.0)
            usage = engine.cpu_usage(CPU_KEY, CpuSample(idle=idle, total=total, timestamp=ts))
            self.assertFalse(math.isnan(usage))
            self.assertGreaterEqual(usage, 0.0)
            self.assertLessEqual(usage, 100.0)


class DiskRateTests(unittest.TestCase):
    KEY = EntityKey("disk", "sda")

    def test_first_observation_is_zero(self):
        engine = RateEngine()
        self.assertEqual(engine.disk_rates(self.KEY, DiskSample(500, 800, 0, 1.0)), (0.0, 0.0))
        self.assertIn(self.KEY, engine)

    def test_operations_per_second(self):
        engine = RateEngine()
        engine.disk_rates(self.KEY, DiskSample(reads=100, writes=50, io_in_progress=0, timestamp=1.0))
        reads, writes = engine.disk_rates(self.KEY, DiskSample(reads=300, writes=90, io_in_progress=1, timestamp=3.0))
        self.assertAlmostEqual(reads, 100.0)
        self.assertAlmostEqual(writes, 20.0)

    def test_counter_reset_clamps_to_zero(self):
        engine = RateEngine()
        engine.disk_rates(self.KEY, DiskSample(reads=1000, writes=1000, io_in_progress=0, timestamp=1.0))
        reads, writes = engine.disk_rates(self.KEY, DiskSample(reads=10, writes=2000, io_in_progress=0, timestamp=2.0))
        self.assertEqual(reads, 0.0)
        self.assertAlmostEqual(writes, 1000.0)

    def test_no_elapsed_time_keeps_last_rate(self):
        engine = RateEngine()
        engine.disk_rates(self.KEY, DiskSample(0, 0, 0, 1.0))
        engine.disk_rates(self.KEY, DiskSample(40, 20, 0, 2.0))
        self.assertEqual(engine.disk_rates(self.KEY, DiskSample(80, 40, 0, 2.0)), (40.0, 20.0))


class ThroughputTests(unittest.TestCase):
    KEY = EntityKey("net", "eth0")

    def test_matches_bytes_over_seconds(self):
        engine = RateEngine()
        engine.throughput(self.KEY, _net(rx=1_000, tx=500, ts=100.25))
        rx, tx = engine.throughput(self.KEY, _net(rx=4_500, tx=1_200, ts=101.75))
        self.assertAlmostEqual(rx, (4_500 - 1_000) / (101.75 - 100.25))
        self.assertAlmostEqual(tx, (1_200 - 500) / (101.75 - 100.25))

    def test_keys_do_not_share_state(self):
        engine = RateEngine()
        other = EntityKey("net", "wlan0")
        engine.throughput(self.KEY, _net(rx=0, tx=0, ts=1.0))
        self.assertEqual(engine.throughput(other, _net(rx=10_000, tx=10_000, ts=2.0)), (0.0, 0.0))
        self.assertEqual(engine.throughput(self.KEY, _net(rx=100, tx=300, ts=2.0)), (100.0, 300.0))
        self.assertEqual(sorted(engine.tracked_keys), sorted([self.KEY, other]))


if __name__ == "__main__":
    unittest.main()
