import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "telemetry"))

from procwatch_telemetry.models import EntityKey
from procwatch_telemetry.registry import (
    DeviceRegistry,
    disk_base_name,
    disk_registry,
    is_virtual_device,
    network_registry,
)


class DiskKeyTests(unittest.TestCase):
    def test_partition_suffix_stripped(self):
        for name in ("sda1", "sda2", "sda15", "/dev/sda1", "sda"):
            self.assertEqual(disk_base_name(name), "sda", name)

    def test_nvme_and_mmc_partitions_map_to_namespace(self):
        self.assertEqual(disk_base_name("/dev/nvme0n1p1"), "nvme0n1")
        self.assertEqual(disk_base_name("nvme0n1p12"), "nvme0n1")
        self.assertEqual(disk_base_name("mmcblk0p2"), "mmcblk0")

    def test_whole_nvme_namespace_loses_trailing_digits(self):
        self.assertEqual(disk_base_name("nvme0n1"), "nvme0n")

    def test_all_digit_name_is_kept(self):
        self.assertEqual(disk_base_name("123"), "123")

    def test_virtual_devices(self):
        for name in ("loop0", "/dev/loop12", "ram0", "zram0", "dm-1", "/dev/sr0", "/dev/mapper/vg-root"):
            self.assertTrue(is_virtual_device(name), name)
        for name in ("/dev/sda1", "nvme0n1p1", "vda"):
            self.assertFalse(is_virtual_device(name), name)


class ReconcileTests(unittest.TestCase):
    def test_virtual_devices_never_reconciled(self):
        registry = disk_registry()
        keys = registry.reconcile(["loop0", "ram0", "dm-1", "sr0", "/dev/sda1"])
        self.assertEqual(keys, [EntityKey("disk", "sda")])

    def test_partitions_share_one_key_in_kernel_order(self):
        registry = disk_registry()
        keys = registry.reconcile(["/dev/sdb3", "/dev/sda1", "/dev/sdb1", "/dev/sda2"])
        self.assertEqual(keys, [EntityKey("disk", "sdb"), EntityKey("disk", "sda")])

    def test_added_and_removed_between_cycles(self):
        registry = network_registry()
        registry.reconcile(["lo", "eth0"])
        self.assertEqual(registry.added, [EntityKey("net", "lo"), EntityKey("net", "eth0")])

        keys = registry.reconcile(["lo", "wlan0"])
        self.assertEqual(keys, [EntityKey("net", "lo"), EntityKey("net", "wlan0")])
        self.assertEqual(registry.added, [EntityKey("net", "wlan0")])
        self.assertEqual(registry.removed, [EntityKey("net", "eth0")])
        self.assertEqual(registry.current, keys)

    def test_verbatim_names(self):
        registry = DeviceRegistry("gpu")
        self.assertEqual(registry.key_for("NVIDIA GeForce RTX 3080"), EntityKey("gpu", "NVIDIA GeForce RTX 3080"))


if __name__ == "__main__":
    unittest.main()
