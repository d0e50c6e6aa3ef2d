"""Aggregator that runs one full read/compute pass across every domain."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import psutil

from . import readers
from .errors import AggregateError, InitializationError, ReadError
from .gpu import NVML_LIBRARY_NAMES, SYSFS_DRM_ROOT, GpuBackend, select_gpu_backend
from .models import (
    CPU_KEY,
    CpuMetrics,
    CpuSample,
    DiskMetrics,
    DiskSample,
    EntityKey,
    GpuMetrics,
    MemoryMetrics,
    MountEntry,
    NetSample,
    NetworkInterfaceMetrics,
    SystemSnapshot,
)
from .rates import RateEngine
from .registry import device_basename, disk_registry, gpu_registry, network_registry


_LOGGER = logging.getLogger("procwatch.telemetry")


@dataclass(frozen=True)
class SourcePaths:
    stat: str = readers.PROC_STAT
    cpuinfo: str = readers.PROC_CPUINFO
    meminfo: str = readers.PROC_MEMINFO
    diskstats: str = readers.PROC_DISKSTATS
    mtab: str = readers.ETC_MTAB
    net_dev: str = readers.PROC_NET_DEV
    drm: str = SYSFS_DRM_ROOT


@dataclass(frozen=True)
class _MountSpace:
    mount: MountEntry
    total: int
    free: int
    available: int


@dataclass
class _CycleReads:
    cpu: CpuSample
    cores: int
    memory: MemoryMetrics
    mounts: list[_MountSpace]
    diskstats: dict[str, DiskSample]
    gpu: GpuMetrics
    network: dict[str, NetSample] = field(default_factory=dict)


def _online_cores() -> int:
    return int(psutil.cpu_count(logical=True) or 1)


class TelemetryProvider:
    """Single polling provider; snapshots are only built after every domain read succeeded."""

    def __init__(
        self,
        paths: SourcePaths | None = None,
        gpu_backend: GpuBackend | None = None,
        network: bool = True,
        clock: Callable[[], float] = time.monotonic,
        disk_usage: Callable[[str], Any] = psutil.disk_usage,
        cpu_count: Callable[[], int] = _online_cores,
        cpu_model: str | None = None,
    ) -> None:
        self.paths = paths or SourcePaths()
        self.gpu_backend = gpu_backend or GpuBackend()
        self.network_enabled = network
        self._clock = clock
        self._disk_usage = disk_usage
        self._cpu_count = cpu_count
        self.cpu_model = cpu_model or readers.read_cpu_model(self.paths.cpuinfo)

        self.rates = RateEngine()
        self.disks = disk_registry()
        self.interfaces = network_registry()
        self.gpus = gpu_registry()

    @classmethod
    def create(
        cls,
        paths: SourcePaths | None = None,
        gpu: bool = True,
        prefer_driver: bool = True,
        library_names: Iterable[str] = NVML_LIBRARY_NAMES,
        network: bool = True,
        **kwargs: Any,
    ) -> "TelemetryProvider":
        """Probe mandatory sources and choose optional backends once for the process."""
        paths = paths or SourcePaths()
        try:
            readers.read_cpu_sample(paths.stat)
        except ReadError as exc:
            raise InitializationError("cpu", exc) from exc
        try:
            readers.read_memory(paths.meminfo)
        except ReadError as exc:
            raise InitializationError("memory", exc) from exc

        if network:
            try:
                readers.read_net_dev(paths.net_dev)
            except ReadError as exc:
                _LOGGER.warning(f"network monitoring disabled: {exc}", extra={"event": "network_disabled"})
                network = False

        backend = (
            select_gpu_backend(prefer_driver=prefer_driver, library_names=library_names, sysfs_root=paths.drm)
            if gpu
            else GpuBackend()
        )
        return cls(paths=paths, gpu_backend=backend, network=network, **kwargs)

    def close(self) -> None:
        self.gpu_backend.shutdown()

    def poll(self) -> SystemSnapshot:
        return self.update(None)

    def update(self, previous: SystemSnapshot | None = None) -> SystemSnapshot:
        """Run one cycle. Raises ``AggregateError`` without touching rate state on a read failure."""
        reads = self._read_all()
        return self._build(reads, cycle=(previous.cycle + 1 if previous is not None else 1))

    # read phase

    def _read_domain(self, domain: str, read: Callable[[], Any]) -> Any:
        try:
            return read()
        except ReadError as exc:
            raise AggregateError(domain, exc) from exc

    def _read_all(self) -> _CycleReads:
        paths = self.paths
        cpu = self._read_domain("cpu", lambda: readers.read_cpu_sample(paths.stat, self._clock))
        memory = self._read_domain("memory", lambda: readers.read_memory(paths.meminfo))
        mounts = self._read_domain("disk", lambda: self._read_mount_space(readers.read_mounts(paths.mtab)))
        diskstats = self._read_domain("disk", lambda: readers.read_diskstats(paths.diskstats, self._clock))
        gpu = self.gpu_backend.poll()
        network: dict[str, NetSample] = {}
        if self.network_enabled:
            network = self._read_domain("network", lambda: readers.read_net_dev(paths.net_dev, self._clock))
        return _CycleReads(
            cpu=cpu,
            cores=self._cpu_count(),
            memory=memory,
            mounts=mounts,
            diskstats=diskstats,
            gpu=gpu,
            network=network,
        )

    def _read_mount_space(self, mounts: list[MountEntry]) -> list[_MountSpace]:
        rows: list[_MountSpace] = []
        for mount in mounts:
            # proc, tmpfs, sysfs and friends have no backing block device
            if not mount.device.startswith("/dev/"):
                continue
            if self.disks.key_for(mount.device) is None:
                continue
            try:
                usage = self._disk_usage(mount.mount_point)
            except OSError as exc:
                _LOGGER.debug(f"statvfs {mount.mount_point} failed: {exc}")
                continue
            rows.append(
                _MountSpace(
                    mount=mount,
                    total=int(usage.total),
                    free=int(usage.total - usage.used),
                    available=int(usage.free),
                )
            )
        return rows

    # compute phase

    def _build(self, reads: _CycleReads, cycle: int) -> SystemSnapshot:
        cpu = CpuMetrics(
            usage=self.rates.cpu_usage(CPU_KEY, reads.cpu),
            cores=reads.cores,
            model_name=self.cpu_model,
        )
        self.gpus.reconcile(dev.name for dev in reads.gpu.devices)
        return SystemSnapshot(
            cpu=cpu,
            memory=reads.memory,
            disks=self._disk_metrics(reads),
            gpu=reads.gpu,
            network=self._network_metrics(reads),
            cycle=cycle,
            timestamp=datetime.now(timezone.utc),
        )

    @staticmethod
    def _rate_key(base: EntityKey, device: str, diskstats: dict[str, DiskSample]) -> EntityKey:
        """Counter identity for a mount: its base device, or the raw device when the base is unknown.

        ``md0``/``md1`` and whole namespaces like ``nvme0n1``/``nvme0n2`` share a stripped
        base name that the kernel never reports, so they keep their own raw key.
        """
        raw = device_basename(device)
        if base.name not in diskstats and raw in diskstats:
            return EntityKey(base.domain, raw)
        return base

    def _disk_metrics(self, reads: _CycleReads) -> tuple[DiskMetrics, ...]:
        self.disks.reconcile(row.mount.device for row in reads.mounts)

        # partitions share their base device, so each key is observed once per cycle
        io: dict[EntityKey, tuple[float, float, int]] = {}
        rows: list[DiskMetrics] = []
        for row in reads.mounts:
            base = self.disks.key_for(row.mount.device)
            if base is None:
                continue
            key = self._rate_key(base, row.mount.device, reads.diskstats)
            if key not in io:
                sample = reads.diskstats.get(key.name)
                if sample is None:
                    io[key] = (0.0, 0.0, 0)
                else:
                    reads_per_s, writes_per_s = self.rates.disk_rates(key, sample)
                    io[key] = (reads_per_s, writes_per_s, sample.io_in_progress)
            reads_per_s, writes_per_s, in_progress = io[key]
            rows.append(
                DiskMetrics(
                    device=row.mount.device,
                    mount_point=row.mount.mount_point,
                    key=key,
                    total=row.total,
                    free=row.free,
                    available=row.available,
                    usage=(100.0 * (1.0 - row.available / row.total) if row.total > 0 else 0.0),
                    reads_per_s=reads_per_s,
                    writes_per_s=writes_per_s,
                    io_in_progress=in_progress,
                )
            )
        return tuple(rows)

    def _network_metrics(self, reads: _CycleReads) -> tuple[NetworkInterfaceMetrics, ...]:
        if not self.network_enabled:
            return ()
        rows: list[NetworkInterfaceMetrics] = []
        for key in self.interfaces.reconcile(reads.network):
            sample = reads.network[key.name]
            rx, tx = self.rates.throughput(key, sample)
            rows.append(
                NetworkInterfaceMetrics(
                    interface=key.name,
                    bytes_received=sample.bytes_received,
                    bytes_sent=sample.bytes_sent,
                    packets_received=sample.packets_received,
                    packets_sent=sample.packets_sent,
                    receive_speed=rx,
                    send_speed=tx,
                    errors_in=sample.errors_in,
                    errors_out=sample.errors_out,
                    drops_in=sample.drops_in,
                    drops_out=sample.drops_out,
                )
            )
        return tuple(rows)
