"""Typed telemetry models: raw counter samples, entity keys, and the rendered snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple


class EntityKey(NamedTuple):
    domain: str
    name: str


CPU_KEY = EntityKey("cpu", "cpu")


# Raw cumulative samples. Timestamps are monotonic seconds.


@dataclass(frozen=True)
class CpuSample:
    idle: int
    total: int
    timestamp: float


@dataclass(frozen=True)
class DiskSample:
    reads: int
    writes: int
    io_in_progress: int
    timestamp: float


@dataclass(frozen=True)
class NetSample:
    bytes_received: int
    bytes_sent: int
    packets_received: int
    packets_sent: int
    errors_in: int
    errors_out: int
    drops_in: int
    drops_out: int
    timestamp: float


@dataclass(frozen=True)
class MountEntry:
    device: str
    mount_point: str
    fs_type: str


# Derived metrics handed to the renderer.


@dataclass(frozen=True)
class CpuMetrics:
    usage: float
    cores: int
    model_name: str


@dataclass(frozen=True)
class MemoryMetrics:
    total: int
    free: int
    available: int
    used: int
    buffers: int
    cached: int
    swap_total: int
    swap_free: int
    usage: float
    swap_usage: float


@dataclass(frozen=True)
class DiskMetrics:
    device: str
    mount_point: str
    key: EntityKey
    total: int
    free: int
    available: int
    usage: float
    reads_per_s: float
    writes_per_s: float
    io_in_progress: int


@dataclass(frozen=True)
class NetworkInterfaceMetrics:
    interface: str
    bytes_received: int
    bytes_sent: int
    packets_received: int
    packets_sent: int
    receive_speed: float
    send_speed: float
    errors_in: int
    errors_out: int
    drops_in: int
    drops_out: int


@dataclass(frozen=True)
class GpuDevice:
    index: int
    name: str
    supported: bool
    temperature_c: int | None = None
    utilization: float | None = None
    memory_total: int | None = None
    memory_used: int | None = None
    memory_free: int | None = None
    power_mw: int | None = None
    fan_percent: int | None = None


@dataclass(frozen=True)
class GpuMetrics:
    backend: str
    driver_available: bool
    devices: tuple[GpuDevice, ...] = ()


@dataclass(frozen=True)
class SystemSnapshot:
    cpu: CpuMetrics
    memory: MemoryMetrics
    disks: tuple[DiskMetrics, ...]
    gpu: GpuMetrics
    network: tuple[NetworkInterfaceMetrics, ...]
    cycle: int
    timestamp: datetime
