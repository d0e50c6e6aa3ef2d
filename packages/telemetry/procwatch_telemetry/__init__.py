"""Kernel counter readers, rate computation, and snapshot aggregation for procwatch."""

from .errors import AggregateError, BackendUnavailable, ErrorKind, InitializationError, ReadError
from .gpu import GpuBackend, NvmlGpuBackend, SysfsGpuBackend, select_gpu_backend
from .models import (
    CPU_KEY,
    CpuMetrics,
    DiskMetrics,
    EntityKey,
    GpuDevice,
    GpuMetrics,
    MemoryMetrics,
    NetworkInterfaceMetrics,
    SystemSnapshot,
)
from .provider import SourcePaths, TelemetryProvider
from .rates import RateEngine
from .registry import DeviceRegistry, disk_base_name, is_virtual_device

__all__ = [
    "AggregateError",
    "BackendUnavailable",
    "CPU_KEY",
    "CpuMetrics",
    "DeviceRegistry",
    "DiskMetrics",
    "EntityKey",
    "ErrorKind",
    "GpuBackend",
    "GpuDevice",
    "GpuMetrics",
    "InitializationError",
    "MemoryMetrics",
    "NetworkInterfaceMetrics",
    "NvmlGpuBackend",
    "RateEngine",
    "ReadError",
    "SourcePaths",
    "SysfsGpuBackend",
    "SystemSnapshot",
    "TelemetryProvider",
    "disk_base_name",
    "is_virtual_device",
    "select_gpu_backend",
]
