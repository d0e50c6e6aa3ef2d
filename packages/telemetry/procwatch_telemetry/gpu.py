"""GPU backends: NVML through pynvml when the driver library is complete, sysfs otherwise."""

from __future__ import annotations

import ctypes
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from .errors import BackendUnavailable, ErrorKind
from .models import GpuDevice, GpuMetrics


_LOGGER = logging.getLogger("procwatch.telemetry")

NVML_LIBRARY_NAMES = ("libnvidia-ml.so", "libnvidia-ml.so.1")

NVML_REQUIRED_SYMBOLS = (
    "nvmlInit_v2",
    "nvmlShutdown",
    "nvmlDeviceGetCount_v2",
    "nvmlDeviceGetHandleByIndex_v2",
    "nvmlDeviceGetName",
    "nvmlDeviceGetTemperature",
    "nvmlDeviceGetUtilizationRates",
    "nvmlDeviceGetMemoryInfo",
    "nvmlDeviceGetPowerUsage",
    "nvmlDeviceGetFanSpeed",
)

SYSFS_DRM_ROOT = "/sys/class/drm"

UNKNOWN_GPU = "Unknown GPU"

PCI_VENDOR_LABELS = {
    "0x10de": "NVIDIA GPU",
    "0x1002": "AMD GPU",
    "0x8086": "Intel GPU",
}

_CARD_RE = re.compile(r"card(\d+)")

# NVML return codes, used when the module does not export them.
_NVML_ERROR_NOT_SUPPORTED = 3
_NVML_ERROR_NO_PERMISSION = 4
_NVML_ERROR_FUNCTION_NOT_FOUND = 13


def probe_library(
    names: Iterable[str] = NVML_LIBRARY_NAMES,
    symbols: Iterable[str] = NVML_REQUIRED_SYMBOLS,
    loader: Callable[[str], Any] = ctypes.CDLL,
) -> str:
    """Return the first loadable library name, provided it exports every symbol."""
    for name in names:
        try:
            lib = loader(name)
        except OSError:
            continue
        missing = [symbol for symbol in symbols if not hasattr(lib, symbol)]
        if missing:
            raise BackendUnavailable(f"{name} lacks {', '.join(missing)}")
        return name
    raise BackendUnavailable("vendor library not found")


class GpuBackend:
    """Backend that knows no GPUs; used when GPU monitoring is switched off."""

    kind = "none"

    def poll(self) -> GpuMetrics:
        return GpuMetrics(backend=self.kind, driver_available=False, devices=())

    def shutdown(self) -> None:
        return None


@dataclass
class _NvmlDeviceState:
    index: int
    name: str = UNKNOWN_GPU
    temperature_c: int | None = None
    utilization: float | None = None
    memory_total: int | None = None
    memory_used: int | None = None
    memory_free: int | None = None
    power_mw: int | None = None
    fan_percent: int | None = None

    def freeze(self) -> GpuDevice:
        return GpuDevice(
            index=self.index,
            name=self.name,
            supported=True,
            temperature_c=self.temperature_c,
            utilization=self.utilization,
            memory_total=self.memory_total,
            memory_used=self.memory_used,
            memory_free=self.memory_free,
            power_mw=self.power_mw,
            fan_percent=self.fan_percent,
        )


def _decode_name(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip() or UNKNOWN_GPU


class NvmlGpuBackend(GpuBackend):
    """Full metrics from the NVIDIA management library.

    Each field of each device is fetched on its own; a field that fails keeps the
    value from the last successful read.
    """

    kind = "nvml"

    def __init__(
        self,
        library_names: Iterable[str] = NVML_LIBRARY_NAMES,
        loader: Callable[[str], Any] = ctypes.CDLL,
        nvml: Any | None = None,
    ) -> None:
        self.library = probe_library(library_names, NVML_REQUIRED_SYMBOLS, loader)

        if nvml is None:
            try:
                import pynvml as nvml  # type: ignore
            except ImportError as exc:
                raise BackendUnavailable("pynvml is not installed") from exc

        try:
            nvml.nvmlInit()
        except nvml.NVMLError as exc:
            raise BackendUnavailable(f"nvmlInit failed: {exc}") from exc

        self._nvml = nvml
        self._devices: dict[int, _NvmlDeviceState] = {}
        self._reported: set[tuple[int, str, ErrorKind]] = set()

    def classify(self, exc: Exception) -> ErrorKind:
        code = getattr(exc, "value", None)
        if code == getattr(self._nvml, "NVML_ERROR_NO_PERMISSION", _NVML_ERROR_NO_PERMISSION):
            return ErrorKind.PERMISSION_DENIED
        if code in (
            getattr(self._nvml, "NVML_ERROR_NOT_SUPPORTED", _NVML_ERROR_NOT_SUPPORTED),
            getattr(self._nvml, "NVML_ERROR_FUNCTION_NOT_FOUND", _NVML_ERROR_FUNCTION_NOT_FOUND),
        ):
            return ErrorKind.UNAVAILABLE
        return ErrorKind.PARSE_FAILURE

    def _report(self, index: int, field: str, exc: Exception) -> None:
        kind = self.classify(exc)
        marker = (index, field, kind)
        if marker in self._reported:
            return
        self._reported.add(marker)
        _LOGGER.info(f"gpu {index} {field}: {kind.value} ({exc})", extra={"event": "gpu_field_unavailable"})

    def _collect(self, state: _NvmlDeviceState, fields: tuple[str, ...], fetch: Callable[[], Any]) -> None:
        try:
            value = fetch()
        except self._nvml.NVMLError as exc:
            self._report(state.index, fields[0], exc)
            return
        values = value if len(fields) > 1 else (value,)
        for name, item in zip(fields, values):
            setattr(state, name, item)

    def poll(self) -> GpuMetrics:
        nvml = self._nvml
        try:
            count = int(nvml.nvmlDeviceGetCount())
        except nvml.NVMLError as exc:
            _LOGGER.warning(f"nvml device count failed: {exc}", extra={"event": "gpu_count_failed"})
            return GpuMetrics(backend=self.kind, driver_available=False, devices=())

        devices: list[GpuDevice] = []
        for index in range(count):
            state = self._devices.setdefault(index, _NvmlDeviceState(index=index))
            try:
                handle = nvml.nvmlDeviceGetHandleByIndex(index)
            except nvml.NVMLError as exc:
                self._report(index, "handle", exc)
                devices.append(state.freeze())
                continue

            self._collect(state, ("name",), lambda: _decode_name(nvml.nvmlDeviceGetName(handle)))
            self._collect(
                state,
                ("temperature_c",),
                lambda: int(nvml.nvmlDeviceGetTemperature(handle, getattr(nvml, "NVML_TEMPERATURE_GPU", 0))),
            )
            self._collect(state, ("utilization",), lambda: float(nvml.nvmlDeviceGetUtilizationRates(handle).gpu))
            self._collect(state, ("memory_total", "memory_used", "memory_free"), lambda: self._memory(handle))
            self._collect(state, ("power_mw",), lambda: int(nvml.nvmlDeviceGetPowerUsage(handle)))
            self._collect(state, ("fan_percent",), lambda: int(nvml.nvmlDeviceGetFanSpeed(handle)))
            devices.append(state.freeze())

        return GpuMetrics(backend=self.kind, driver_available=True, devices=tuple(devices))

    def _memory(self, handle: Any) -> tuple[int, int, int]:
        info = self._nvml.nvmlDeviceGetMemoryInfo(handle)
        return int(info.total), int(info.used), int(info.free)

    def shutdown(self) -> None:
        try:
            self._nvml.nvmlShutdown()
        except self._nvml.NVMLError as exc:
            _LOGGER.warning(f"nvml shutdown failed: {exc}", extra={"event": "gpu_shutdown_failed"})


def _read_first_line(path: Path) -> str | None:
    try:
        with path.open("r", encoding="utf-8", errors="replace") as fh:
            line = fh.readline().strip()
    except OSError:
        return None
    return line or None


class SysfsGpuBackend(GpuBackend):
    """Identity-only fallback: lists DRM cards that expose a PCI vendor id."""

    kind = "sysfs"

    def __init__(self, root: str = SYSFS_DRM_ROOT) -> None:
        self.root = Path(root)

    def _cards(self) -> list[Path]:
        cards = []
        for path in self.root.glob("card*"):
            match = _CARD_RE.fullmatch(path.name)
            if match:
                cards.append((int(match.group(1)), path))
        return [path for _, path in sorted(cards)]

    def poll(self) -> GpuMetrics:
        devices: list[GpuDevice] = []
        for card in self._cards():
            vendor = _read_first_line(card / "device" / "vendor")
            if vendor is None:
                continue
            name = _read_first_line(card / "device" / "product") or PCI_VENDOR_LABELS.get(vendor.lower(), UNKNOWN_GPU)
            devices.append(GpuDevice(index=len(devices), name=name, supported=False))
        return GpuMetrics(backend=self.kind, driver_available=False, devices=tuple(devices))


def select_gpu_backend(
    prefer_driver: bool = True,
    library_names: Iterable[str] = NVML_LIBRARY_NAMES,
    sysfs_root: str = SYSFS_DRM_ROOT,
    loader: Callable[[str], Any] = ctypes.CDLL,
    nvml: Any | None = None,
) -> GpuBackend:
    """Pick the backend for the lifetime of the process."""
    if prefer_driver:
        try:
            backend = NvmlGpuBackend(library_names=library_names, loader=loader, nvml=nvml)
        except BackendUnavailable as exc:
            _LOGGER.info(f"nvml unavailable, using sysfs probe: {exc}", extra={"event": "gpu_backend_fallback"})
        else:
            _LOGGER.info(f"gpu backend nvml via {backend.library}", extra={"event": "gpu_backend_selected"})
            return backend
    return SysfsGpuBackend(sysfs_root)
