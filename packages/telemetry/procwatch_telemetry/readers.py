"""Counter readers for the kernel text sources.

Each reader is a pure function of the file it is pointed at: it reads the file once,
parses the fields the rate engine needs, and tags the result with a monotonic
timestamp. Missing files, permission problems and layout mismatches surface as
``ReadError`` so the aggregator can fail the cycle as a whole. Individual lines that
do not parse (a device row with too few columns) are skipped.
"""

from __future__ import annotations

import re
import time
from typing import Callable

from .errors import ErrorKind, ReadError
from .models import CpuSample, DiskSample, MemoryMetrics, MountEntry, NetSample


PROC_STAT = "/proc/stat"
PROC_CPUINFO = "/proc/cpuinfo"
PROC_MEMINFO = "/proc/meminfo"
PROC_DISKSTATS = "/proc/diskstats"
PROC_NET_DEV = "/proc/net/dev"
ETC_MTAB = "/etc/mtab"

UNKNOWN_CPU = "Unknown CPU"

KB_TO_BYTES = 1024

_OCTAL_ESCAPE_RE = re.compile(r"\\([0-7]{3})")

Clock = Callable[[], float]


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return fh.read()
    except OSError as exc:
        raise ReadError.from_os_error(exc, path) from exc


def read_cpu_sample(path: str = PROC_STAT, clock: Clock = time.monotonic) -> CpuSample:
    """Aggregate jiffies from the ``cpu`` line of /proc/stat."""
    text = _read_text(path)
    now = clock()
    for line in text.splitlines():
        if not line.startswith("cpu "):
            continue
        fields = line.split()[1:9]
        if len(fields) < 8:
            raise ReadError(ErrorKind.PARSE_FAILURE, path, f"expected 8 cpu counters, got {len(fields)}")
        try:
            user, nice, system, idle, iowait, irq, softirq, steal = (int(v) for v in fields)
        except ValueError as exc:
            raise ReadError(ErrorKind.PARSE_FAILURE, path, str(exc)) from exc
        idle_all = idle + iowait
        total = idle_all + user + nice + system + irq + softirq + steal
        return CpuSample(idle=idle_all, total=total, timestamp=now)
    raise ReadError(ErrorKind.PARSE_FAILURE, path, "no aggregate cpu line")


def read_cpu_model(path: str = PROC_CPUINFO) -> str:
    try:
        text = _read_text(path)
    except ReadError:
        return UNKNOWN_CPU
    for line in text.splitlines():
        if line.startswith("model name"):
            _, sep, value = line.partition(":")
            if sep and value.strip():
                return value.strip()
    return UNKNOWN_CPU


def read_memory(path: str = PROC_MEMINFO) -> MemoryMetrics:
    text = _read_text(path)
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        parts = rest.split()
        if not parts:
            continue
        try:
            values[key.strip()] = int(parts[0]) * KB_TO_BYTES
        except ValueError:
            continue

    total = values.get("MemTotal", 0)
    if total <= 0:
        raise ReadError(ErrorKind.PARSE_FAILURE, path, "MemTotal missing")

    free = values.get("MemFree", 0)
    buffers = values.get("Buffers", 0)
    cached = values.get("Cached", 0) + values.get("SReclaimable", 0) - values.get("Shmem", 0)
    swap_total = values.get("SwapTotal", 0)
    swap_free = values.get("SwapFree", 0)
    used = max(total - free - buffers - cached, 0)

    return MemoryMetrics(
        total=total,
        free=free,
        available=values.get("MemAvailable", free),
        used=used,
        buffers=buffers,
        cached=cached,
        swap_total=swap_total,
        swap_free=swap_free,
        usage=100.0 * used / total,
        swap_usage=(100.0 * (1.0 - swap_free / swap_total) if swap_total > 0 else 0.0),
    )


def _unescape_mount_field(value: str) -> str:
    return _OCTAL_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 8)), value)


def read_mounts(path: str = ETC_MTAB) -> list[MountEntry]:
    text = _read_text(path)
    entries: list[MountEntry] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        if len(fields) < 3:
            continue
        entries.append(
            MountEntry(
                device=_unescape_mount_field(fields[0]),
                mount_point=_unescape_mount_field(fields[1]),
                fs_type=fields[2],
            )
        )
    return entries


def read_diskstats(path: str = PROC_DISKSTATS, clock: Clock = time.monotonic) -> dict[str, DiskSample]:
    text = _read_text(path)
    now = clock()
    samples: dict[str, DiskSample] = {}
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 14:
            continue
        try:
            samples[fields[2]] = DiskSample(
                reads=int(fields[3]),
                writes=int(fields[7]),
                io_in_progress=int(fields[11]),
                timestamp=now,
            )
        except ValueError:
            continue
    return samples


def read_net_dev(path: str = PROC_NET_DEV, clock: Clock = time.monotonic) -> dict[str, NetSample]:
    text = _read_text(path)
    now = clock()
    lines = text.splitlines()
    if len(lines) < 2 or "|" not in lines[0] or "bytes" not in lines[1]:
        raise ReadError(ErrorKind.PARSE_FAILURE, path, "unexpected header")

    samples: dict[str, NetSample] = {}
    for line in lines[2:]:
        name, sep, rest = line.partition(":")
        if not sep:
            continue
        fields = rest.split()
        if len(fields) < 16:
            continue
        try:
            samples[name.strip()] = NetSample(
                bytes_received=int(fields[0]),
                packets_received=int(fields[1]),
                errors_in=int(fields[2]),
                drops_in=int(fields[3]),
                bytes_sent=int(fields[8]),
                packets_sent=int(fields[9]),
                errors_out=int(fields[10]),
                drops_out=int(fields[11]),
                timestamp=now,
            )
        except ValueError:
            continue
    return samples
