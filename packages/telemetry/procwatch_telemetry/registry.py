"""Per-cycle entity enumeration and stable keying for disks, interfaces, and GPUs."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from .models import EntityKey


_LOGGER = logging.getLogger("procwatch.telemetry")

_TRAILING_DIGITS_RE = re.compile(r"\d+$")

# loopback, ramdisk, compressed ram, device-mapper, optical/SCSI generic
VIRTUAL_DEVICE_PREFIXES = ("loop", "ram", "zram", "dm-", "sr")


def device_basename(device: str) -> str:
    return device.rstrip("/").rsplit("/", 1)[-1]


def is_virtual_device(device: str) -> bool:
    if device.startswith("/dev/mapper/"):
        return True
    return device_basename(device).startswith(VIRTUAL_DEVICE_PREFIXES)


def disk_base_name(device: str) -> str:
    """``/dev/sda15`` -> ``sda``; ``nvme0n1p1`` -> ``nvme0n1``; ``mmcblk0p2`` -> ``mmcblk0``."""
    name = device_basename(device)
    stripped = _TRAILING_DIGITS_RE.sub("", name)
    if len(stripped) > 1 and stripped.endswith("p") and stripped[-2].isdigit():
        stripped = stripped[:-1]
    return stripped or name


def _verbatim(name: str) -> str:
    return name


class DeviceRegistry:
    """Tracks which entities of one domain exist this cycle.

    Keys are derived from the raw kernel name on every call; the registry only keeps
    the previous cycle's key list so it can report additions and removals.
    """

    def __init__(
        self,
        domain: str,
        key_name: Callable[[str], str] = _verbatim,
        exclude: Callable[[str], bool] | None = None,
    ) -> None:
        self.domain = domain
        self._key_name = key_name
        self._exclude = exclude
        self._current: list[EntityKey] = []
        self.added: list[EntityKey] = []
        self.removed: list[EntityKey] = []

    @property
    def current(self) -> list[EntityKey]:
        return list(self._current)

    def key_for(self, raw_name: str) -> EntityKey | None:
        if self._exclude is not None and self._exclude(raw_name):
            return None
        return EntityKey(self.domain, self._key_name(raw_name))

    def reconcile(self, raw_names: Iterable[str]) -> list[EntityKey]:
        keys: list[EntityKey] = []
        seen: set[EntityKey] = set()
        for raw in raw_names:
            key = self.key_for(raw)
            if key is None or key in seen:
                continue
            seen.add(key)
            keys.append(key)

        previous = set(self._current)
        self.added = [k for k in keys if k not in previous]
        self.removed = [k for k in self._current if k not in seen]
        self._current = keys

        for key in self.added:
            _LOGGER.info(f"{self.domain} tracked: {key.name}", extra={"event": "entity_added"})
        for key in self.removed:
            _LOGGER.info(f"{self.domain} gone: {key.name}", extra={"event": "entity_removed"})
        return keys


def disk_registry() -> DeviceRegistry:
    return DeviceRegistry("disk", key_name=disk_base_name, exclude=is_virtual_device)


def network_registry() -> DeviceRegistry:
    return DeviceRegistry("net")


def gpu_registry() -> DeviceRegistry:
    return DeviceRegistry("gpu")
