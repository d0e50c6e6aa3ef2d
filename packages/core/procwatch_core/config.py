"""Persistent settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


CONFIG_VERSION = 1

MIN_INTERVAL_MS = 100
DEFAULT_INTERVAL_MS = 1000

THEME_NAMES = ("Classic", "Ocean", "Mono")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class PollConfig:
    interval_ms: int = DEFAULT_INTERVAL_MS


@dataclass
class DisplayConfig:
    theme: str = "Classic"
    show_gpu: bool = True
    show_network: bool = True
    show_loopback: bool = True


@dataclass
class GpuConfig:
    prefer_driver: bool = True
    library_names: list[str] = field(default_factory=lambda: ["libnvidia-ml.so", "libnvidia-ml.so.1"])


@dataclass
class LoggingConfig:
    keep_log_files: int = 7
    level: str = "INFO"


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    poll: PollConfig = field(default_factory=PollConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    gpu: GpuConfig = field(default_factory=GpuConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_root() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / "procwatch"


def config_path() -> Path:
    return config_root() / "config.json"


def clamp_interval_ms(value: int) -> int:
    return max(MIN_INTERVAL_MS, int(value))


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _normalize_poll(cfg: AppConfig) -> None:
    try:
        cfg.poll.interval_ms = clamp_interval_ms(cfg.poll.interval_ms)
    except (TypeError, ValueError):
        cfg.poll.interval_ms = DEFAULT_INTERVAL_MS


def _normalize_display(cfg: AppConfig) -> None:
    if cfg.display.theme not in THEME_NAMES:
        cfg.display.theme = THEME_NAMES[0]
    cfg.display.show_gpu = bool(cfg.display.show_gpu)
    cfg.display.show_network = bool(cfg.display.show_network)
    cfg.display.show_loopback = bool(cfg.display.show_loopback)


def _normalize_gpu(cfg: AppConfig) -> None:
    cfg.gpu.prefer_driver = bool(cfg.gpu.prefer_driver)
    names = cfg.gpu.library_names
    if not isinstance(names, list) or not all(isinstance(n, str) and n for n in names):
        cfg.gpu.library_names = GpuConfig().library_names


def _normalize_logging(cfg: AppConfig) -> None:
    try:
        cfg.logging.keep_log_files = max(2, int(cfg.logging.keep_log_files))
    except (TypeError, ValueError):
        cfg.logging.keep_log_files = LoggingConfig().keep_log_files
    level = str(cfg.logging.level).upper()
    cfg.logging.level = level if level in LOG_LEVELS else "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return AppConfig()
    if not isinstance(data, dict):
        return AppConfig()

    cfg = AppConfig(
        config_version=CONFIG_VERSION,
        poll=_merge(PollConfig, data.get("poll", {})),
        display=_merge(DisplayConfig, data.get("display", {})),
        gpu=_merge(GpuConfig, data.get("gpu", {})),
        logging=_merge(LoggingConfig, data.get("logging", {})),
    )

    _normalize_poll(cfg)
    _normalize_display(cfg)
    _normalize_gpu(cfg)
    _normalize_logging(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path
