"""Core app services for settings, logging, and the poll loop."""

from .config import AppConfig, clamp_interval_ms, load_config, save_config
from .poll_controller import LoopState, PollController, PollStatus

__all__ = [
    "AppConfig",
    "LoopState",
    "PollController",
    "PollStatus",
    "clamp_interval_ms",
    "load_config",
    "save_config",
]
