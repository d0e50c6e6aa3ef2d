"""Terminal runtime: startup checks, signal handling, live rendering, and cleanup."""

from __future__ import annotations

import signal
import threading
from typing import Any

from rich.console import Console
from rich.live import Live
from rich.text import Text

from procwatch_core import AppConfig, PollController, PollStatus
from procwatch_core.logging_setup import get_logger, install_crash_hooks
from procwatch_renderer import DashboardRenderer
from procwatch_telemetry import InitializationError, SystemSnapshot, TelemetryProvider


EXIT_OK = 0
EXIT_INIT_FAILURE = 1

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(stop: threading.Event) -> dict[int, Any]:
    """Route interrupt and terminate to ``stop``; returns the handlers they replaced."""

    def _request_stop(signum, _frame) -> None:
        get_logger().info(f"signal {signum} received", extra={"event": "stop_requested"})
        stop.set()

    previous: dict[int, Any] = {}
    for sig in _STOP_SIGNALS:
        previous[sig] = signal.signal(sig, _request_stop)
    return previous


def restore_signal_handlers(previous: dict[int, Any]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def build_provider(cfg: AppConfig) -> TelemetryProvider:
    return TelemetryProvider.create(
        gpu=cfg.display.show_gpu,
        prefer_driver=cfg.gpu.prefer_driver,
        library_names=cfg.gpu.library_names,
        network=cfg.display.show_network,
    )


def run_dashboard(cfg: AppConfig, interval_ms: int, console: Console | None = None) -> int:
    install_crash_hooks()
    logger = get_logger()
    console = console or Console()
    errors = Console(stderr=True)

    if not console.is_terminal:
        errors.print("procwatch needs an interactive terminal")
        logger.error("display unavailable: stdout is not a terminal", extra={"event": "display_init_failed"})
        return EXIT_INIT_FAILURE

    try:
        provider = build_provider(cfg)
    except InitializationError as exc:
        errors.print(f"Failed to start: {exc}")
        logger.error(str(exc), extra={"event": "init_failed"})
        return EXIT_INIT_FAILURE

    renderer = DashboardRenderer(
        theme_name=cfg.display.theme,
        show_gpu=cfg.display.show_gpu,
        show_network=cfg.display.show_network,
        show_loopback=cfg.display.show_loopback,
    )
    stop = threading.Event()
    previous_handlers = install_signal_handlers(stop)
    logger.info(
        f"monitor start interval={interval_ms}ms gpu={provider.gpu_backend.kind} network={provider.network_enabled}",
        extra={"event": "start"},
    )

    try:
        with Live(Text("Collecting first sample..."), console=console, screen=True, auto_refresh=False) as live:

            def _draw(snapshot: SystemSnapshot, status: PollStatus) -> None:
                live.update(renderer.render(snapshot, status.interval_ms, status.failed_cycles), refresh=True)

            controller = PollController(provider, _draw, interval_ms=interval_ms, stop_event=stop)
            controller.run()
    finally:
        restore_signal_handlers(previous_handlers)
        provider.close()

    status = controller.status
    logger.info(
        f"monitor stop cycles={status.cycles} failed={status.failed_cycles}",
        extra={"event": "shutdown", "exit_code": EXIT_OK},
    )
    return EXIT_OK
