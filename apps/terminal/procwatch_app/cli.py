"""CLI entrypoint: ``procwatch [interval_ms]``."""

from __future__ import annotations

import argparse
import sys

from procwatch_core import AppConfig, load_config
from procwatch_core.config import MIN_INTERVAL_MS
from procwatch_core.logging_setup import configure_logging, get_logger


# bad arguments share the startup failure status; the program only exits 0 or 1
EXIT_USAGE = 1


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="procwatch", description="Live Linux system monitor")
    parser.add_argument(
        "interval_ms",
        nargs="?",
        type=int,
        default=None,
        help=f"Update interval in milliseconds (default from config, 1000; minimum {MIN_INTERVAL_MS})",
    )
    return parser


def resolve_interval(requested: int | None, cfg: AppConfig) -> int:
    value = cfg.poll.interval_ms if requested is None else requested
    if value < MIN_INTERVAL_MS:
        get_logger().warning(
            f"interval {value} ms raised to {MIN_INTERVAL_MS} ms",
            extra={"event": "interval_clamped"},
        )
        return MIN_INTERVAL_MS
    return value


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = load_config()
    configure_logging(keep_files=cfg.logging.keep_log_files, console=False, level=cfg.logging.level)

    from .app import run_dashboard

    return run_dashboard(cfg, resolve_interval(args.interval_ms, cfg))


if __name__ == "__main__":
    raise SystemExit(main())
