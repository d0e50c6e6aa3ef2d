"""Terminal dashboard composed with rich panels and tables."""

from __future__ import annotations

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from procwatch_telemetry import GpuMetrics, SystemSnapshot

from .models import ThemeConfig
from .themes import get_theme


USAGE_WARN = 60.0
USAGE_CRIT = 85.0

BAR_FILL = "█"
BAR_EMPTY = "░"


def usage_style(value: float, theme: ThemeConfig) -> str:
    if value < USAGE_WARN:
        return theme.ok
    if value < USAGE_CRIT:
        return theme.warning
    return theme.critical


def format_bytes(value: float | None) -> str:
    if value is None:
        return "N/A"
    size = float(value)
    if abs(size) < 1024:
        return f"{int(size)} B"
    for unit in ("KiB", "MiB", "GiB", "TiB"):
        size /= 1024
        if abs(size) < 1024 or unit == "TiB":
            break
    return f"{size:.1f} {unit}"


def format_rate(value: float) -> str:
    return f"{format_bytes(value)}/s"


def _na(value: object | None, fmt: str) -> str:
    return "N/A" if value is None else fmt.format(value)


class DashboardRenderer:
    """Turns one snapshot into a rich renderable; holds no metric state of its own."""

    def __init__(
        self,
        theme_name: str | None = None,
        show_gpu: bool = True,
        show_network: bool = True,
        show_loopback: bool = True,
        bar_width: int = 24,
    ) -> None:
        self.theme = get_theme(theme_name)
        self.show_gpu = show_gpu
        self.show_network = show_network
        self.show_loopback = show_loopback
        self.bar_width = bar_width

    def render(self, snapshot: SystemSnapshot, interval_ms: int | None = None, failed_cycles: int = 0) -> RenderableType:
        parts: list[RenderableType] = [
            self._cpu_panel(snapshot),
            self._memory_panel(snapshot),
            self._disk_panel(snapshot),
        ]
        if self.show_gpu:
            parts.append(self._gpu_panel(snapshot.gpu))
        if self.show_network:
            parts.append(self._network_panel(snapshot))
        parts.append(self._footer(snapshot, interval_ms, failed_cycles))
        return Group(*parts)

    def _panel(self, body: RenderableType, title: str) -> Panel:
        return Panel(body, title=Text(f" {title} ", style=self.theme.title), title_align="left", border_style=self.theme.border)

    def _bar(self, percent: float) -> Text:
        percent = min(max(percent, 0.0), 100.0)
        filled = int(round(self.bar_width * percent / 100.0))
        bar = Text()
        bar.append(BAR_FILL * filled, style=usage_style(percent, self.theme))
        bar.append(BAR_EMPTY * (self.bar_width - filled), style=self.theme.bar_empty)
        bar.append(f" {percent:5.1f}%", style=usage_style(percent, self.theme))
        return bar

    def _cpu_panel(self, s: SystemSnapshot) -> Panel:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style=self.theme.text_secondary)
        grid.add_column()
        grid.add_row("Model", s.cpu.model_name)
        grid.add_row("Cores", str(s.cpu.cores))
        grid.add_row("Usage", self._bar(s.cpu.usage))
        return self._panel(grid, "CPU Information")

    def _memory_panel(self, s: SystemSnapshot) -> Panel:
        mem = s.memory
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style=self.theme.text_secondary)
        grid.add_column()
        grid.add_column(style=self.theme.text_secondary)
        grid.add_row("RAM", self._bar(mem.usage), f"{format_bytes(mem.used)} / {format_bytes(mem.total)}")
        grid.add_row(
            "Cache",
            Text(f"{format_bytes(mem.cached)} cached, {format_bytes(mem.buffers)} buffers"),
            f"{format_bytes(mem.available)} available",
        )
        if mem.swap_total > 0:
            grid.add_row(
                "Swap",
                self._bar(mem.swap_usage),
                f"{format_bytes(mem.swap_total - mem.swap_free)} / {format_bytes(mem.swap_total)}",
            )
        else:
            grid.add_row("Swap", Text("none", style=self.theme.text_secondary), "")
        return self._panel(grid, "Memory Usage")

    def _disk_panel(self, s: SystemSnapshot) -> Panel:
        table = Table(box=box.SIMPLE_HEAD, expand=True, header_style=self.theme.text_secondary)
        table.add_column("Device")
        table.add_column("Mount")
        table.add_column("Used", justify="right")
        table.add_column("Free", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Reads/s", justify="right")
        table.add_column("Writes/s", justify="right")
        table.add_column("In flight", justify="right")
        for disk in s.disks:
            table.add_row(
                disk.device,
                disk.mount_point,
                Text(f"{disk.usage:5.1f}%", style=usage_style(disk.usage, self.theme)),
                format_bytes(disk.available),
                format_bytes(disk.total),
                f"{disk.reads_per_s:.1f}",
                f"{disk.writes_per_s:.1f}",
                str(disk.io_in_progress),
            )
        if not s.disks:
            return self._panel(Text("No block devices mounted", style=self.theme.text_secondary), "Disks")
        return self._panel(table, "Disks")

    def _gpu_panel(self, gpu: GpuMetrics) -> Panel:
        title = f"GPU ({gpu.backend})"
        if not gpu.devices:
            return self._panel(Text("No GPUs detected", style=self.theme.text_secondary), title)

        table = Table(box=box.SIMPLE_HEAD, expand=True, header_style=self.theme.text_secondary)
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("Temp", justify="right")
        table.add_column("Util", justify="right")
        table.add_column("Memory", justify="right")
        table.add_column("Power", justify="right")
        table.add_column("Fan", justify="right")
        for dev in gpu.devices:
            if not dev.supported:
                table.add_row(str(dev.index), dev.name, "N/A", "N/A", "N/A", "N/A", "N/A")
                continue
            util = (
                Text(f"{dev.utilization:.0f}%", style=usage_style(dev.utilization, self.theme))
                if dev.utilization is not None
                else Text("N/A")
            )
            memory = (
                f"{format_bytes(dev.memory_used)} / {format_bytes(dev.memory_total)}"
                if dev.memory_total is not None
                else "N/A"
            )
            power = _na(None if dev.power_mw is None else dev.power_mw / 1000.0, "{:.1f} W")
            table.add_row(
                str(dev.index),
                dev.name,
                _na(dev.temperature_c, "{}°C"),
                util,
                memory,
                power,
                _na(dev.fan_percent, "{}%"),
            )
        return self._panel(table, title)

    def _network_panel(self, s: SystemSnapshot) -> Panel:
        rows = [n for n in s.network if self.show_loopback or n.interface != "lo"]
        if not rows:
            return self._panel(Text("No interfaces", style=self.theme.text_secondary), "Network")

        table = Table(box=box.SIMPLE_HEAD, expand=True, header_style=self.theme.text_secondary)
        table.add_column("Interface")
        table.add_column("Receive", justify="right")
        table.add_column("Send", justify="right")
        table.add_column("RX total", justify="right")
        table.add_column("TX total", justify="right")
        table.add_column("Packets in/out", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column("Drops", justify="right")
        for n in rows:
            table.add_row(
                n.interface,
                format_rate(n.receive_speed),
                format_rate(n.send_speed),
                format_bytes(n.bytes_received),
                format_bytes(n.bytes_sent),
                f"{n.packets_received}/{n.packets_sent}",
                f"{n.errors_in}/{n.errors_out}",
                f"{n.drops_in}/{n.drops_out}",
            )
        return self._panel(table, "Network")

    def _footer(self, s: SystemSnapshot, interval_ms: int | None, failed_cycles: int) -> Text:
        footer = Text(style=self.theme.text_secondary)
        footer.append(s.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"))
        footer.append(f"  cycle {s.cycle}")
        if interval_ms is not None:
            footer.append(f"  every {interval_ms} ms")
        if failed_cycles:
            footer.append(f"  {failed_cycles} failed", style=self.theme.warning)
        footer.append("  Ctrl+C to quit")
        return footer
