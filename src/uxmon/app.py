"""uxmon - Main Textual application."""

import argparse
import logging
from collections.abc import Sequence

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Sparkline, Static

from uxmon.config import ConfigError, MonitorConfig, load_config
from uxmon.engine import MonitorEngine
from uxmon.models import ProcessRecord, SortKey

logger = logging.getLogger(__name__)

BAR_WIDTH = 20


def format_kb(size_kb: int) -> str:
    """Format a size in kB as a human-readable string."""
    size = float(size_kb)
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def usage_bar(fraction: float, color: str = "green") -> str:
    """Render a [0, 1] fraction as a fixed-width markup bar."""
    filled = min(BAR_WIDTH, max(0, int(fraction * BAR_WIDTH)))
    return f"[{color}]" + "█" * filled + f"[/{color}]" + "[dim]░[/dim]" * (BAR_WIDTH - filled)


class HeaderStats(Static):
    """Header widget showing per-core utilization, memory and temperature."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, engine: MonitorEngine, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._engine = engine

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_mem_info(), id="mem-info"),
        )

    def refresh_stats(self) -> None:
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#mem-info", Static).update(self._get_mem_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        snapshot = self._engine.snapshot
        frequencies = self._engine.frequencies_mhz
        lines = [f"CPU   \\[{usage_bar(snapshot.total)}] {snapshot.total * 100:5.1f}%"]
        for i, usage in enumerate(snapshot.per_core):
            clock = f" {frequencies[i]:6.0f}MHz" if i < len(frequencies) and frequencies[i] else ""
            lines.append(f"CPU{i:<2} \\[{usage_bar(usage)}] {usage * 100:5.1f}%{clock}")
        return "\n".join(lines)

    def _get_mem_info(self) -> str:
        memory = self._engine.memory
        if memory is None:
            mem_line = "Mem unavailable"
        else:
            used_gb = memory.used_kb / (1024**2)
            total_gb = memory.total_kb / (1024**2)
            mem_line = (
                f"Mem\\[{usage_bar(memory.used_fraction, 'cyan')}] "
                f"{used_gb:.1f}G/{total_gb:.1f}G ({memory.used_percent:.0f}%)"
            )
        temperature = self._engine.temperature_c
        temp_line = "Temp: n/a" if temperature is None else f"Temp: {temperature:.1f}°C"
        return f"{mem_line}\n{temp_line}\nProcesses: {self._engine.scanner.count}"


class HistoryGraphs(Horizontal):
    """Sparklines of aggregate CPU and memory history."""

    DEFAULT_CSS = """
    HistoryGraphs {
        height: 3;
    }
    HistoryGraphs Sparkline {
        width: 1fr;
        margin: 0 1;
    }
    """

    def __init__(self, engine: MonitorEngine, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._engine = engine

    def compose(self) -> ComposeResult:
        yield Sparkline(self._engine.cpu_sampler.total_history(), id="cpu-history")
        yield Sparkline(self._engine.memory_history.values(), id="mem-history")

    def refresh_history(self) -> None:
        self.query_one("#cpu-history", Sparkline).data = self._engine.cpu_sampler.total_history()
        self.query_one("#mem-history", Sparkline).data = self._engine.memory_history.values()


class ResourcePanel(Static):
    """Auto-management state, priority list and suspended count."""

    DEFAULT_CSS = """
    ResourcePanel {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, engine: MonitorEngine, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._engine = engine

    def render_panel(self) -> str:
        engine = self._engine
        state = "[green]ENABLED[/green]" if engine.auto_manage else "[dim]DISABLED[/dim]"
        names = escape(", ".join(engine.priorities)) or "(none)"
        suspended = len(engine.suspended_processes())
        return (
            f"Auto-manage: {state}   "
            f"Priority ({len(engine.priorities)}/{engine.priorities.capacity}): {names}   "
            f"Suspended: {suspended}"
        )

    def refresh_panel(self) -> None:
        self.update(self.render_panel())


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, engine: MonitorEngine, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._engine = engine
        self._current_pids: list[int] = []

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("NI", key="nice", width=4)
        table.add_column("S", key="status", width=3)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("", key="flag", width=2)
        table.add_column("Command", key="command")

    @property
    def selected_pid(self) -> int | None:
        table = self.query_one("#process-table", DataTable)
        row = table.cursor_row
        if 0 <= row < len(self._current_pids):
            return self._current_pids[row]
        return None

    def update_processes(self, processes: list[ProcessRecord]) -> None:
        """
        Rebuild the table in the engine's sort order.

        The cursor follows the selected PID if it is still alive.
        """
        table = self.query_one("#process-table", DataTable)
        selected = self.selected_pid
        table.clear()
        for proc in processes:
            table.add_row(*self._row(proc), key=str(proc.pid))
        self._current_pids = [proc.pid for proc in processes]
        if selected in self._current_pids:
            table.move_cursor(row=self._current_pids.index(selected))

    def _row(self, proc: ProcessRecord) -> tuple[str | Text, ...]:
        if proc.suspended_by_policy:
            flag = "[yellow]Z[/yellow]"
        elif self._engine.priorities.matches(proc.command):
            flag = "[green]*[/green]"
        else:
            flag = ""
        return (
            str(proc.pid),
            proc.username[:10],
            str(proc.nice),
            proc.state,
            f"{proc.cpu_percent:5.1f}",
            format_kb(proc.rss_kb),
            flag,
            Text(proc.command[:50]),
        )


class UxmonApp(App):
    """Main uxmon application."""

    TITLE = "uxmon"
    SUB_TITLE = "Host Monitor & Resource Manager"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #mem-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("c", "sort('cpu')", "Sort CPU"),
        ("m", "sort('mem')", "Sort Mem"),
        ("a", "add_priority", "Prioritize"),
        ("d", "remove_priority", "Unprioritize"),
        ("t", "toggle_auto", "Auto-manage"),
        ("r", "resume_all", "Resume all"),
        ("K", "terminate", "Kill"),
        ("S", "toggle_run", "Stop/Cont"),
        ("plus", "renice(-1)", "Nice-"),
        ("minus", "renice(1)", "Nice+"),
    ]

    def __init__(self, config: MonitorConfig | None = None, engine: MonitorEngine | None = None) -> None:
        super().__init__()
        self._engine = engine or MonitorEngine(config)

    @property
    def engine(self) -> MonitorEngine:
        return self._engine

    def compose(self) -> ComposeResult:
        yield HeaderStats(self._engine, id="header-stats")
        yield HistoryGraphs(self._engine, id="history")
        yield ResourcePanel(self._engine, id="resources")
        yield ProcessTable(self._engine)
        yield Footer()

    def on_mount(self) -> None:
        """Take the first samples and start the frame timer."""
        self.call_after_refresh(self._on_frame)
        self.set_interval(self._engine.config.frame_interval, self._on_frame)

    def _on_frame(self) -> None:
        """Run due samplers and redraw whatever changed."""
        result = self._engine.tick()
        if result.suspended:
            self.notify(f"Suspended {len(result.suspended)} process(es)")
        if result.cpu_sampled:
            self.query_one(HeaderStats).refresh_stats()
            self.query_one(HistoryGraphs).refresh_history()
        if result.processes_scanned:
            self._refresh_processes()

    def _refresh_processes(self) -> None:
        self.query_one(ResourcePanel).refresh_panel()
        self.query_one(ProcessTable).update_processes(self._engine.sorted_processes())

    def _selected(self) -> ProcessRecord | None:
        pid = self.query_one(ProcessTable).selected_pid
        return None if pid is None else self._engine.scanner.find(pid)

    def action_sort(self, key: str) -> None:
        self._engine.select_sort_key(SortKey(key))
        self._refresh_processes()
        self.notify(f"Sort: {key.upper()}")

    def action_add_priority(self) -> None:
        record = self._selected()
        if record is None:
            return
        if self._engine.add_priority(record.command):
            self.notify(f"Priority: {escape(record.command)}")
        self._refresh_processes()

    def action_remove_priority(self) -> None:
        removed = self._engine.remove_last_priority()
        if removed is not None:
            self.notify(f"Removed priority: {escape(removed)}")
        self._refresh_processes()

    def action_toggle_auto(self) -> None:
        enabled = self._engine.toggle_auto_manage()
        self.notify(f"Auto-manage {'enabled' if enabled else 'disabled'}")
        self._refresh_processes()

    def action_resume_all(self) -> None:
        resumed = self._engine.resume_all()
        self.notify(f"Resumed {len(resumed)} process(es)")
        self._refresh_processes()

    def action_terminate(self) -> None:
        record = self._selected()
        if record is not None and self._engine.terminate(record.pid):
            self.notify(f"Killed {escape(record.command)} ({record.pid})")

    def action_toggle_run(self) -> None:
        record = self._selected()
        if record is not None and self._engine.toggle_run_state(record.pid):
            self._refresh_processes()

    def action_renice(self, delta: int) -> None:
        record = self._selected()
        if record is not None and self._engine.renice(record.pid, delta) is not None:
            self._refresh_processes()


def setup_logging(log_file: str | None = None, debug: bool = False) -> None:
    """Route log records to the Textual console and optionally a file."""
    handlers: list[logging.Handler] = [TextualHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="uxmon", description="Host monitor and resource manager")
    parser.add_argument("--config", help="TOML configuration file")
    parser.add_argument("--log-file", help="also write logs to this file")
    parser.add_argument("--debug", action="store_true", help="log at DEBUG level")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for uxmon application."""
    args = parse_args(argv)
    setup_logging(args.log_file, args.debug)
    try:
        config = load_config(args.config) if args.config else MonitorConfig()
    except ConfigError as exc:
        raise SystemExit(f"uxmon: {exc}") from exc
    logger.debug("Starting with %s", config)
    app = UxmonApp(config)
    app.run()


if __name__ == "__main__":
    main()
