"""procmon - Live Textual dashboard."""

import logging

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widgets import DataTable, Footer, Sparkline, Static

from procmon.config import RENDER_TICK, MonitorConfig
from procmon.formatting import (
    format_bytes,
    format_status,
    format_system_memory,
    format_system_swap,
    truncate_string,
)
from procmon.history import HistoryStore
from procmon.inspector import select_inspector
from procmon.models import ProcessTreeNode, SortKey
from procmon.monitor import ProcessSampler, SamplerState, TickResult
from procmon.rolling import RollingWindow
from procmon.tree import build_process_tree, sort_nodes, tree_prefixes

logger = logging.getLogger(__name__)

NAME_WIDTH = 30


class HeaderStats(Static):
    """Header widget showing the filter, host memory and process totals."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 6;
        padding: 0 1;
        border: solid $primary;
    }
    """

    def __init__(self, config: MonitorConfig, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__("Collecting process data...", *args, **kwargs)
        self._config = config
        self._sort_key = config.sort_key

    def set_sort_key(self, sort_key: SortKey) -> None:
        self._sort_key = sort_key

    def update_stats(self, result: TickResult) -> None:
        """Update the statistics from a tick result."""
        self.update(self.render_stats(result))

    def render_stats(self, result: TickResult) -> str:
        nodes = result.nodes
        total_memory = sum(n.memory_bytes for n in nodes)
        total_cpu = sum(n.cpu_percent for n in nodes)
        total_threads = sum(n.snapshot.thread_count for n in nodes)
        memories = [n.memory_bytes for n in nodes]
        avg_memory = total_memory // len(nodes) if nodes else 0

        title = f"Process Monitor: '{escape(self._config.name_filter)}'"
        if self._config.min_memory_mb is not None:
            title += f" (>= {self._config.min_memory_mb} MB)"
        title += f" | Sort: {self._sort_key.value}"

        return (
            f"[bold cyan]{title}[/bold cyan]\n"
            f"[yellow]{format_system_memory(result.system)}[/yellow]\n"
            f"[yellow]{format_system_swap(result.system)}[/yellow]\n"
            f"Processes: {len(nodes)} ({total_threads} threads) | CPU: {total_cpu:.2f}%\n"
            f"[green]Memory: {format_bytes(total_memory)} "
            f"(Min: {format_bytes(min(memories, default=0))}, "
            f"Avg: {format_bytes(avg_memory)}, "
            f"Max: {format_bytes(max(memories, default=0))})[/green]"
        )


class TrendPanel(Vertical):
    """Memory and CPU sparklines fed from the rolling window."""

    DEFAULT_CSS = """
    TrendPanel {
        height: auto;
        border: solid $primary;
    }

    TrendPanel Sparkline {
        height: 2;
    }
    """

    def __init__(self, window: RollingWindow, *args, **kwargs) -> None:
        """Initialize TrendPanel."""
        super().__init__(*args, **kwargs)
        self._window = window

    def compose(self) -> ComposeResult:
        """Compose the trend layout."""
        yield Static("Collecting data for graphs...", id="memory-trend-title")
        yield Sparkline([], id="memory-trend")
        yield Static("", id="cpu-trend-title")
        yield Sparkline([], id="cpu-trend")

    def refresh_trends(self) -> None:
        """Redraw both sparklines from the current window."""
        window = self._window
        memory_title = self.query_one("#memory-trend-title", Static)
        cpu_title = self.query_one("#cpu-trend-title", Static)
        if len(window) < 2:
            memory_title.update("Collecting data for graphs...")
            cpu_title.update("")
            return

        memory_title.update(
            f"Memory Trend ({len(window)} points, Max: {format_bytes(window.max_memory())})"
        )
        cpu_title.update(f"CPU Trend ({len(window)} points, Max: {window.max_cpu():.2f}%)")
        self.query_one("#memory-trend", Sparkline).data = window.memory_series()
        self.query_one("#cpu-trend", Sparkline).data = window.cpu_series()


class ProcessTable(Container):
    """Container for the process data table, in flat or tree layout."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, sort_key: SortKey, tree_mode: bool, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []
        self._sort_key = sort_key
        self._tree_mode = tree_mode

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def tree_mode(self) -> bool:
        return self._tree_mode

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        return self._sort_key

    def toggle_tree(self) -> bool:
        self._tree_mode = not self._tree_mode
        return self._tree_mode

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=NAME_WIDTH)
        table.add_column("Threads", key="threads", width=8)
        table.add_column("CPU %", key="cpu", width=10)
        table.add_column("Memory", key="memory", width=12)
        table.add_column("Status", key="status", width=8)

    def ordered_rows(self, nodes: list[ProcessTreeNode]) -> list[tuple[ProcessTreeNode, str]]:
        """Return (node, display name) pairs in display order."""
        if not self._tree_mode:
            return [(node, truncate_string(node.name, NAME_WIDTH)) for node in sort_nodes(nodes, self._sort_key)]

        flattened = build_process_tree(nodes, self._sort_key)
        rows = []
        for node, prefix in zip(flattened, tree_prefixes(flattened)):
            max_name_len = max(NAME_WIDTH - len(prefix), 4)
            rows.append((node, prefix + truncate_string(node.name, max_name_len)))
        return rows

    def update_processes(self, nodes: list[ProcessTreeNode]) -> None:
        """Rebuild the table rows from the grouped processes."""
        table = self.query_one("#process-table", DataTable)
        table.clear()

        rows = self.ordered_rows(nodes)
        for node, display_name in rows:
            table.add_row(
                str(node.pid),
                Text(display_name),
                str(node.snapshot.thread_count),
                f"{node.cpu_percent:.2f}",
                format_bytes(node.memory_bytes),
                format_status(node.snapshot.status),
                key=str(node.pid),
            )
        self._current_pids = [node.pid for node, _ in rows]


class ProcmonApp(App):
    """Main procmon application."""

    TITLE = "procmon"
    SUB_TITLE = "Process Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("escape", "quit", "Quit"),
        ("s", "sort", "Sort"),
        ("t", "toggle_tree", "Tree"),
    ]

    def __init__(
        self,
        config: MonitorConfig,
        sampler: ProcessSampler | None = None,
        history: HistoryStore | None = None,
    ) -> None:
        """
        Initialize the ProcmonApp.

        Args:
            config: Session settings.
            sampler: Sampler to drive; built from `config` when omitted.
            history: Already-open store to append every sample to.
        """
        super().__init__()
        self._config = config
        self._sampler = sampler or ProcessSampler(
            select_inspector(),
            name_filter=config.name_filter,
            min_memory_bytes=config.min_memory_bytes,
            interval=config.interval,
        )
        window = RollingWindow(config.graph_points) if config.graph_points > 0 else None
        self._state = SamplerState(window=window, history=history)
        self._history_warned = False

    @property
    def state(self) -> SamplerState:
        return self._state

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(self._config, id="header-stats")
        if self._state.window is not None:
            yield TrendPanel(self._state.window, id="trends")
        yield ProcessTable(self._config.sort_key, self._config.tree_mode)
        yield Footer()

    def on_mount(self) -> None:
        """Take the first sample and start the render timer."""
        self.call_after_refresh(self._on_render_tick)
        self.set_interval(RENDER_TICK, self._on_render_tick)

    def _on_render_tick(self) -> None:
        """Sample when due and refresh the UI with any new data."""
        try:
            result = self._sampler.tick(self._state)
        except Exception as exc:
            logger.exception("sampling failed")
            self._close_history()
            self.exit(return_code=1, message=f"Error: {exc}")
            return

        if self._state.history_disabled and not self._history_warned:
            self._history_warned = True
            self.notify("History logging failed and has been disabled", severity="warning")

        if result is not None:
            self._update_ui(result)

    def _update_ui(self, result: TickResult) -> None:
        """Update the UI with the new tick result."""
        self.query_one("#header-stats", HeaderStats).update_stats(result)
        if self._state.window is not None:
            self.query_one("#trends", TrendPanel).refresh_trends()
        self.query_one(ProcessTable).update_processes(result.nodes)

    def _redraw(self) -> None:
        if self._state.latest is not None:
            self._update_ui(self._state.latest)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        process_table = self.query_one(ProcessTable)
        new_sort_key = process_table.cycle_sort()
        self.query_one("#header-stats", HeaderStats).set_sort_key(new_sort_key)
        self._redraw()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_toggle_tree(self) -> None:
        process_table = self.query_one(ProcessTable)
        tree_mode = process_table.toggle_tree()
        self._redraw()
        self.notify("Tree view" if tree_mode else "Flat view")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._close_history()
        self.exit()

    def _close_history(self) -> None:
        if self._state.history is not None:
            self._state.history.close()
            self._state.history = None
