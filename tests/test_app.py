"""Tests for the procmon dashboard."""

from datetime import datetime, timezone

import pytest
from textual.widgets import DataTable, Sparkline

from procmon.app import HeaderStats, ProcessTable, ProcmonApp, TrendPanel
from procmon.config import MonitorConfig
from procmon.errors import StorageUnavailable
from procmon.inspector import ProcessInspector, SystemMemory
from procmon.models import (
    ProcessSnapshot,
    ProcessStatus,
    ProcessTreeNode,
    RawThreadRecord,
    SortKey,
)
from procmon.monitor import ProcessSampler, TickResult


class FakeInspector(ProcessInspector):
    """Inspector serving a small fixed nginx process family."""

    def __init__(self, fail=False):
        self.fail = fail

    def collect(self):
        if self.fail:
            raise RuntimeError("inspector exploded")
        return [
            self._raw(10, "nginx", 1024, 1.0, None),
            self._raw(11, "nginx-worker", 4096, 2.0, 10),
            self._raw(12, "nginx-worker", 2048, 3.0, 10),
            self._raw(99, "postgres", 8192, 0.5, None),
        ]

    def thread_count(self, group_id):
        return 1

    @staticmethod
    def _raw(pid, name, mem, cpu, parent):
        return RawThreadRecord(
            thread_id=pid,
            group_id=pid,
            parent_group_id=parent,
            name=name,
            cpu_percent=cpu,
            memory_bytes=mem,
            status=ProcessStatus.RUNNING,
        )


class BrokenStore:
    """History store whose appends always fail."""

    def __init__(self):
        self.closed = False

    def insert(self, snapshots):
        raise StorageUnavailable("disk full")

    def close(self):
        self.closed = True


class ClosableStore:
    """History store that accepts every batch."""

    def __init__(self):
        self.inserts = 0
        self.closed = False

    def insert(self, snapshots):
        self.inserts += 1

    def close(self):
        self.closed = True


def make_app(config=None, fail=False, history=None):
    config = config or MonitorConfig(name_filter="nginx", interval=0.1)
    sampler = ProcessSampler(
        FakeInspector(fail=fail),
        name_filter=config.name_filter,
        min_memory_bytes=config.min_memory_bytes,
        interval=config.interval,
    )
    return ProcmonApp(config, sampler=sampler, history=history)


@pytest.mark.asyncio
async def test_app_creation():
    """Test ProcmonApp can be instantiated."""
    app = make_app()
    assert app.title == "procmon"
    assert app.state.window is not None
    assert app.state.window.capacity == 60


@pytest.mark.asyncio
async def test_app_compose():
    """Test ProcmonApp composes correctly."""
    app = make_app()
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#trends") is not None


@pytest.mark.asyncio
async def test_graph_disabled_hides_trends():
    app = make_app(MonitorConfig(name_filter="nginx", graph_points=0))
    async with app.run_test() as pilot:
        assert len(pilot.app.query(TrendPanel)) == 0
        assert app.state.window is None


@pytest.mark.asyncio
async def test_app_quit_binding():
    """Test that 'q' binding triggers quit."""
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert pilot.app._exit


@pytest.mark.asyncio
async def test_first_sample_populates_table():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(0.3)

        process_table = pilot.app.query_one(ProcessTable)
        table = pilot.app.query_one("#process-table", DataTable)
        # sorted by memory, postgres filtered out
        assert process_table._current_pids == [11, 12, 10]
        assert table.row_count == 3


@pytest.mark.asyncio
async def test_app_sort_binding():
    """Test that 's' cycles the sort key and reorders rows."""
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        process_table = pilot.app.query_one(ProcessTable)
        assert process_table.sort_key is SortKey.MEMORY

        await pilot.press("s")

        assert process_table.sort_key is SortKey.CPU
        assert process_table._current_pids == [12, 11, 10]


@pytest.mark.asyncio
async def test_tree_toggle_binding():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        process_table = pilot.app.query_one(ProcessTable)
        assert not process_table.tree_mode

        await pilot.press("t")

        assert process_table.tree_mode
        assert process_table._current_pids[0] == 10


@pytest.mark.asyncio
async def test_process_table_cycle_sort():
    """Test ProcessTable sort key cycling."""
    app = make_app()
    async with app.run_test() as pilot:
        process_table = pilot.app.query_one(ProcessTable)

        assert process_table.sort_key is SortKey.MEMORY
        assert process_table.cycle_sort() is SortKey.CPU
        assert process_table.cycle_sort() is SortKey.PID
        assert process_table.cycle_sort() is SortKey.NAME
        assert process_table.cycle_sort() is SortKey.MEMORY


@pytest.mark.asyncio
async def test_process_table_removes_old_processes():
    """Test ProcessTable drops processes that no longer exist."""
    app = make_app()
    async with app.run_test() as pilot:
        process_table = pilot.app.query_one(ProcessTable)
        now = datetime.now(timezone.utc)

        def node(pid, parent=None):
            snap = ProcessSnapshot(
                timestamp=now,
                pid=pid,
                name=f"proc{pid}",
                cpu_percent=0.0,
                memory_bytes=pid,
                thread_count=1,
                status=ProcessStatus.SLEEPING,
            )
            return ProcessTreeNode(snapshot=snap, parent_pid=parent)

        process_table.update_processes([node(100), node(200)])
        process_table.update_processes([node(200)])

        assert process_table._current_pids == [200]


def test_tree_rows_carry_prefixes():
    table = ProcessTable(SortKey.PID, tree_mode=True)
    now = datetime.now(timezone.utc)
    nodes = [
        ProcessTreeNode(
            snapshot=ProcessSnapshot(now, pid, "nginx", 0.0, 1, 1, ProcessStatus.RUNNING),
            parent_pid=parent,
        )
        for pid, parent in [(1, None), (2, 1), (3, 1)]
    ]

    names = [name for _, name in table.ordered_rows(nodes)]

    assert names == ["nginx", "├─ nginx", "└─ nginx"]


@pytest.mark.asyncio
async def test_trends_fill_after_two_samples():
    app = make_app()
    async with app.run_test() as pilot:
        await pilot.pause(0.8)

        assert len(app.state.window) >= 2
        memory = pilot.app.query_one("#memory-trend", Sparkline)
        assert list(memory.data)[-1] == 1024 + 4096 + 2048


@pytest.mark.asyncio
async def test_history_failure_warns_and_continues():
    store = BrokenStore()
    app = make_app(history=store)
    async with app.run_test() as pilot:
        await pilot.pause(0.3)

        assert store.closed
        assert app.state.history_disabled
        assert app._history_warned
        assert pilot.app.query_one(ProcessTable)._current_pids


@pytest.mark.asyncio
async def test_sampling_failure_exits_with_error():
    app = make_app(fail=True)
    async with app.run_test() as pilot:
        await pilot.pause(0.3)

        assert pilot.app._exit

    assert app.return_code == 1


def test_header_render_stats():
    config = MonitorConfig(name_filter="nginx", min_memory_mb=5)
    header = HeaderStats(config)
    now = datetime.now(timezone.utc)
    nodes = [
        ProcessTreeNode(
            snapshot=ProcessSnapshot(now, pid, "nginx", 1.5, mem, 2, ProcessStatus.RUNNING)
        )
        for pid, mem in [(1, 1024), (2, 3072)]
    ]
    system = SystemMemory(total=4096, used=1024, available=3072, swap_total=0, swap_used=0)

    text = header.render_stats(TickResult(timestamp=now, nodes=nodes, system=system))

    assert "Process Monitor: 'nginx' (>= 5 MB) | Sort: memory" in text
    assert "Processes: 2 (4 threads) | CPU: 3.00%" in text
    assert "Memory: 4.00 KB (Min: 1.00 KB, Avg: 2.00 KB, Max: 3.00 KB)" in text
    assert "Swap: N/A" in text


class NamedInspector(FakeInspector):
    """Inspector serving one process with an arbitrary name."""

    def __init__(self, name):
        super().__init__()
        self.name = name

    def collect(self):
        return [self._raw(10, self.name, 1024, 1.0, None)]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["nginx[/]", "nginx[bold]x", "[red]nginx"])
async def test_process_names_are_shown_verbatim(name):
    config = MonitorConfig(name_filter="nginx", interval=0.1)
    app = ProcmonApp(config, sampler=ProcessSampler(NamedInspector(name), name_filter="nginx"))
    async with app.run_test() as pilot:
        await pilot.pause(0.3)

        table = pilot.app.query_one("#process-table", DataTable)
        assert table.row_count == 1
        assert table.get_cell("10", "name").plain == name
        assert not pilot.app._exit


@pytest.mark.asyncio
async def test_quit_closes_history_and_exits_cleanly():
    store = ClosableStore()
    app = make_app(history=store)
    async with app.run_test() as pilot:
        await pilot.pause(0.3)
        await pilot.press("q")

        assert store.closed
        assert app.state.history is None

    assert app.return_code == 0
    assert store.inserts >= 1

