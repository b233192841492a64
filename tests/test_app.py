"""Tests for uxmon application."""

import pytest
from textual.widgets import DataTable

from uxmon.app import HeaderStats, ProcessTable, ResourcePanel, UxmonApp, format_kb, parse_args, usage_bar
from uxmon.config import MonitorConfig
from uxmon.engine import MonitorEngine
from uxmon.models import SortKey


def test_format_kb_kilobytes():
    """Test format_kb with kilobyte values."""
    assert "K" in format_kb(500)


def test_format_kb_megabytes():
    """Test format_kb with megabyte values."""
    assert "M" in format_kb(2048)


def test_format_kb_gigabytes():
    """Test format_kb with gigabyte values."""
    assert "G" in format_kb(5 * 1024 * 1024)


def test_usage_bar_clamped():
    """Test bars never exceed their width."""
    assert usage_bar(2.0).count("█") == 20
    assert usage_bar(-1.0).count("█") == 0


def test_parse_args():
    """Test command-line options."""
    args = parse_args(["--config", "x.toml", "--debug"])
    assert args.config == "x.toml"
    assert args.debug
    assert args.log_file is None


@pytest.fixture
def engine(host, actions):
    host.write_stat("cpu  100 0 100 800 0 0 0 0", "cpu0 100 0 100 800 0 0 0 0")
    host.write_meminfo(16_000_000, 1_000_000, 4_000_000)
    host.add_process(1, "systemd", uid=0, rss_kb=100)
    host.add_process(100, "ffmpeg", state="R", rss_kb=900)
    host.add_process(200, "chrome", rss_kb=500)
    return MonitorEngine(MonitorConfig(), counters=host.counters(), actions=actions)


@pytest.mark.asyncio
async def test_app_creation():
    """Test UxmonApp can be instantiated."""
    app = UxmonApp()
    assert app.title == "uxmon"
    assert app.engine is not None


@pytest.mark.asyncio
async def test_app_compose(engine):
    """Test UxmonApp composes correctly."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#resources") is not None


@pytest.mark.asyncio
async def test_app_quit_binding(engine):
    """Test that 'q' binding triggers quit."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("q")
        assert pilot.app._exit


@pytest.mark.asyncio
async def test_first_frame_fills_table(engine):
    """Test the mount frame scans processes into the table."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        process_table = pilot.app.query_one(ProcessTable)
        assert process_table._current_pids == [1, 100, 200]
        assert process_table.selected_pid == 1


@pytest.mark.asyncio
async def test_sort_bindings(engine):
    """Test 'm' and 'c' select the sort key and reorder the table."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("m")
        await pilot.pause()
        assert engine.sort_key == SortKey.MEM
        assert pilot.app.query_one(ProcessTable)._current_pids == [100, 200, 1]

        await pilot.press("c")
        await pilot.pause()
        assert engine.sort_key == SortKey.CPU


@pytest.mark.asyncio
async def test_priority_and_auto_manage_bindings(engine):
    """Test the resource manager keys update the engine and panel."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        pilot.app.query_one("#process-table", DataTable).move_cursor(row=1)
        await pilot.press("a")
        await pilot.pause()
        assert list(engine.priorities) == ["ffmpeg"]

        await pilot.press("t")
        await pilot.pause()
        assert engine.auto_manage
        assert "ENABLED" in pilot.app.query_one(ResourcePanel).render_panel()

        await pilot.press("t")
        await pilot.press("d")
        await pilot.pause()
        assert not engine.auto_manage
        assert len(engine.priorities) == 0


@pytest.mark.asyncio
async def test_process_action_bindings(engine, actions):
    """Test kill and stop/continue act on the selected process."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        pilot.app.action_toggle_run()
        assert actions.stopped == [1]
        pilot.app.action_renice(1)
        assert actions.reniced == [(1, 1)]
        pilot.app.action_terminate()
        assert actions.terminated == [1]


@pytest.mark.asyncio
async def test_header_stats_render(engine):
    """Test the header shows memory usage from the engine."""
    app = UxmonApp(engine=engine)
    async with app.run_test() as pilot:
        await pilot.pause()
        header = pilot.app.query_one(HeaderStats)
        assert "75%" in header._get_mem_info()
        assert "CPU0" in header._get_cpu_info()


@pytest.mark.asyncio
async def test_notifications_show_markup_like_commands(host, actions, monkeypatch):
    """Test command names containing markup brackets are shown literally."""
    host.write_stat("cpu  100 0 100 800 0 0 0 0", "cpu0 100 0 100 800 0 0 0 0")
    host.write_meminfo(16_000_000, 1_000_000, 4_000_000)
    host.add_process(1, "evil[/x]")
    engine = MonitorEngine(MonitorConfig(), counters=host.counters(), actions=actions)
    app = UxmonApp(engine=engine)
    messages = []
    monkeypatch.setattr(app, "notify", lambda message, **kwargs: messages.append(message))
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("a")
        await pilot.press("d")
        pilot.app.action_terminate()
        await pilot.pause()
        assert len(engine.priorities) == 0
        assert actions.terminated == [1]
        assert "Priority: evil\\[/x]" in messages
        assert "Removed priority: evil\\[/x]" in messages
        assert "Killed evil\\[/x] (1)" in messages
