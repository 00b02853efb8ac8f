"""Tests for the proctree-top application."""

import pytest

from proctree import dispatcher as dispatcher_module
from proctree.app import DescendantTable, ProctreeApp, SortKey, TreeHeader, describe_report
from proctree.config import Settings
from proctree.models import DispatchReport, SignalResult
from proctree.monitor import TreeSnapshot


@pytest.fixture
def settings(family_proc) -> Settings:
    return Settings(proc_root=str(family_proc.root), refresh_interval=5.0)


@pytest.fixture
def recorded(monkeypatch, sender):
    """Route the app's signals to the recording sender."""
    monkeypatch.setattr(dispatcher_module, "send_signal", sender)
    return sender


def test_describe_report():
    report = DispatchReport(operation="continue", root=10, skipped=[1, 2])
    report.results.append(SignalResult(11, 18, ok=True))

    assert describe_report(report) == "continue: 1 signalled, 0 failed, 2 skipped"


def test_describe_report_error():
    report = DispatchReport(operation="stop", root=10, error="Cannot access /proc")

    assert describe_report(report) == "stop: Cannot access /proc"


class TestSortKey:
    """Tests for SortKey enum."""

    def test_sort_key_members(self):
        assert [key.value for key in SortKey] == ["pid", "ppid", "state"]


@pytest.mark.asyncio
async def test_app_creation(settings):
    """Test ProctreeApp can be instantiated."""
    app = ProctreeApp(10, settings)

    assert app.title == "proctree"
    assert app._monitor.root == 10
    assert app._monitor.poll_rate == 5.0


@pytest.mark.asyncio
async def test_app_compose(settings):
    """Test ProctreeApp composes correctly."""
    app = ProctreeApp(10, settings)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#tree-header") is not None
        assert pilot.app.query_one("#descendant-table") is not None


@pytest.mark.asyncio
async def test_app_quit_binding(settings):
    """Test that 'q' binding triggers quit."""
    app = ProctreeApp(10, settings)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert not app._monitor.is_running


@pytest.mark.asyncio
async def test_refresh_fills_table(settings):
    app = ProctreeApp(10, settings)
    async with app.run_test() as pilot:
        await pilot.press("r")

        table = pilot.app.query_one(DescendantTable)
        assert table._current_pids == {11, 12, 100, 101, 110, 111, 1000}


@pytest.mark.asyncio
async def test_app_receives_updates_from_monitor(settings):
    app = ProctreeApp(11, settings)
    async with app.run_test() as pilot:
        await pilot.pause(1)

        assert app._monitor.is_running
        assert pilot.app.query_one(DescendantTable)._current_pids == {110, 111}


@pytest.mark.asyncio
async def test_table_removes_vanished_processes(settings, family_proc):
    app = ProctreeApp(11, settings)
    async with app.run_test() as pilot:
        await pilot.press("r")
        family_proc.remove(110)
        await pilot.press("r")

        assert pilot.app.query_one(DescendantTable)._current_pids == {111}


@pytest.mark.asyncio
async def test_sort_binding(settings):
    app = ProctreeApp(10, settings)
    async with app.run_test() as pilot:
        table = pilot.app.query_one(DescendantTable)
        assert table.sort_key == SortKey.PID

        await pilot.press("f6")
        assert table.sort_key == SortKey.PPID

        table.cycle_sort()
        table.cycle_sort()
        assert table.sort_key == SortKey.PID


@pytest.mark.asyncio
async def test_stop_binding(settings, recorded):
    app = ProctreeApp(11, settings)
    async with app.run_test() as pilot:
        await pilot.press("s")

        assert sorted(recorded.pids()) == [110, 111]


@pytest.mark.asyncio
async def test_continue_binding(settings, recorded):
    app = ProctreeApp(11, settings)
    async with app.run_test() as pilot:
        await pilot.press("c")

        assert recorded.pids() == [111]


@pytest.mark.asyncio
async def test_kill_binding(settings, recorded, family_proc):
    recorded.on_signal = lambda pid, sig: family_proc.remove(pid)
    app = ProctreeApp(11, settings)
    async with app.run_test() as pilot:
        await pilot.press("k")

        assert sorted(recorded.pids()) == [110, 111]
        assert pilot.app.query_one(DescendantTable)._current_pids == set()


@pytest.mark.asyncio
async def test_header_stats_update(settings, family_query):
    app = ProctreeApp(10, settings)
    async with app.run_test() as pilot:
        header = pilot.app.query_one("#tree-header", TreeHeader)

        header.update_stats(
            TreeSnapshot(
                root=10,
                root_record=family_query.record(10),
                descendants=family_query.descendant_records(10),
            )
        )

        assert header._descendants == 7
        assert header._zombies == 3
        assert header._stopped == 2
        assert "Zombies: 3" in header.summary_text()


@pytest.mark.asyncio
async def test_header_missing_root(settings):
    app = ProctreeApp(4242, settings)
    async with app.run_test() as pilot:
        await pilot.press("r")

        header = pilot.app.query_one("#tree-header", TreeHeader)
        assert "not running" in header.summary_text()
