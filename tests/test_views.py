"""
Tests for client-side views: pure derivations and refetch-after-mutation sessions.
"""
from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from pkg.teamboard.errors import OwnershipError, ValidationError
from pkg.teamboard.schema import KanbanTask, Report, TaskPriority, TaskStatus
from pkg.teamboard.views import (
    BoardSession,
    BoardSnapshot,
    CalendarSession,
    CalendarSnapshot,
    board_lanes,
    index_by_date,
    lane_tasks,
    month_window,
    move_targets,
    report_for_date,
    reports_for_date,
)


def _task(task_id, owner="alice", status=TaskStatus.BACKLOG, priority=TaskPriority.MEDIUM,
          title="task", description=""):
    return KanbanTask(id=task_id, owner_id=owner, title=title, description=description,
                      status=status, priority=priority)


def _report(report_id, day, owner="alice", content="did stuff"):
    return Report(id=report_id, owner_id=owner, date=datetime.strptime(day, "%Y-%m-%d"),
                  content=content)


@pytest.fixture
def snapshot():
    return BoardSnapshot((
        _task("t1", title="Deploy API", priority=TaskPriority.HIGH),
        _task("t2", title="Write docs", description="deploy guide"),
        _task("t3", title="Fix login", status=TaskStatus.TODO, priority=TaskPriority.HIGH),
        _task("t4", owner="bob", title="Review", status=TaskStatus.DONE),
    ))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board derivations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestLaneTasks:

    def test_lane_keeps_snapshot_order(self, snapshot):
        assert [t.id for t in lane_tasks(snapshot, TaskStatus.BACKLOG)] == ["t1", "t2"]
        assert [t.id for t in lane_tasks(snapshot, "todo")] == ["t3"]

    def test_priority_filter(self, snapshot):
        assert [t.id for t in lane_tasks(snapshot, "backlog", priority="high")] == ["t1"]
        assert [t.id for t in lane_tasks(snapshot, "backlog", priority="all")] == ["t1", "t2"]

    def test_keyword_matches_title_or_description(self, snapshot):
        assert [t.id for t in lane_tasks(snapshot, "backlog", keyword="DEPLOY")] == ["t1", "t2"]
        assert lane_tasks(snapshot, "backlog", keyword="login") == []

    def test_blank_keyword_is_no_filter(self, snapshot):
        assert len(lane_tasks(snapshot, "backlog", keyword="   ")) == 2

    def test_filters_combine(self, snapshot):
        assert [t.id for t in lane_tasks(snapshot, "backlog", "medium", "deploy")] == ["t2"]

    def test_board_lanes_cover_every_status(self, snapshot):
        lanes = board_lanes(snapshot)
        assert set(lanes) == set(TaskStatus)
        assert lanes[TaskStatus.IN_PROGRESS] == []
        assert sum(len(v) for v in lanes.values()) == 4


def test_move_targets_excludes_current_lane():
    targets = move_targets(_task("t1", status=TaskStatus.TODO))
    assert targets == [TaskStatus.BACKLOG, TaskStatus.IN_PROGRESS, TaskStatus.DONE]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Calendar derivations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCalendarDerivations:

    def test_month_window(self):
        assert month_window("2024-02-10") == (datetime(2024, 2, 1), datetime(2024, 2, 29))
        assert month_window(date(2023, 12, 31)) == (datetime(2023, 12, 1), datetime(2023, 12, 31))

    def test_index_takes_first_report_per_day(self):
        reports = [_report("r1", "2024-03-15"), _report("r2", "2024-03-15"),
                   _report("r3", "2024-03-16")]
        index = index_by_date(reports)
        assert index[date(2024, 3, 15)].id == "r1"
        assert index[date(2024, 3, 16)].id == "r3"

    def test_report_for_date(self):
        snap = CalendarSnapshot(reports=(_report("r1", "2024-03-15"), _report("r2", "2024-03-15")))
        assert report_for_date(snap, "2024-03-15").id == "r1"
        assert report_for_date(snap, date(2024, 3, 14)) is None
        assert [r.id for r in reports_for_date(snap, "2024-03-15")] == ["r1", "r2"]

    def test_report_for_date_is_first_of_the_day(self):
        snap = CalendarSnapshot(reports=(_report("r3", "2024-03-14"), _report("r2", "2024-03-15"),
                                         _report("r1", "2024-03-15")))
        assert report_for_date(snap, "2024-03-15") is reports_for_date(snap, "2024-03-15")[0]
        assert report_for_date(snap, "2024-03-15").id == "r2"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sessions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@pytest.fixture
def fake_client(snapshot):
    client = MagicMock()
    client.get_tasks.return_value = list(snapshot.tasks)
    client.update_task.side_effect = lambda task_id, data: _task(task_id, status=TaskStatus(data["status"]))
    return client


class TestBoardSession:

    def test_filtering_does_not_refetch(self, fake_client):
        session = BoardSession(fake_client, "alice")
        session.load()
        session.lane("backlog")
        session.lane("backlog", priority="high", keyword="deploy")
        assert fake_client.get_tasks.call_count == 1

    def test_snapshot_is_immutable(self, fake_client):
        session = BoardSession(fake_client, "alice")
        snap = session.load()
        with pytest.raises(AttributeError):
            snap.tasks = ()

    def test_move_refetches(self, fake_client):
        session = BoardSession(fake_client, "alice")
        session.load()
        moved = session.move_task("t1", "done")
        assert moved.status is TaskStatus.DONE
        fake_client.update_task.assert_called_once_with("t1", {"status": "done"})
        assert fake_client.get_tasks.call_count == 2

    def test_foreign_task_is_gated_before_request(self, fake_client):
        session = BoardSession(fake_client, "alice")
        session.load()
        with pytest.raises(OwnershipError, match="only move your own"):
            session.move_task("t4", "todo")
        with pytest.raises(OwnershipError, match="only delete your own"):
            session.delete_task("t4")
        fake_client.update_task.assert_not_called()
        fake_client.delete_task.assert_not_called()

    def test_unknown_task_is_fetched_for_ownership(self, fake_client):
        fake_client.get_task.return_value = _task("t9", owner="bob")
        session = BoardSession(fake_client, "alice")
        session.load()
        with pytest.raises(OwnershipError):
            session.edit_task("t9", {"title": "mine"})
        fake_client.get_task.assert_called_once_with("t9")

    def test_add_requires_title(self, fake_client):
        session = BoardSession(fake_client, "alice")
        with pytest.raises(ValidationError):
            session.add_task({"title": "  "})
        fake_client.create_task.assert_not_called()

    def test_add_refetches(self, fake_client):
        fake_client.create_task.return_value = _task("t5")
        session = BoardSession(fake_client, "alice")
        session.add_task({"title": "New"})
        assert fake_client.get_tasks.call_count == 1


class TestCalendarSession:

    @pytest.fixture
    def cal_client(self):
        client = MagicMock()
        client.get_reports_by_date_range.return_value = [
            _report("r1", "2024-03-15"),
            _report("r2", "2024-03-20", owner="bob"),
        ]
        client.create_report.return_value = _report("r3", "2024-03-21")
        return client

    def test_load_requests_month_window(self, cal_client):
        session = CalendarSession(cal_client, "alice", "2024-03-15")
        session.load()
        cal_client.get_reports_by_date_range.assert_called_once_with(
            datetime(2024, 3, 1), datetime(2024, 3, 31))
        assert session.current_report().id == "r1"
        assert session.days_with_reports() == [date(2024, 3, 15), date(2024, 3, 20)]

    def test_select_refetches(self, cal_client):
        session = CalendarSession(cal_client, "alice", "2024-03-15")
        session.load()
        session.select("2024-04-02")
        last_call = cal_client.get_reports_by_date_range.call_args
        assert last_call.args == (datetime(2024, 4, 1), datetime(2024, 4, 30))

    def test_save_creates_on_selected_day(self, cal_client):
        session = CalendarSession(cal_client, "alice", "2024-03-21")
        session.save_report("Shipped", title="Thursday")
        cal_client.create_report.assert_called_once_with(
            {"content": "Shipped", "date": date(2024, 3, 21), "title": "Thursday"})
        assert cal_client.get_reports_by_date_range.call_count == 1

    def test_save_requires_content(self, cal_client):
        session = CalendarSession(cal_client, "alice", "2024-03-21")
        with pytest.raises(ValidationError, match="report content"):
            session.save_report("   ")

    def test_cannot_edit_foreign_report(self, cal_client):
        session = CalendarSession(cal_client, "alice", "2024-03-20")
        session.load()
        with pytest.raises(OwnershipError, match="only edit your own reports"):
            session.save_report("mine now", report_id="r2")
        cal_client.update_report.assert_not_called()

    def test_search_is_global_and_skips_blank(self, cal_client):
        cal_client.search_reports.return_value = [_report("r9", "2023-01-05")]
        session = CalendarSession(cal_client, "alice", "2024-03-15")
        assert session.search("  ") == []
        cal_client.search_reports.assert_not_called()
        found = session.search("deploy")
        assert found[0].id == "r9"
        session.open_search_result(found[0])
        assert session.selected == datetime(2023, 1, 5)
