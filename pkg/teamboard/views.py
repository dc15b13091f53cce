"""
Client-side views: immutable snapshots plus pure derivations over them.

Both views hold one authoritative snapshot fetched from the server. Lane,
priority and keyword filtering never hit the network; every mutation is
followed by a full refetch instead of patching the snapshot in place.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from .client import TeamboardClient
from .errors import OwnershipError, ValidationError
from .schema import (
    DayLike,
    KanbanTask,
    Report,
    TaskPriority,
    TaskStatus,
    is_owner,
    normalize_day,
)

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class BoardSnapshot:
    """Every task on the board at one point in time."""
    tasks: Tuple[KanbanTask, ...] = ()
    fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class CalendarSnapshot:
    """Every report inside one displayed month."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    reports: Tuple[Report, ...] = ()
    fetched_at: Optional[datetime] = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pure derivations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def is_own(entity, principal_id) -> bool:
    return is_owner(entity.owner_id, principal_id)


def _matches_keyword(task: KanbanTask, keyword: str) -> bool:
    return keyword in task.title.lower() or keyword in (task.description or "").lower()


def lane_tasks(snapshot: BoardSnapshot, status, priority: str = ALL,
               keyword: str = "") -> List[KanbanTask]:
    """Cards of one lane, optionally narrowed by priority and keyword.

    Server order (manual order, then newest first) is preserved.
    """
    status = TaskStatus.parse(status) if isinstance(status, str) else status
    tasks = [t for t in snapshot.tasks if t.status == status]
    if priority and priority != ALL:
        wanted = TaskPriority.parse(priority) if isinstance(priority, str) else priority
        tasks = [t for t in tasks if t.priority == wanted]
    needle = (keyword or "").strip().lower()
    if needle:
        tasks = [t for t in tasks if _matches_keyword(t, needle)]
    return tasks


def board_lanes(snapshot: BoardSnapshot, priority: str = ALL,
                keyword: str = "") -> Dict[TaskStatus, List[KanbanTask]]:
    return {status: lane_tasks(snapshot, status, priority, keyword) for status in TaskStatus}


def move_targets(task: KanbanTask) -> List[TaskStatus]:
    """Every lane other than the task's current one."""
    return [s for s in TaskStatus if s != task.status]


def month_window(day: DayLike) -> Tuple[datetime, datetime]:
    """First and last calendar day of the month containing `day`."""
    d = normalize_day(day)
    last = calendar.monthrange(d.year, d.month)[1]
    return datetime(d.year, d.month, 1), datetime(d.year, d.month, last)


def index_by_date(reports) -> Dict[date, Report]:
    """Map each calendar day to its first report."""
    index: Dict[date, Report] = {}
    for report in reports:
        index.setdefault(report.date.date(), report)
    return index


def reports_for_date(snapshot: CalendarSnapshot, day: DayLike) -> List[Report]:
    wanted = normalize_day(day)
    return [r for r in snapshot.reports if r.date == wanted]


def report_for_date(snapshot: CalendarSnapshot, day: DayLike) -> Optional[Report]:
    matches = reports_for_date(snapshot, day)
    return matches[0] if matches else None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sessions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardSession:
    """Kanban board state for one principal."""

    def __init__(self, client: TeamboardClient, principal_id: str):
        self.client = client
        self.principal_id = str(principal_id)
        self.snapshot = BoardSnapshot()

    def load(self) -> BoardSnapshot:
        self.snapshot = BoardSnapshot(tuple(self.client.get_tasks()), datetime.now())
        logger.debug(f"Board refreshed: {len(self.snapshot.tasks)} tasks")
        return self.snapshot

    def lane(self, status, priority: str = ALL, keyword: str = "") -> List[KanbanTask]:
        return lane_tasks(self.snapshot, status, priority, keyword)

    def find(self, task_id: str) -> Optional[KanbanTask]:
        return next((t for t in self.snapshot.tasks if t.id == task_id), None)

    def _own_task(self, task_id: str, verb: str) -> KanbanTask:
        task = self.find(task_id) or self.client.get_task(task_id)
        if not is_own(task, self.principal_id):
            raise OwnershipError(f"You can only {verb} your own tasks")
        return task

    def add_task(self, data: dict) -> KanbanTask:
        if not (data.get("title") or "").strip():
            raise ValidationError("Please enter a task title")
        task = self.client.create_task(data)
        self.load()
        return task

    def edit_task(self, task_id: str, data: dict) -> KanbanTask:
        if "title" in data and not (data.get("title") or "").strip():
            raise ValidationError("Please enter a task title")
        self._own_task(task_id, "edit")
        task = self.client.update_task(task_id, data)
        self.load()
        return task

    def move_task(self, task_id: str, status) -> KanbanTask:
        target = TaskStatus.parse(status) if isinstance(status, str) else status
        self._own_task(task_id, "move")
        task = self.client.update_task(task_id, {"status": target.value})
        self.load()
        return task

    def delete_task(self, task_id: str) -> None:
        self._own_task(task_id, "delete")
        self.client.delete_task(task_id)
        self.load()


class CalendarSession:
    """Calendar state: the selected day and its month's reports."""

    def __init__(self, client: TeamboardClient, principal_id: str, selected: DayLike = None):
        self.client = client
        self.principal_id = str(principal_id)
        self.selected = normalize_day(selected or date.today())
        self.snapshot = CalendarSnapshot()

    def load(self) -> CalendarSnapshot:
        start, end = month_window(self.selected)
        reports = self.client.get_reports_by_date_range(start, end)
        self.snapshot = CalendarSnapshot(start, end, tuple(reports), datetime.now())
        logger.debug(f"Calendar refreshed: {len(reports)} reports for {start:%Y-%m}")
        return self.snapshot

    def select(self, day: DayLike) -> CalendarSnapshot:
        self.selected = normalize_day(day)
        return self.load()

    def current_report(self) -> Optional[Report]:
        return report_for_date(self.snapshot, self.selected)

    def days_with_reports(self) -> List[date]:
        return sorted(index_by_date(self.snapshot.reports))

    def _own_report(self, report_id: str, verb: str) -> Report:
        report = next((r for r in self.snapshot.reports if r.id == report_id), None)
        if report is None:
            report = self.client.get_report(report_id)
        if not is_own(report, self.principal_id):
            raise OwnershipError(f"You can only {verb} your own reports")
        return report

    def save_report(self, content: str, title: Optional[str] = None, report_id: str = None) -> Report:
        """Create a report on the selected day, or update an owned one."""
        if not (content or "").strip():
            raise ValidationError("Please enter report content")
        payload = {"content": content, "date": self.selected.date()}
        if title is not None:
            payload["title"] = title
        if report_id:
            self._own_report(report_id, "edit")
            report = self.client.update_report(report_id, payload)
        else:
            report = self.client.create_report(payload)
        self.load()
        return report

    def delete_report(self, report_id: str) -> None:
        self._own_report(report_id, "delete")
        self.client.delete_report(report_id)
        self.load()

    def search(self, keyword: str) -> List[Report]:
        """Global search, independent of the displayed month."""
        if not keyword or not keyword.strip():
            return []
        return self.client.search_reports(keyword)

    def open_search_result(self, report: Report) -> CalendarSnapshot:
        return self.select(report.date)
