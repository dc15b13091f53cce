"""
Teamboard terminal front end.

    teamboard board [--priority high] [--keyword deploy]
    teamboard task add "Ship v1" --status todo --priority high
    teamboard task move <id> done
    teamboard calendar --day 2024-03-15
    teamboard report add "Fixed login bug" --title Monday --day 2024-03-15
    teamboard search login

Server URL and token come from --url/--token, $TEAMBOARD_URL/$TEAMBOARD_TOKEN
or config.yaml.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .client import TeamboardClient
from .config import Config
from .errors import TeamboardError
from .schema import KanbanTask, Report, TaskStatus
from .views import ALL, BoardSession, CalendarSession, is_own, move_targets

logger = logging.getLogger(__name__)


# ── Rendering ────────────────────────────────────────────────────────────────

def format_task(task: KanbanTask, principal_id: str) -> str:
    mine = "*" if is_own(task, principal_id) else " "
    owner = task.owner_name or task.owner_id
    line = f"{mine} [{task.priority.value:<6}] {task.title}  ({owner}, {task.id})"
    if task.deadline:
        line += f"  due {task.deadline:%Y-%m-%d}"
    return line


def format_report(report: Report) -> str:
    owner = report.owner_name or report.owner_id
    title = f"{report.title}: " if report.title else ""
    return f"{report.date:%Y-%m-%d}  {owner:<12} {title}{report.content}  ({report.id})"


def render_board(session: BoardSession, priority: str = ALL, keyword: str = "") -> str:
    out: List[str] = []
    for status in TaskStatus:
        tasks = session.lane(status, priority, keyword)
        out.append(f"── {status.value} ({len(tasks)}) ──")
        for task in tasks:
            out.append("  " + format_task(task, session.principal_id))
            if is_own(task, session.principal_id):
                targets = ", ".join(s.value for s in move_targets(task))
                out.append(f"      move to: {targets}")
    return "\n".join(out)


def render_calendar(session: CalendarSession) -> str:
    snap = session.snapshot
    out = [f"Reports {snap.start:%Y-%m-%d} → {snap.end:%Y-%m-%d}"]
    days = session.days_with_reports()
    out.append("days with reports: " + (", ".join(f"{d:%d}" for d in days) or "none"))
    current = session.current_report()
    out.append(f"── {session.selected:%Y-%m-%d} ──")
    out.append(format_report(current) if current else "(no report)")
    return "\n".join(out)


# ── Commands ─────────────────────────────────────────────────────────────────

def _task_fields(args) -> dict:
    data = {}
    for attr, key in (("title", "title"), ("description", "description"),
                      ("status", "status"), ("priority", "priority"),
                      ("start", "startDate"), ("deadline", "deadline")):
        value = getattr(args, attr, None)
        if value is not None:
            data[key] = value
    return data


def cmd_board(client, principal_id, args) -> str:
    session = BoardSession(client, principal_id)
    session.load()
    return render_board(session, args.priority, args.keyword)


def cmd_task(client, principal_id, args) -> str:
    session = BoardSession(client, principal_id)
    session.load()
    if args.action == "add":
        task = session.add_task(_task_fields(args))
        return f"created {task.id} in {task.status.value} (order {task.order})"
    if args.action == "edit":
        task = session.edit_task(args.id, _task_fields(args))
        return f"updated {task.id}"
    if args.action == "move":
        task = session.move_task(args.id, args.target)
        return f"moved {task.id} to {task.status.value}"
    session.delete_task(args.id)
    return f"deleted {args.id}"


def cmd_calendar(client, principal_id, args) -> str:
    session = CalendarSession(client, principal_id, args.day)
    session.load()
    return render_calendar(session)


def cmd_report(client, principal_id, args) -> str:
    session = CalendarSession(client, principal_id, args.day)
    session.load()
    if args.action == "add":
        report = session.save_report(args.content, args.title)
        return f"created {report.id} on {report.date:%Y-%m-%d}"
    if args.action == "edit":
        if args.day is None:
            session.select(client.get_report(args.id).date)
        report = session.save_report(args.content, args.title, report_id=args.id)
        return f"updated {report.id}"
    session.delete_report(args.id)
    return f"deleted {args.id}"


def cmd_search(client, principal_id, args) -> str:
    session = CalendarSession(client, principal_id)
    results = session.search(args.keyword)
    if not results:
        return "no matches"
    return "\n".join(format_report(r) for r in results)


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="teamboard", description="Teamboard reports & kanban")
    ap.add_argument("--config", default=None, help="Path to config.yaml")
    ap.add_argument("--url", default=None, help="Server URL (default from config)")
    ap.add_argument("--token", default=None, help="Bearer token (default from config)")
    sub = ap.add_subparsers(dest="command", required=True)

    board = sub.add_parser("board", help="Show the kanban board")
    board.add_argument("--priority", default=ALL, choices=[ALL, "low", "medium", "high"])
    board.add_argument("--keyword", default="")
    board.set_defaults(func=cmd_board)

    task = sub.add_parser("task", help="Add, edit, move or delete a task")
    task_sub = task.add_subparsers(dest="action", required=True)
    add = task_sub.add_parser("add")
    add.add_argument("title")
    edit = task_sub.add_parser("edit")
    edit.add_argument("id")
    edit.add_argument("--title")
    for p in (add, edit):
        p.add_argument("--description")
        p.add_argument("--status", choices=[s.value for s in TaskStatus])
        p.add_argument("--priority", choices=["low", "medium", "high"])
        p.add_argument("--start", help="Start date YYYY-MM-DD")
        p.add_argument("--deadline", help="Deadline YYYY-MM-DD")
    move = task_sub.add_parser("move")
    move.add_argument("id")
    move.add_argument("target", choices=[s.value for s in TaskStatus])
    delete = task_sub.add_parser("delete")
    delete.add_argument("id")
    task.set_defaults(func=cmd_task)

    cal = sub.add_parser("calendar", help="Show a month of reports")
    cal.add_argument("--day", default=None, help="Selected day YYYY-MM-DD (default today)")
    cal.set_defaults(func=cmd_calendar)

    report = sub.add_parser("report", help="Add, edit or delete a report")
    report_sub = report.add_subparsers(dest="action", required=True)
    r_add = report_sub.add_parser("add")
    r_add.add_argument("content")
    r_edit = report_sub.add_parser("edit")
    r_edit.add_argument("id")
    r_edit.add_argument("content")
    r_delete = report_sub.add_parser("delete")
    r_delete.add_argument("id")
    for p in (r_add, r_edit, r_delete):
        p.add_argument("--day", default=None, help="Report day YYYY-MM-DD (default today)")
    for p in (r_add, r_edit):
        p.add_argument("--title", default=None)
    report.set_defaults(func=cmd_report)

    search = sub.add_parser("search", help="Search every report")
    search.add_argument("keyword")
    search.set_defaults(func=cmd_search)
    return ap


def main(argv: Optional[List[str]] = None, client: Optional[TeamboardClient] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = Config.load(args.config)
    logging.basicConfig(
        level=getattr(logging, str(cfg.log_level).upper(), logging.INFO),
        format="%(asctime)s [teamboard] %(levelname)s: %(message)s",
    )
    if client is None:
        client = TeamboardClient(
            args.url or cfg.api_url,
            args.token or cfg.api_token,
            timeout=cfg.request_timeout,
        )
    try:
        principal = client.me()
        logger.debug(f"Running {args.command} as {principal.username}")
        print(args.func(client, principal.id, args))
    except TeamboardError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
