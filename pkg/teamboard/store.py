"""
Teamboard storage backend (SQLite).

One table per document type. Reads are open to every authenticated user;
every write path goes through `_owned_row`, which applies the ownership
predicate and reports a foreign record exactly like a missing one.
"""
import hashlib
import logging
import secrets
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Dict, Any, Tuple

from .errors import NotFoundOrForbidden, StoreError, ValidationError
from .schema import (
    KanbanTask,
    Report,
    TaskPriority,
    TaskStatus,
    User,
    is_owner,
    normalize_day,
)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50

_REPORT_SELECT = """
    SELECT r.*, COALESCE(u.username, '') AS owner_name
    FROM reports r LEFT JOIN users u ON u.id = r.owner_id
"""

_TASK_SELECT = """
    SELECT t.*, COALESCE(u.username, '') AS owner_name
    FROM kanban_tasks t LEFT JOIN users u ON u.id = t.owner_id
"""


def _contains_ci(haystack: Optional[str], needle: Optional[str]) -> int:
    """Literal, Unicode-aware case-insensitive substring test."""
    if not haystack or needle is None:
        return 0
    return 1 if needle.casefold() in haystack.casefold() else 0


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.create_function("contains_ci", 2, _contains_ci, deterministic=True)
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _require_text(data: Dict[str, Any], key: str, message: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value


def _optional_day(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return normalize_day(value).isoformat()


def _coerce_order(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("order must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError("order must be an integer")


class _SQLiteStore:
    """Shared connection handling and schema bootstrap."""

    def __init__(self, db_path: str = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "teamboard" / "teamboard.db")
        self.db_path = db_path
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory for {db_path}: {e}")
            raise StoreError(str(e)) from e
        self._init_schema()

    @contextmanager
    def _session(self):
        """Yield a connection; commit on success, StoreError on DB failure."""
        try:
            conn = _connect(self.db_path)
        except sqlite3.Error as e:
            logger.error(f"Cannot open {self.db_path}: {e}")
            raise StoreError(str(e)) from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Store error on {self.db_path}: {e}")
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with self._session() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    token_hash TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reports (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    date TEXT NOT NULL,       -- naive local midnight, ISO
                    title TEXT DEFAULT '',
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kanban_tasks (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    status TEXT DEFAULT 'backlog',
                    priority TEXT DEFAULT 'medium',
                    sort_order INTEGER DEFAULT 0,
                    start_date TEXT,
                    deadline TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_reports_owner_date ON reports(owner_id, date)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_reports_date ON reports(date)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner_status ON kanban_tasks(owner_id, status)")

    def _owned_row(self, conn, table: str, record_id: str, owner_id: str, noun: str) -> sqlite3.Row:
        """Fetch a row the principal may mutate, or raise NotFoundOrForbidden."""
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        if row is None or not is_owner(row["owner_id"], owner_id):
            raise NotFoundOrForbidden(f"{noun} not found or you do not have permission")
        return row


class UserStore(_SQLiteStore):
    """Registry of principals and their bearer tokens."""

    def create(self, username: str) -> Tuple[User, str]:
        """Register a user. Returns the user and its plaintext token (shown once)."""
        if not isinstance(username, str) or not username.strip():
            raise ValidationError("username is required")
        user = User(id=_new_id(), username=username.strip())
        token = secrets.token_urlsafe(32)
        try:
            with self._session() as conn:
                conn.execute(
                    "INSERT INTO users (id, username, token_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user.id, user.username, _hash_token(token), user.created_at.isoformat()),
                )
        except StoreError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise ValidationError(f"Username '{user.username}' is already taken")
            raise
        logger.info(f"Created user {user.username} ({user.id})")
        return user, token

    def resolve_token(self, token: str) -> Optional[User]:
        """Map a bearer token to its user, or None."""
        if not token:
            return None
        digest = _hash_token(token)
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE token_hash = ?", (digest,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class ReportStore(_SQLiteStore):
    """Dated text reports."""

    def __init__(self, db_path: str = None, search_limit: int = DEFAULT_SEARCH_LIMIT):
        self.search_limit = search_limit
        super().__init__(db_path)

    def list_own(self, owner_id: str) -> List[Report]:
        """All reports of one owner, newest day first."""
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM reports WHERE owner_id = ? ORDER BY date DESC, created_at DESC",
                (str(owner_id),),
            ).fetchall()
        return [self._row_to_report(row) for row in rows]

    def list_by_date_range(self, start=None, end=None) -> List[Report]:
        """Reports of every owner with date in [start, end]; all reports if a bound is missing."""
        query = _REPORT_SELECT
        params: tuple = ()
        if start and end:
            query += " WHERE r.date >= ? AND r.date <= ?"
            params = (normalize_day(start).isoformat(), normalize_day(end).isoformat())
        query += " ORDER BY r.date ASC, r.created_at ASC"
        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_report(row) for row in rows]

    def search(self, keyword: Optional[str]) -> List[Report]:
        """Case-insensitive substring search over title and content."""
        if not keyword or not keyword.strip():
            return []
        with self._session() as conn:
            rows = conn.execute(
                _REPORT_SELECT
                + " WHERE contains_ci(r.title, ?) OR contains_ci(r.content, ?)"
                + " ORDER BY r.date DESC, r.created_at DESC LIMIT ?",
                (keyword, keyword, self.search_limit),
            ).fetchall()
        return [self._row_to_report(row) for row in rows]

    def get(self, report_id: str) -> Report:
        with self._session() as conn:
            row = conn.execute(_REPORT_SELECT + " WHERE r.id = ?", (report_id,)).fetchone()
        if row is None:
            raise NotFoundOrForbidden("Report not found")
        return self._row_to_report(row)

    def create(self, owner_id: str, data: Dict[str, Any]) -> Report:
        if not data.get("date") or not isinstance(data.get("content"), str) or not data["content"].strip():
            raise ValidationError("Please provide date and content")
        now = datetime.now(timezone.utc)
        report = Report(
            id=_new_id(),
            owner_id=str(owner_id),
            date=normalize_day(data["date"]),
            title=data.get("title") or "",
            content=data["content"],
            created_at=now,
            updated_at=now,
        )
        with self._session() as conn:
            conn.execute("""
                INSERT INTO reports (id, owner_id, date, title, content, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                report.id,
                report.owner_id,
                report.date.isoformat(),
                report.title,
                report.content,
                report.created_at.isoformat(),
                report.updated_at.isoformat(),
            ))
        logger.debug(f"Report {report.id} created by {report.owner_id}")
        return report

    def update(self, report_id: str, owner_id: str, patch: Dict[str, Any]) -> Report:
        """Patch date, title and/or content of an owned report."""
        with self._session() as conn:
            row = self._owned_row(conn, "reports", report_id, owner_id, "Report")
            fields = dict(row)
            if patch.get("date"):
                fields["date"] = normalize_day(patch["date"]).isoformat()
            if patch.get("title") is not None:
                fields["title"] = str(patch["title"])
            if "content" in patch:
                fields["content"] = _require_text(patch, "content", "content cannot be empty")
            fields["updated_at"] = _now()
            conn.execute(
                "UPDATE reports SET date = ?, title = ?, content = ?, updated_at = ? WHERE id = ?",
                (fields["date"], fields["title"], fields["content"], fields["updated_at"], report_id),
            )
        return self._row_to_report(fields)

    def delete(self, report_id: str, owner_id: str) -> None:
        with self._session() as conn:
            self._owned_row(conn, "reports", report_id, owner_id, "Report")
            conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
        logger.debug(f"Report {report_id} deleted by {owner_id}")

    def _row_to_report(self, row) -> Report:
        data = dict(row)
        return Report(
            id=data["id"],
            owner_id=data["owner_id"],
            owner_name=data.get("owner_name"),
            date=datetime.fromisoformat(data["date"]),
            title=data.get("title") or "",
            content=data["content"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


class TaskStore(_SQLiteStore):
    """Kanban tasks on the shared board."""

    def list_all(self) -> List[KanbanTask]:
        """Every task of every owner: manual order first, then most recent."""
        with self._session() as conn:
            rows = conn.execute(
                _TASK_SELECT + " ORDER BY t.sort_order ASC, t.created_at DESC"
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get(self, task_id: str) -> KanbanTask:
        with self._session() as conn:
            row = conn.execute(_TASK_SELECT + " WHERE t.id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundOrForbidden("Task not found")
        return self._row_to_task(row)

    def next_order(self, owner_id: str, status: TaskStatus) -> int:
        """Order for a new card at the end of the owner's lane.

        Not atomic with the insert: two concurrent creates may both get
        the same value.
        """
        with self._session() as conn:
            return self._next_order(conn, str(owner_id), status)

    def _next_order(self, conn, owner_id: str, status: TaskStatus) -> int:
        row = conn.execute(
            "SELECT MAX(sort_order) FROM kanban_tasks WHERE owner_id = ? AND status = ?",
            (owner_id, status.value),
        ).fetchone()
        return 0 if row[0] is None else row[0] + 1

    def create(self, owner_id: str, data: Dict[str, Any]) -> KanbanTask:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Please provide a title")
        status = TaskStatus.parse(data.get("status") or TaskStatus.BACKLOG.value)
        priority = TaskPriority.parse(data.get("priority") or TaskPriority.MEDIUM.value)
        start_date = _optional_day(data.get("startDate"))
        deadline = _optional_day(data.get("deadline"))
        now = datetime.now(timezone.utc)

        with self._session() as conn:
            task = KanbanTask(
                id=_new_id(),
                owner_id=str(owner_id),
                title=title,
                description=data.get("description") or "",
                status=status,
                priority=priority,
                order=self._next_order(conn, str(owner_id), status),
                start_date=datetime.fromisoformat(start_date) if start_date else None,
                deadline=datetime.fromisoformat(deadline) if deadline else None,
                created_at=now,
                updated_at=now,
            )
            conn.execute("""
                INSERT INTO kanban_tasks
                (id, owner_id, title, description, status, priority, sort_order,
                 start_date, deadline, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                task.id,
                task.owner_id,
                task.title,
                task.description,
                task.status.value,
                task.priority.value,
                task.order,
                start_date,
                deadline,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ))
        logger.debug(f"Task {task.id} created by {task.owner_id} in {status.value}")
        return task

    def update(self, task_id: str, owner_id: str, patch: Dict[str, Any]) -> KanbanTask:
        """Patch any subset of the mutable task fields."""
        with self._session() as conn:
            row = self._owned_row(conn, "kanban_tasks", task_id, owner_id, "Task")
            fields = dict(row)
            if "title" in patch:
                fields["title"] = _require_text(patch, "title", "title cannot be empty")
            if patch.get("description") is not None:
                fields["description"] = str(patch["description"])
            if patch.get("status") is not None:
                fields["status"] = TaskStatus.parse(patch["status"]).value
            if patch.get("priority") is not None:
                fields["priority"] = TaskPriority.parse(patch["priority"]).value
            if patch.get("order") is not None:
                fields["sort_order"] = _coerce_order(patch["order"])
            if "startDate" in patch:
                fields["start_date"] = _optional_day(patch["startDate"])
            if "deadline" in patch:
                fields["deadline"] = _optional_day(patch["deadline"])
            fields["updated_at"] = _now()
            conn.execute("""
                UPDATE kanban_tasks
                SET title = ?, description = ?, status = ?, priority = ?, sort_order = ?,
                    start_date = ?, deadline = ?, updated_at = ?
                WHERE id = ?
            """, (
                fields["title"],
                fields["description"],
                fields["status"],
                fields["priority"],
                fields["sort_order"],
                fields["start_date"],
                fields["deadline"],
                fields["updated_at"],
                task_id,
            ))
        return self._row_to_task(fields)

    def delete(self, task_id: str, owner_id: str) -> None:
        with self._session() as conn:
            self._owned_row(conn, "kanban_tasks", task_id, owner_id, "Task")
            conn.execute("DELETE FROM kanban_tasks WHERE id = ?", (task_id,))
        logger.debug(f"Task {task_id} deleted by {owner_id}")

    def _row_to_task(self, row) -> KanbanTask:
        """Convert a database row to a KanbanTask object."""
        data = dict(row)
        return KanbanTask(
            id=data["id"],
            owner_id=data["owner_id"],
            owner_name=data.get("owner_name"),
            title=data["title"],
            description=data.get("description") or "",
            status=TaskStatus(data["status"]),
            priority=TaskPriority(data["priority"]),
            order=data["sort_order"],
            start_date=datetime.fromisoformat(data["start_date"]) if data.get("start_date") else None,
            deadline=datetime.fromisoformat(data["deadline"]) if data.get("deadline") else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
