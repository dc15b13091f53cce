"""
Teamboard schema: users, daily reports and kanban tasks.

Reports and tasks share one ownership rule: readable by every authenticated
user, mutable only by the user who created them. Calendar days are kept as
timezone-naive local midnights so a day picked in one timezone reads back
as the same day everywhere. ISO datetimes are read for their written day
only: a UTC instant such as "2024-03-14T17:00:00Z" is the 14th, even for
a sender whose local day was already the 15th. Clients should send
plain YYYY-MM-DD days.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Dict, Any, Union

from .errors import ValidationError


class TaskStatus(Enum):
    """Kanban lanes. Any lane may be reached from any other."""
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def parse(cls, value: str) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Invalid status '{value}' (expected one of: {allowed})")


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: str) -> "TaskPriority":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValidationError(f"Invalid priority '{value}' (expected one of: {allowed})")


DayLike = Union[str, date, datetime]


def normalize_day(value: DayLike) -> datetime:
    """Reduce a date, datetime or ISO string to a naive local midnight.

    Strings keep the calendar day they were written with: the time part
    and any UTC offset are dropped, never applied, so a UTC instant lands
    on its UTC day.
    """
    if isinstance(value, date):  # datetime included
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        try:
            day = datetime.strptime(text[:10], "%Y-%m-%d")
        except ValueError:
            raise ValidationError(f"Invalid date '{value}' (expected YYYY-MM-DD)")
        return day
    raise ValidationError(f"Invalid date {value!r}")


def is_owner(owner_id: Any, principal_id: Any) -> bool:
    """Ownership predicate: ids compared as opaque strings."""
    if owner_id is None or principal_id is None:
        return False
    return str(owner_id) == str(principal_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return _utcnow()


def _split_owner(data: Dict[str, Any]):
    """Accept owner as a bare id or as a populated {id, username} mapping."""
    owner = data.get("owner")
    if isinstance(owner, dict):
        return str(owner.get("id", "")), owner.get("username")
    return (str(owner) if owner is not None else ""), None


@dataclass
class User:
    """An authenticated principal."""
    id: str
    username: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username}


@dataclass
class Report:
    """One dated text entry on the calendar."""

    id: str
    owner_id: str
    date: datetime                  # naive local midnight
    content: str
    title: str = ""

    # Populated on read paths that join the users table
    owner_name: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def owner_ref(self) -> Union[str, Dict[str, str]]:
        if self.owner_name is None:
            return self.owner_id
        return {"id": self.owner_id, "username": self.owner_name}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner_ref(),
            "date": self.date.isoformat(),
            "title": self.title,
            "content": self.content,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """Deserialize from the API's JSON shape."""
        owner_id, owner_name = _split_owner(data)
        return cls(
            id=str(data.get("id", "")),
            owner_id=owner_id,
            owner_name=owner_name,
            date=normalize_day(data["date"]),
            title=data.get("title") or "",
            content=data.get("content", ""),
            created_at=_parse_ts(data.get("createdAt")),
            updated_at=_parse_ts(data.get("updatedAt")),
        )


@dataclass
class KanbanTask:
    """A card on the shared board."""

    id: str
    owner_id: str
    title: str
    description: str = ""

    status: TaskStatus = TaskStatus.BACKLOG
    priority: TaskPriority = TaskPriority.MEDIUM
    order: int = 0                  # position within the owner's lane

    start_date: Optional[datetime] = None
    deadline: Optional[datetime] = None

    owner_name: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def owner_ref(self) -> Union[str, Dict[str, str]]:
        if self.owner_name is None:
            return self.owner_id
        return {"id": self.owner_id, "username": self.owner_name}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner_ref(),
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "order": self.order,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KanbanTask":
        """Deserialize from the API's JSON shape."""
        owner_id, owner_name = _split_owner(data)
        return cls(
            id=str(data.get("id", "")),
            owner_id=owner_id,
            owner_name=owner_name,
            title=data.get("title", ""),
            description=data.get("description") or "",
            status=TaskStatus.parse(data.get("status", "backlog")),
            priority=TaskPriority.parse(data.get("priority", "medium")),
            order=int(data.get("order", 0)),
            start_date=normalize_day(data["startDate"]) if data.get("startDate") else None,
            deadline=normalize_day(data["deadline"]) if data.get("deadline") else None,
            created_at=_parse_ts(data.get("createdAt")),
            updated_at=_parse_ts(data.get("updatedAt")),
        )
