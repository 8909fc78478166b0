"""Pure task domain logic - no I/O dependencies."""

import random
import string
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum

from .errors import ValidationError


class Quadrant(str, Enum):
    """
    Eisenhower quadrant a task is filed under.

    Q1: Urgent + Important (Do)
    Q2: Not Urgent + Important (Schedule)
    Q3: Urgent + Not Important (Delegate)
    Q4: Not Urgent + Not Important (Delete)
    """

    UNCATEGORIZED = "uncategorized"
    Q1 = "q1"
    Q2 = "q2"
    Q3 = "q3"
    Q4 = "q4"

    @property
    def label(self) -> str:
        """Human-readable quadrant label."""
        labels = {
            "uncategorized": "Uncategorized",
            "q1": "Do",
            "q2": "Schedule",
            "q3": "Delegate",
            "q4": "Delete",
        }
        return labels[self.value]


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Status(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


# Fields a partial update may touch. Everything else is fixed at creation.
MUTABLE_FIELDS = frozenset(
    {
        "title",
        "source",
        "external_ticket_id",
        "quadrant",
        "priority",
        "last_synced_at",
    }
)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id(now: datetime | None = None) -> str:
    """Opaque id: creation time in epoch millis plus a random base36 suffix."""
    now = now or utcnow()
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"task_{int(now.timestamp() * 1000)}_{suffix}"


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def coerce_enum(enum_cls, value, field_name: str):
    """Convert a raw value into a member of ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field_name} {value!r} (expected one of: {allowed})")


def clean_title(title) -> str:
    """Trim a title, rejecting empty ones."""
    cleaned = str(title or "").strip()
    if not cleaned:
        raise ValidationError("Task title must not be empty")
    return cleaned


@dataclass(frozen=True)
class QuadrantChange:
    """One entry of a task's quadrant history."""

    quadrant: Quadrant
    timestamp: datetime | None

    def to_dict(self) -> dict:
        return {"quadrant": self.quadrant.value, "timestamp": format_timestamp(self.timestamp)}

    @classmethod
    def from_dict(cls, data: dict) -> "QuadrantChange":
        if not isinstance(data, dict):
            raise ValidationError(f"Quadrant history entry must be an object, got {data!r}")
        return cls(
            quadrant=coerce_enum(Quadrant, data.get("quadrant", "uncategorized"), "quadrant"),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass(frozen=True)
class Task:
    """A unit of tracked work on the board."""

    id: str
    title: str
    origin: str = "manual"
    source: str = "manual"
    external_ticket_id: str = ""
    quadrant: Quadrant = Quadrant.UNCATEGORIZED
    priority: Priority = Priority.MEDIUM
    status: Status = Status.ACTIVE
    date_created: datetime | None = None
    date_updated: datetime | None = None
    date_completed: datetime | None = None
    date_archived: datetime | None = None
    sync_origin_timestamp: datetime | None = None
    last_synced_at: datetime | None = None
    quadrant_history: tuple[QuadrantChange, ...] = field(default_factory=tuple)

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == Status.COMPLETED

    @property
    def is_categorized(self) -> bool:
        return self.quadrant != Quadrant.UNCATEGORIZED

    def ticket_url(self, base_url: str) -> str:
        """Link to the external ticket, or empty when there is none."""
        if not self.external_ticket_id or not base_url:
            return ""
        return f"{base_url.rstrip('/')}/{self.external_ticket_id}"

    @classmethod
    def new(
        cls,
        title: str,
        now: datetime,
        origin: str = "manual",
        source: str | None = None,
        external_ticket_id: str = "",
        quadrant: Quadrant | str = Quadrant.UNCATEGORIZED,
        priority: Priority | str = Priority.MEDIUM,
        sync_origin_timestamp: datetime | None = None,
    ) -> "Task":
        """
        Build a fresh active task with creation stamps and defaults.

        Naive datetimes are taken as UTC. A missing ``sync_origin_timestamp``
        stays None: the origin time is unknown.
        """
        now = parse_timestamp(now)
        sync_origin_timestamp = parse_timestamp(sync_origin_timestamp)
        quadrant = coerce_enum(Quadrant, quadrant, "quadrant")
        origin = (origin or "manual").strip() or "manual"
        return cls(
            id=new_task_id(now),
            title=clean_title(title),
            origin=origin,
            source=(source or origin).strip() or origin,
            external_ticket_id=(external_ticket_id or "").strip(),
            quadrant=quadrant,
            priority=coerce_enum(Priority, priority, "priority"),
            status=Status.ACTIVE,
            date_created=now,
            date_updated=now,
            sync_origin_timestamp=sync_origin_timestamp,
            last_synced_at=now,
            quadrant_history=(QuadrantChange(quadrant, now),),
        )

    def updated(self, now: datetime, changes: dict) -> "Task":
        """
        Return a copy with ``changes`` applied and ``date_updated`` restamped.

        Only keys in MUTABLE_FIELDS are applied; callers filter the rest.
        A quadrant change appends to the quadrant history.
        """
        values = {}
        for key, value in changes.items():
            if key not in MUTABLE_FIELDS:
                continue
            match key:
                case "title":
                    value = clean_title(value)
                case "quadrant":
                    value = coerce_enum(Quadrant, value, "quadrant")
                case "priority":
                    value = coerce_enum(Priority, value, "priority")
                case "last_synced_at":
                    value = parse_timestamp(value)
                case "source" | "external_ticket_id":
                    value = (value or "").strip()
            values[key] = value

        history = self.quadrant_history
        new_quadrant = values.get("quadrant", self.quadrant)
        if new_quadrant != self.quadrant:
            history = history + (QuadrantChange(new_quadrant, now),)

        return replace(self, **values, date_updated=now, quadrant_history=history)

    def to_dict(self) -> dict:
        """Serialize to the persisted camelCase record shape."""
        return {
            "id": self.id,
            "title": self.title,
            "origin": self.origin,
            "source": self.source,
            "externalTicketId": self.external_ticket_id,
            "quadrant": self.quadrant.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "dateCreated": format_timestamp(self.date_created),
            "dateUpdated": format_timestamp(self.date_updated),
            "dateCompleted": format_timestamp(self.date_completed),
            "dateArchived": format_timestamp(self.date_archived),
            "syncOriginTimestamp": format_timestamp(self.sync_origin_timestamp),
            "lastSyncedAt": format_timestamp(self.last_synced_at),
            "quadrantHistory": [change.to_dict() for change in self.quadrant_history],
        }

    @classmethod
    def _fields_from_dict(cls, data: dict) -> dict:
        if not isinstance(data, dict):
            raise ValidationError(f"Task record must be an object, got {data!r}")
        if not data.get("id"):
            raise ValidationError("Task record is missing an id")
        origin = data.get("origin") or data.get("source") or "manual"
        return {
            "id": str(data["id"]),
            "title": (data.get("title") or "").strip() or "Untitled Task",
            "origin": origin,
            "source": data.get("source") or origin,
            # Older records stored the ticket key as "jiraTicket"
            "external_ticket_id": data.get("externalTicketId", data.get("jiraTicket")) or "",
            "quadrant": coerce_enum(Quadrant, data.get("quadrant") or "uncategorized", "quadrant"),
            "priority": coerce_enum(Priority, data.get("priority") or "medium", "priority"),
            "status": coerce_enum(Status, data.get("status") or "active", "status"),
            "date_created": parse_timestamp(data.get("dateCreated")),
            "date_updated": parse_timestamp(data.get("dateUpdated")),
            "date_completed": parse_timestamp(data.get("dateCompleted")),
            "date_archived": parse_timestamp(data.get("dateArchived")),
            "sync_origin_timestamp": parse_timestamp(data.get("syncOriginTimestamp")),
            "last_synced_at": parse_timestamp(data.get("lastSyncedAt")),
            "quadrant_history": tuple(
                QuadrantChange.from_dict(entry) for entry in data.get("quadrantHistory") or []
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create Task from a persisted record, tolerating missing optional fields."""
        return cls(**cls._fields_from_dict(data))


@dataclass(frozen=True)
class ArchivedTask(Task):
    """A task moved out of the live set. Never re-activated."""

    archive_reason: str = "manual"
    original_quadrant: Quadrant = Quadrant.UNCATEGORIZED
    time_in_quadrant: timedelta = timedelta(0)

    @classmethod
    def from_task(cls, task: Task, now: datetime, reason: str = "manual") -> "ArchivedTask":
        """Freeze a live task into its archived form, stamping lifecycle metadata."""
        if task.date_updated is not None:
            time_in_quadrant = max(now - task.date_updated, timedelta(0))
        else:
            time_in_quadrant = timedelta(0)

        history = task.quadrant_history or (
            QuadrantChange(task.quadrant, task.date_updated or task.date_created),
        )

        base = {f.name: getattr(task, f.name) for f in fields(Task)}
        base.update(date_archived=now, quadrant_history=tuple(history))
        return cls(
            **base,
            archive_reason=reason or "manual",
            original_quadrant=task.quadrant,
            time_in_quadrant=time_in_quadrant,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["archiveReason"] = self.archive_reason
        data["originalQuadrant"] = self.original_quadrant.value
        data["timeInQuadrant"] = self.time_in_quadrant // timedelta(milliseconds=1)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ArchivedTask":
        values = cls._fields_from_dict(data)
        millis = data.get("timeInQuadrant") or 0
        try:
            millis = max(int(millis), 0)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid timeInQuadrant: {millis!r}") from e
        return cls(
            **values,
            archive_reason=data.get("archiveReason") or "manual",
            original_quadrant=coerce_enum(
                Quadrant, data.get("originalQuadrant") or values["quadrant"].value, "quadrant"
            ),
            time_in_quadrant=timedelta(milliseconds=millis),
        )
