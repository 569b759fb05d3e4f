"""
Board data model: tasks, columns and the board aggregate.

A Board is an immutable snapshot. Every transform returns a new Board and
leaves its argument untouched, so the controller can keep the previous
snapshot around for comparison or rollback without copying it.

Board layout:
  columns          - ordered Column tuple (display order)
  column_task_ids  - column id -> ordered tuple of task ids (persisted order)
  tasks            - task id -> Task
"""
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ColumnNotFound, InvariantViolation, TaskNotFound, ValidationError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def make_task_id() -> str:
    """Generate a sortable unique task ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"task-{ts}-{rand}"


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return utc_now()


class Priority(Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        """Lenient lookup used when reading stored rows."""
        try:
            return cls[(value or "").upper()]
        except KeyError:
            return cls.MEDIUM

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Strict lookup used for user input."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.MEDIUM
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(
                f"Invalid priority: '{value}'. "
                f"Allowed: {', '.join(p.value for p in cls)}"
            )


# Fields a patch may touch; everything else on Task is managed by the board.
EDITABLE_FIELDS = ("title", "description", "priority", "assignee")


@dataclass(frozen=True)
class Task:
    """A single work item."""

    id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    assignee: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "assignee": self.assignee,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description") or None,
            priority=Priority.from_str(data.get("priority")),
            assignee=data.get("assignee") or None,
            created_at=_parse_dt(data.get("created_at")),
            updated_at=_parse_dt(data.get("updated_at")),
        )


@dataclass(frozen=True)
class TaskDraft:
    """Form payload submitted by the UI for add and edit commands."""

    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    assignee: Optional[str] = None

    def validated(self) -> "TaskDraft":
        """
        Return a normalized copy: title stripped, blanks turned into None.

        Raises ValidationError if the title is empty or the priority unknown.
        """
        title = (self.title or "").strip()
        if not title:
            raise ValidationError("Task title must not be empty")
        return TaskDraft(
            title=title,
            description=(self.description or "").strip() or None,
            priority=Priority.parse(self.priority),
            assignee=(self.assignee or "").strip() or None,
        )

    def to_patch(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "assignee": self.assignee,
        }


@dataclass(frozen=True)
class Column:
    """A board column. Its ordinal is its index in Board.columns."""

    id: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title}


@dataclass(frozen=True)
class Board:
    """Immutable snapshot of columns, per-column order and task records."""

    columns: Tuple[Column, ...] = ()
    column_task_ids: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    tasks: Dict[str, Task] = field(default_factory=dict)

    # ── Read access ──

    def column_ids(self) -> List[str]:
        return [c.id for c in self.columns]

    def has_column(self, column_id: str) -> bool:
        return column_id in self.column_task_ids

    def has_task(self, task_id: str) -> bool:
        return task_id in self.tasks

    def task_ids(self, column_id: str) -> Tuple[str, ...]:
        """Ordered task ids of a column. Raises ColumnNotFound."""
        try:
            return self.column_task_ids[column_id]
        except KeyError:
            raise ColumnNotFound(column_id)

    def column_of(self, task_id: str) -> Optional[str]:
        """Return the id of the column holding task_id, or None."""
        for column in self.columns:
            if task_id in self.column_task_ids.get(column.id, ()):
                return column.id
        return None

    def get_task(self, task_id: str) -> Task:
        try:
            return self.tasks[task_id]
        except KeyError:
            raise TaskNotFound(task_id)

    # ── Transforms ──

    def with_task_added(self, column_id: str, task: Task) -> "Board":
        """Append task to the end of column_id."""
        if not self.has_column(column_id):
            raise ColumnNotFound(column_id)
        if task.id in self.tasks:
            raise InvariantViolation(f"Duplicate task id: {task.id}")
        sequences = dict(self.column_task_ids)
        sequences[column_id] = sequences[column_id] + (task.id,)
        tasks = dict(self.tasks)
        tasks[task.id] = task
        return replace(self, column_task_ids=sequences, tasks=tasks)

    def with_task_edited(
        self,
        task_id: str,
        patch: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> "Board":
        """
        Merge patch into a task and refresh updated_at.

        updated_at never moves backwards, even if the clock does.
        """
        current = self.get_task(task_id)
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown task fields: {', '.join(sorted(unknown))}"
            )
        changes = dict(patch)
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Task title must not be empty")
        if "priority" in changes:
            changes["priority"] = Priority.parse(changes["priority"])
        now = now or utc_now()
        changes["updated_at"] = max(now, current.updated_at)
        tasks = dict(self.tasks)
        tasks[task_id] = replace(current, **changes)
        return replace(self, tasks=tasks)

    def with_task_removed(self, task_id: str) -> "Board":
        """Remove a task from its column and from the task mapping."""
        column_id = self.column_of(task_id)
        if column_id is None or task_id not in self.tasks:
            raise TaskNotFound(task_id)
        sequences = dict(self.column_task_ids)
        sequences[column_id] = tuple(t for t in sequences[column_id] if t != task_id)
        tasks = {k: v for k, v in self.tasks.items() if k != task_id}
        return replace(self, column_task_ids=sequences, tasks=tasks)

    def with_column_sequence(self, column_id: str, task_ids: Iterable[str]) -> "Board":
        """Replace the ordered ids of one column."""
        if not self.has_column(column_id):
            raise ColumnNotFound(column_id)
        sequences = dict(self.column_task_ids)
        sequences[column_id] = tuple(task_ids)
        return replace(self, column_task_ids=sequences)

    # ── Invariants ──

    def check_invariants(self) -> "Board":
        """
        Raise InvariantViolation unless every task appears exactly once
        across all columns and every placed id has a task record.
        """
        declared = [c.id for c in self.columns]
        if len(set(declared)) != len(declared):
            raise InvariantViolation(f"Duplicate column ids: {declared}")
        if set(declared) != set(self.column_task_ids):
            raise InvariantViolation(
                f"Columns {sorted(declared)} do not match sequences "
                f"{sorted(self.column_task_ids)}"
            )
        seen: Dict[str, str] = {}
        for column_id in declared:
            for task_id in self.column_task_ids[column_id]:
                if task_id in seen:
                    raise InvariantViolation(
                        f"Task {task_id} appears in {seen[task_id]} and {column_id}"
                    )
                if task_id not in self.tasks:
                    raise InvariantViolation(f"Orphaned task id {task_id} in {column_id}")
                seen[task_id] = column_id
        orphans = set(self.tasks) - set(seen)
        if orphans:
            raise InvariantViolation(f"Tasks not placed in any column: {sorted(orphans)}")
        return self

    # ── Serialization ──

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "column_task_ids": {k: list(v) for k, v in self.column_task_ids.items()},
            "tasks": {k: t.to_dict() for k, t in self.tasks.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Board":
        columns = tuple(Column(id=c["id"], title=c.get("title", c["id"])) for c in data.get("columns", []))
        raw_ids = data.get("column_task_ids", {})
        sequences = {c.id: tuple(raw_ids.get(c.id, ())) for c in columns}
        tasks = {k: Task.from_dict(v) for k, v in data.get("tasks", {}).items()}
        return cls(columns=columns, column_task_ids=sequences, tasks=tasks)

    @classmethod
    def empty(cls, columns: Iterable[Column]) -> "Board":
        columns = tuple(columns)
        return cls(columns=columns, column_task_ids={c.id: () for c in columns}, tasks={})
