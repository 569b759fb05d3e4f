"""
Remote sync gateway: the only seam between the controller and storage.

Any store that can keep tasks ordered by an integer key per column
satisfies this interface. Implementations:
  store.SqliteGateway  - local SQLite file
  client.HttpGateway   - the HTTP API in server.py
Every call may raise; the controller treats all failures alike.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .positions import RepositionEntry
from .schema import Board, Priority, Task


@dataclass(frozen=True)
class TaskRecord:
    """Payload of a create call: a task plus its placement."""
    id: str
    column_id: str
    title: str
    position: int
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    assignee: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task, column_id: str, position: int) -> "TaskRecord":
        return cls(
            id=task.id,
            column_id=column_id,
            title=task.title,
            position=position,
            description=task.description,
            priority=task.priority,
            assignee=task.assignee,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "column_id": self.column_id,
            "title": self.title,
            "position": self.position,
            "description": self.description,
            "priority": self.priority.value,
            "assignee": self.assignee,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskRecord":
        return cls(
            id=data["id"],
            column_id=data["column_id"],
            title=data["title"],
            position=int(data.get("position", 0)),
            description=data.get("description"),
            priority=Priority.parse(data.get("priority")),
            assignee=data.get("assignee"),
        )


class BoardGateway(ABC):
    """Async capability over a persistent, position-ordered task store."""

    @abstractmethod
    async def fetch_or_seed(self, board_id: str) -> Board:
        """Load the board ordered by position, seeding default columns if empty."""

    @abstractmethod
    async def create_task(self, board_id: str, record: TaskRecord) -> Task:
        """Insert a task at the given column and position."""

    @abstractmethod
    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        """Apply a field patch to an existing task."""

    @abstractmethod
    async def delete_task(self, task_id: str) -> None:
        """Delete a task."""

    @abstractmethod
    async def batch_reposition(self, entries: List[RepositionEntry], board_id: str) -> None:
        """Apply every (id, column_id, position) entry or raise on the first failure."""

    @abstractmethod
    async def reset_board(self, board_id: str, demo: bool = True) -> Board:
        """Drop the board's tasks and columns and reseed them."""
