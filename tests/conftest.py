"""Shared fixtures: demo boards, a fixed clock and an in-memory gateway."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest

from boardsync.errors import GatewayError, TaskNotFound
from boardsync.gateway import BoardGateway, TaskRecord
from boardsync.positions import RepositionEntry
from boardsync.schema import Board, Column, Task


def make_board(layout: Mapping[str, List[str]], stamp: Optional[datetime] = None) -> Board:
    """Build a board from {column_id: [task ids]}; titles mirror ids."""
    stamp = stamp or datetime(2024, 1, 1, tzinfo=timezone.utc)
    board = Board.empty(Column(id=cid, title=cid.title()) for cid in layout)
    for column_id, task_ids in layout.items():
        for task_id in task_ids:
            board = board.with_task_added(
                column_id, Task(id=task_id, title=task_id.upper(), created_at=stamp, updated_at=stamp)
            )
    return board


class FakeGateway(BoardGateway):
    """
    In-memory BoardGateway.

    fail: method names that raise GatewayError.
    fail_after: for batch_reposition, number of entries applied before failing.
    hold: asyncio.Event awaited before every write (for overlap tests).
    """

    def __init__(self, board: Board):
        self.remote = board
        self.positions: Dict[str, int] = {}
        self.calls: List[tuple] = []
        self.fail: set = set()
        self.fail_after: Optional[int] = None
        self.hold: Optional[asyncio.Event] = None

    async def _enter(self, name: str, *args):
        self.calls.append((name, *args))
        if self.hold is not None and name != "fetch_or_seed":
            await self.hold.wait()
        if name in self.fail:
            raise GatewayError(f"{name} unavailable")

    async def fetch_or_seed(self, board_id: str) -> Board:
        await self._enter("fetch_or_seed", board_id)
        return self.remote

    async def create_task(self, board_id: str, record: TaskRecord) -> Task:
        await self._enter("create_task", board_id, record)
        task = Task(id=record.id, title=record.title, description=record.description,
                    priority=record.priority, assignee=record.assignee)
        self.remote = self.remote.with_task_added(record.column_id, task)
        self.positions[record.id] = record.position
        return task

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        await self._enter("update_task", task_id, dict(patch))
        self.remote = self.remote.with_task_edited(task_id, patch)
        return self.remote.tasks[task_id]

    async def delete_task(self, task_id: str) -> None:
        await self._enter("delete_task", task_id)
        self.remote = self.remote.with_task_removed(task_id)

    async def batch_reposition(self, entries: List[RepositionEntry], board_id: str) -> None:
        self.calls.append(("batch_reposition", list(entries), board_id))
        if self.hold is not None:
            await self.hold.wait()
        if "batch_reposition" in self.fail:
            raise GatewayError("batch_reposition unavailable")
        for index, entry in enumerate(entries):
            if self.fail_after is not None and index >= self.fail_after:
                raise GatewayError(f"batch failed at {entry.id}")
            if entry.id not in self.remote.tasks:
                raise TaskNotFound(entry.id)
            self.positions[entry.id] = entry.position

    async def reset_board(self, board_id: str, demo: bool = True) -> Board:
        await self._enter("reset_board", board_id, demo)
        return self.remote

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def demo_layout():
    return {"todo": ["t1", "t2"], "doing": ["t3"], "done": ["t4"]}


@pytest.fixture
def board(demo_layout):
    return make_board(demo_layout)


@pytest.fixture
def gateway(board):
    return FakeGateway(board)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "boards.db")
