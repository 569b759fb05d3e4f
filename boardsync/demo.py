"""Demo board used for first-run seeding and the reset command."""
from datetime import datetime
from typing import Callable, List, Tuple

from .schema import Board, Column, Priority, Task, utc_now

DEFAULT_COLUMNS: List[Tuple[str, str]] = [
    ("todo", "To Do"),
    ("doing", "In Progress"),
    ("done", "Done"),
]

# (column, id, title, description, priority, assignee)
DEMO_TASKS = [
    ("todo", "t1", "Project setup", "Scaffold the app and tooling", Priority.HIGH, "KB"),
    ("todo", "t2", "Design columns", "Decide stages", Priority.LOW, "HJ"),
    ("doing", "t3", "Drag & drop", "Reorder cards across columns", Priority.MEDIUM, "KB"),
    ("done", "t4", "Write README", "Usage, roadmap", Priority.LOW, "YY"),
]


def demo_board(clock: Callable[[], datetime] = utc_now) -> Board:
    board = Board.empty(Column(id=cid, title=title) for cid, title in DEFAULT_COLUMNS)
    for column_id, task_id, title, description, priority, assignee in DEMO_TASKS:
        now = clock()
        board = board.with_task_added(column_id, Task(
            id=task_id,
            title=title,
            description=description,
            priority=priority,
            assignee=assignee,
            created_at=now,
            updated_at=now,
        ))
    return board
