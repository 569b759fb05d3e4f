"""
Board storage backend (SQLite).

KanbanStore holds the blocking CRUD operations; SqliteGateway exposes
them through the async BoardGateway interface by running each call in a
worker thread.
"""
import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .demo import DEFAULT_COLUMNS, demo_board
from .errors import ColumnNotFound, GatewayError, TaskNotFound, ValidationError
from .gateway import BoardGateway, TaskRecord
from .positions import DEFAULT_SPACING, RepositionEntry, allocate_positions
from .schema import Board, Column, Priority, Task, utc_now

logger = logging.getLogger(__name__)

# Columns update_task() may write
UPDATABLE_FIELDS = ("title", "description", "priority", "assignee", "column_id", "position")


@contextmanager
def _connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a connection with FK enforcement and WAL mode; commit or roll back on exit."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    try:
        with conn:
            yield conn
    finally:
        conn.close()


class KanbanStore:
    """SQLite-backed store for boards, columns and tasks."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        default_columns: Optional[Sequence[Tuple[str, str]]] = None,
        seed_demo: bool = False,
        spacing: int = DEFAULT_SPACING,
    ):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "boardsync" / "boards.db")
        self.db_path = db_path
        self.default_columns = list(default_columns or DEFAULT_COLUMNS)
        self.seed_demo = seed_demo
        self.spacing = spacing
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS board_columns (
                    board_id TEXT NOT NULL,
                    column_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    ordinal INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (board_id, column_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    board_id TEXT NOT NULL,
                    column_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    assignee TEXT,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (board_id, column_id)
                        REFERENCES board_columns(board_id, column_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_order ON tasks(board_id, column_id, position)"
            )

    # ── Columns ──

    def list_columns(self, board_id: str) -> List[Column]:
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT column_id, title FROM board_columns WHERE board_id = ? ORDER BY ordinal ASC",
                (board_id,),
            ).fetchall()
        return [Column(id=r["column_id"], title=r["title"]) for r in rows]

    def _seed(self, conn: sqlite3.Connection, board_id: str, demo: bool) -> None:
        if demo:
            board = demo_board()
        else:
            board = Board.empty(Column(id=cid, title=title) for cid, title in self.default_columns)
        for ordinal, column in enumerate(board.columns):
            conn.execute(
                "INSERT INTO board_columns (board_id, column_id, title, ordinal) VALUES (?, ?, ?, ?)",
                (board_id, column.id, column.title, ordinal),
            )
            positions = allocate_positions(board.task_ids(column.id), self.spacing)
            for task_id, position in positions.items():
                self._insert(conn, board_id, column.id, board.tasks[task_id], position)
        logger.info(f"Seeded board {board_id} ({'demo' if demo else 'default columns'})")

    # ── Tasks ──

    def _insert(self, conn: sqlite3.Connection, board_id: str, column_id: str, task: Task, position: int) -> None:
        conn.execute("""
            INSERT INTO tasks
            (task_id, board_id, column_id, title, description, priority,
             assignee, position, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            task.id,
            board_id,
            column_id,
            task.title,
            task.description,
            task.priority.value,
            task.assignee,
            position,
            task.created_at.isoformat(),
            task.updated_at.isoformat(),
        ))

    def load_board(self, board_id: str) -> Board:
        """Columns in ordinal order, tasks in position order."""
        columns = self.list_columns(board_id)
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE board_id = ? ORDER BY position ASC, created_at ASC",
                (board_id,),
            ).fetchall()
        sequences: Dict[str, List[str]] = {c.id: [] for c in columns}
        tasks: Dict[str, Task] = {}
        for row in rows:
            if row["column_id"] not in sequences:
                logger.warning(f"Task {row['task_id']} references unknown column {row['column_id']}")
                continue
            sequences[row["column_id"]].append(row["task_id"])
            tasks[row["task_id"]] = self._row_to_task(row)
        return Board(
            columns=tuple(columns),
            column_task_ids={k: tuple(v) for k, v in sequences.items()},
            tasks=tasks,
        )

    def fetch_or_seed(self, board_id: str) -> Board:
        """Load a board, creating its columns first if it has none."""
        if not self.list_columns(board_id):
            with _connect(self.db_path) as conn:
                self._seed(conn, board_id, demo=self.seed_demo)
        return self.load_board(board_id)

    def reset(self, board_id: str, demo: bool = True) -> Board:
        """Delete every task and column of a board, then reseed it."""
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM tasks WHERE board_id = ?", (board_id,))
            conn.execute("DELETE FROM board_columns WHERE board_id = ?", (board_id,))
            self._seed(conn, board_id, demo=demo)
        return self.load_board(board_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM tasks WHERE task_id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row else None

    def positions(self, board_id: str) -> Dict[str, Tuple[str, int]]:
        """task_id -> (column_id, position) for every task on the board."""
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT task_id, column_id, position FROM tasks WHERE board_id = ?",
                (board_id,),
            ).fetchall()
        return {r["task_id"]: (r["column_id"], r["position"]) for r in rows}

    def create_task(self, board_id: str, record: TaskRecord) -> Task:
        """Insert a new task. Raises ColumnNotFound or ValidationError."""
        if not record.title.strip():
            raise ValidationError("Task title must not be empty")
        if record.column_id not in {c.id for c in self.list_columns(board_id)}:
            raise ColumnNotFound(record.column_id)
        now = utc_now()
        task = Task(
            id=record.id,
            title=record.title,
            description=record.description,
            priority=record.priority,
            assignee=record.assignee,
            created_at=now,
            updated_at=now,
        )
        try:
            with _connect(self.db_path) as conn:
                self._insert(conn, board_id, record.column_id, task, record.position)
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Cannot create task {record.id}: {e}")
        return task

    def update_task(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        """Apply a field patch and refresh updated_at. Raises TaskNotFound."""
        unknown = set(patch) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        values = dict(patch)
        if "title" in values and not (values["title"] or "").strip():
            raise ValidationError("Task title must not be empty")
        if "priority" in values:
            values["priority"] = Priority.parse(values["priority"]).value

        current = self.get_task(task_id)
        if current is None:
            raise TaskNotFound(task_id)
        values["updated_at"] = max(utc_now(), current.updated_at).isoformat()

        assignments = ", ".join(f"{name} = ?" for name in values)
        try:
            with _connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE tasks SET {assignments} WHERE task_id = ?",
                    (*values.values(), task_id),
                )
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Cannot update task {task_id}: {e}")
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> None:
        """
        Delete a task and renumber the rest of its column. Raises TaskNotFound.

        Surviving tasks keep their order; their positions are rewritten to
        index * spacing so the next append cannot collide with them.
        """
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT board_id, column_id FROM tasks WHERE task_id = ?", (task_id,)
            ).fetchone()
            if row is None:
                raise TaskNotFound(task_id)
            conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))
            remaining = conn.execute(
                "SELECT task_id FROM tasks WHERE board_id = ? AND column_id = ? "
                "ORDER BY position ASC, created_at ASC",
                (row["board_id"], row["column_id"]),
            ).fetchall()
            positions = allocate_positions([r["task_id"] for r in remaining], self.spacing)
            for remaining_id, position in positions.items():
                conn.execute(
                    "UPDATE tasks SET position = ? WHERE task_id = ?",
                    (position, remaining_id),
                )

    def reposition(self, board_id: str, entries: Sequence[RepositionEntry]) -> None:
        """
        Apply all entries in one transaction.

        The first unknown task id raises TaskNotFound and rolls the whole
        batch back.
        """
        now = utc_now().isoformat()
        with _connect(self.db_path) as conn:
            for entry in entries:
                try:
                    cursor = conn.execute(
                        "UPDATE tasks SET column_id = ?, position = ?, updated_at = ? "
                        "WHERE task_id = ? AND board_id = ?",
                        (entry.column_id, entry.position, now, entry.id, board_id),
                    )
                except sqlite3.IntegrityError:
                    raise ColumnNotFound(entry.column_id)
                if cursor.rowcount == 0:
                    raise TaskNotFound(entry.id)

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        """Convert a database row to a Task."""
        data = dict(row)
        data["id"] = data.pop("task_id")
        return Task.from_dict(data)


class SqliteGateway(BoardGateway):
    """BoardGateway over a KanbanStore; blocking calls run in a thread."""

    def __init__(self, store: KanbanStore):
        self.store = store

    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise GatewayError(f"{fn.__name__} failed: {e}") from e

    async def fetch_or_seed(self, board_id: str) -> Board:
        return await self._call(self.store.fetch_or_seed, board_id)

    async def create_task(self, board_id: str, record: TaskRecord) -> Task:
        return await self._call(self.store.create_task, board_id, record)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        return await self._call(self.store.update_task, task_id, patch)

    async def delete_task(self, task_id: str) -> None:
        await self._call(self.store.delete_task, task_id)

    async def batch_reposition(self, entries: List[RepositionEntry], board_id: str) -> None:
        await self._call(self.store.reposition, board_id, entries)

    async def reset_board(self, board_id: str, demo: bool = True) -> Board:
        return await self._call(self.store.reset, board_id, demo)
