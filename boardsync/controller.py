"""
Reconciliation controller: optimistic board updates with rollback.

Every command follows the same cycle:

  IDLE → OPTIMISTIC_APPLIED → SETTLED → IDLE
                            ↘ ROLLING_BACK → IDLE

The next board is computed locally and published before the gateway is
awaited. If the gateway call fails, the optimistic board is dropped and
the authoritative board is refetched and published instead.

There is no command queue. A command that arrives while another is
awaiting the gateway is applied on top of the latest published board.
Every publish is a full snapshot, so whichever settle or rollback lands
last is what the UI shows.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from .errors import ColumnNotFound, ReconciliationError, TaskNotFound
from .gateway import BoardGateway, TaskRecord
from .moves import move_task as resolve_move, resolve_drop
from .positions import DEFAULT_SPACING, allocate_positions, reposition_entries
from .schema import Board, Priority, Task, TaskDraft, make_task_id, utc_now

if TYPE_CHECKING:
    from .snapshot import SnapshotCache

logger = logging.getLogger(__name__)

BoardListener = Callable[[Board], None]


class SyncState(Enum):
    """
    Reconciliation state of the controller.

    IDLE only when no command is awaiting the gateway; with overlapping
    commands the state stays OPTIMISTIC_APPLIED until the last one lands.
    """
    IDLE = "idle"
    OPTIMISTIC_APPLIED = "optimistic_applied"
    SETTLED = "settled"
    ROLLING_BACK = "rolling_back"


class Outcome(Enum):
    """What happened to a command."""
    IGNORED = "ignored"          # no board loaded, unknown id, or no-op move
    SETTLED = "settled"          # remote write succeeded
    ROLLED_BACK = "rolled_back"  # remote write failed, board refetched


def _wire_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Priority) else v) for k, v in patch.items()}


class BoardController:
    """Owns the published Board and reconciles it with a BoardGateway."""

    def __init__(
        self,
        gateway: BoardGateway,
        board_id: str,
        spacing: int = DEFAULT_SPACING,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = make_task_id,
    ):
        self.gateway = gateway
        self.board_id = board_id
        self.spacing = spacing
        self.clock = clock
        self.id_factory = id_factory
        self.board: Optional[Board] = None
        self.state = SyncState.IDLE
        self.in_flight = 0
        self.subscribers: List[BoardListener] = []

    # ── Publishing ──

    def subscribe(self, callback: BoardListener) -> None:
        """Register a callback invoked with every published board."""
        self.subscribers.append(callback)

    def publish(self, board: Board) -> None:
        """Replace the current board and notify subscribers."""
        self.board = board
        for callback in self.subscribers:
            try:
                callback(board)
            except Exception as e:
                logger.error(f"Board subscriber {callback!r} failed: {e}")

    # ── Loading ──

    async def load(self, cache: Optional["SnapshotCache"] = None) -> Board:
        """
        Fetch (or seed) the board and publish it.

        With a cache, a previously saved snapshot is published first so the
        UI has something to show while the fetch is in flight.
        """
        if cache is not None and self.board is None:
            cached = cache.load()
            if cached is not None:
                logger.debug(f"Publishing cached snapshot of {self.board_id}")
                self.publish(cached)
        board = await self.gateway.fetch_or_seed(self.board_id)
        self.publish(board)
        self._settle_state()
        return board

    async def reset_demo(self) -> Board:
        """Reseed the demo board remotely and publish the result."""
        board = await self.gateway.reset_board(self.board_id, demo=True)
        self.publish(board)
        self._settle_state()
        return board

    # ── Commands ──

    async def move_task(
        self,
        task_id: str,
        target_column_id: Optional[str] = None,
        before_task_id: Optional[str] = None,
    ) -> Outcome:
        """Move a task and persist positions of both touched columns in one batch."""
        current = self.board
        if current is None:
            logger.debug(f"move_task({task_id}) ignored: no board loaded")
            return Outcome.IGNORED
        source_column_id = current.column_of(task_id)
        try:
            moved = resolve_move(current, task_id, target_column_id, before_task_id)
        except (TaskNotFound, ColumnNotFound) as e:
            logger.debug(f"move_task ignored: {e}")
            return Outcome.IGNORED
        if moved is current:
            return Outcome.IGNORED

        destination = moved.column_of(task_id)
        self._apply(moved, f"move {task_id} {source_column_id} -> {destination}")
        entries = reposition_entries(moved, [source_column_id, destination], self.spacing)
        return await self._reconcile(
            f"move {task_id}",
            self.gateway.batch_reposition(entries, self.board_id),
        )

    async def drop(self, task_id: str, over_id: Optional[str]) -> Outcome:
        """Handle a drag-end event: task_id was dropped over a task or column."""
        if self.board is None:
            return Outcome.IGNORED
        target = resolve_drop(self.board, task_id, over_id)
        if target is None:
            return Outcome.IGNORED
        target_column_id, before_task_id = target
        return await self.move_task(task_id, target_column_id, before_task_id)

    async def add_task(self, column_id: str, draft: TaskDraft) -> Outcome:
        """
        Append a new task to a column.

        The id is generated here; the position comes from the column's
        post-insert order. Raises ValidationError for an invalid draft.
        """
        current = self.board
        if current is None:
            return Outcome.IGNORED
        draft = draft.validated()
        now = self.clock()
        task = Task(
            id=self.id_factory(),
            title=draft.title,
            description=draft.description,
            priority=draft.priority,
            assignee=draft.assignee,
            created_at=now,
            updated_at=now,
        )
        try:
            added = current.with_task_added(column_id, task)
        except ColumnNotFound as e:
            logger.debug(f"add_task ignored: {e}")
            return Outcome.IGNORED

        self._apply(added, f"add {task.id} to {column_id}")
        position = allocate_positions(added.task_ids(column_id), self.spacing)[task.id]
        record = TaskRecord.from_task(task, column_id, position)
        return await self._reconcile(
            f"add {task.id}",
            self.gateway.create_task(self.board_id, record),
        )

    async def edit_task(self, task_id: str, draft: TaskDraft) -> Outcome:
        """Replace a task's editable fields. Raises ValidationError for an invalid draft."""
        current = self.board
        if current is None:
            return Outcome.IGNORED
        patch = draft.validated().to_patch()
        try:
            edited = current.with_task_edited(task_id, patch, now=self.clock())
        except TaskNotFound as e:
            logger.debug(f"edit_task ignored: {e}")
            return Outcome.IGNORED

        self._apply(edited, f"edit {task_id}")
        return await self._reconcile(
            f"edit {task_id}",
            self.gateway.update_task(task_id, _wire_patch(patch)),
        )

    async def delete_task(self, task_id: str) -> Outcome:
        current = self.board
        if current is None:
            return Outcome.IGNORED
        try:
            removed = current.with_task_removed(task_id)
        except TaskNotFound as e:
            logger.debug(f"delete_task ignored: {e}")
            return Outcome.IGNORED

        self._apply(removed, f"delete {task_id}")
        return await self._reconcile(f"delete {task_id}", self.gateway.delete_task(task_id))

    # ── Reconciliation ──

    def _apply(self, board: Board, label: str) -> None:
        self.in_flight += 1
        self.state = SyncState.OPTIMISTIC_APPLIED
        logger.debug(f"Optimistic {label}")
        self.publish(board)

    def _settle_state(self) -> None:
        self.state = SyncState.OPTIMISTIC_APPLIED if self.in_flight else SyncState.IDLE

    async def _reconcile(self, label: str, call: Awaitable[Any]) -> Outcome:
        try:
            await call
        except Exception as e:
            self.in_flight -= 1
            logger.warning(f"Remote {label} failed, rolling back: {e}")
            await self._rollback()
            return Outcome.ROLLED_BACK
        self.in_flight -= 1
        self.state = SyncState.SETTLED
        logger.debug(f"Settled {label}")
        self._settle_state()
        return Outcome.SETTLED

    async def _rollback(self) -> None:
        """Discard the optimistic board and publish the authoritative one."""
        self.state = SyncState.ROLLING_BACK
        try:
            board = await self.gateway.fetch_or_seed(self.board_id)
        except Exception as e:
            self._settle_state()
            logger.error(f"Refetch of {self.board_id} failed: {e}")
            raise ReconciliationError(f"Could not reload board {self.board_id}: {e}") from e
        self.publish(board)
        self._settle_state()
