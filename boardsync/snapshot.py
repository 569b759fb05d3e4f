"""
Local snapshot cache of the last published board.

Subscribe SnapshotCache.schedule to a controller and pass the cache to
BoardController.load() to get an instant first paint on startup. The
cache only ever holds a render snapshot; commands are never queued here.

Inside a running event loop, schedule() hands the file write to a worker
thread so publishing never waits on disk. Writes always store the newest
scheduled board; call flush() to wait for it to reach the file.
"""
import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Optional, Set

from .schema import Board

logger = logging.getLogger(__name__)


class SnapshotCache:
    """JSON file holding the most recent Board snapshot."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._pending: Optional[Board] = None
        self._written: Optional[Board] = None
        self._tasks: Set[asyncio.Task] = set()

    def save(self, board: Board) -> None:
        """Write the snapshot atomically (temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(board.to_dict(), f, ensure_ascii=False)
        tmp.replace(self.path)

    def schedule(self, board: Board) -> None:
        """Board subscriber: write in the background when a loop is running."""
        self._pending = board
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        task = loop.create_task(asyncio.to_thread(self.flush))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def flush(self) -> None:
        """Write the newest scheduled board if it is not on disk yet."""
        with self._lock:
            board = self._pending
            if board is None or board is self._written:
                return
            try:
                self.save(board)
            except OSError as e:
                logger.warning(f"Could not write snapshot {self.path}: {e}")
                return
            self._written = board

    def load(self) -> Optional[Board]:
        """Return the cached Board, or None if missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
            return Board.from_dict(data).check_invariants()
        except (OSError, ValueError, KeyError, TypeError, AssertionError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.path}: {e}")
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
