"""Tests for the local snapshot cache."""
import asyncio

from boardsync.controller import BoardController
from boardsync.snapshot import SnapshotCache

from conftest import FakeGateway, make_board


def test_save_and_load(tmp_path, board):
    cache = SnapshotCache(str(tmp_path / "snap" / "board.json"))
    cache.save(board)
    assert cache.load() == board


def test_missing_file(tmp_path):
    assert SnapshotCache(str(tmp_path / "none.json")).load() is None


def test_corrupt_file_ignored(tmp_path):
    path = tmp_path / "board.json"
    path.write_text("{not json")
    assert SnapshotCache(str(path)).load() is None


def test_invalid_board_ignored(tmp_path):
    path = tmp_path / "board.json"
    path.write_text('{"columns": [{"id": "a"}], "column_task_ids": {"a": ["ghost"]}, "tasks": {}}')
    assert SnapshotCache(str(path)).load() is None


def test_clear(tmp_path, board):
    cache = SnapshotCache(str(tmp_path / "board.json"))
    cache.save(board)
    cache.clear()
    assert cache.load() is None
    cache.clear()


def test_controller_publishes_cached_then_fetched(tmp_path, board):
    """The cached snapshot is shown first, then replaced by the store's board"""
    cache = SnapshotCache(str(tmp_path / "board.json"))
    stale = make_board({"todo": ["t2"], "doing": [], "done": []})
    cache.save(stale)

    controller = BoardController(FakeGateway(board), "b1")
    published = []
    controller.subscribe(published.append)
    controller.subscribe(cache.save)
    asyncio.run(controller.load(cache=cache))

    assert published == [stale, board]
    assert cache.load() == board


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Background writes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_schedule_outside_loop_writes_immediately(tmp_path, board):
    cache = SnapshotCache(str(tmp_path / "board.json"))
    cache.schedule(board)
    assert cache.load() == board


def test_schedule_inside_loop_does_not_write_on_the_loop(tmp_path, board):
    path = tmp_path / "board.json"
    cache = SnapshotCache(str(path))

    async def publish():
        cache.schedule(board)
        assert not path.exists()

    asyncio.run(publish())
    cache.flush()
    assert cache.load() == board


def test_newest_scheduled_board_wins(tmp_path, board):
    cache = SnapshotCache(str(tmp_path / "board.json"))
    newer = make_board({"todo": ["t2"], "doing": ["t1", "t3"], "done": ["t4"]})

    async def publish():
        cache.schedule(board)
        cache.schedule(newer)
        await asyncio.gather(*cache._tasks)

    asyncio.run(publish())
    cache.flush()
    assert cache.load() == newer
