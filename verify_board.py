#!/usr/bin/env python3
"""
Quick verification that board sync works end-to-end against SQLite,
including a forced rollback.
"""
import asyncio
import tempfile
from pathlib import Path

from boardsync.controller import BoardController
from boardsync.errors import GatewayError
from boardsync.schema import TaskDraft
from boardsync.store import KanbanStore, SqliteGateway


class FlakyGateway(SqliteGateway):
    """Fails the next batch reposition on request."""

    fail_next_batch = False

    async def batch_reposition(self, entries, board_id):
        if self.fail_next_batch:
            self.fail_next_batch = False
            raise GatewayError("simulated network failure")
        await super().batch_reposition(entries, board_id)


def render(board) -> str:
    lines = []
    for column in board.columns:
        titles = [board.tasks[t].title for t in board.task_ids(column.id)]
        lines.append(f"   {column.title:<12} {titles}")
    return "\n".join(lines)


async def run(db_path: str):
    store = KanbanStore(db_path, seed_demo=True)
    gateway = FlakyGateway(store)
    controller = BoardController(gateway, "verify")
    controller.subscribe(lambda board: print(f"   → published ({len(board.tasks)} tasks)"))

    print("\n[1/5] Loading (seeds demo board)...")
    board = await controller.load()
    print(render(board))

    print("\n[2/5] Moving t1 to In Progress before t3...")
    outcome = await controller.move_task("t1", "doing", "t3")
    print(f"✅ {outcome.value}")
    print(render(controller.board))

    print("\n[3/5] Adding a task to Done...")
    outcome = await controller.add_task("done", TaskDraft(title="Verify sync"))
    print(f"✅ {outcome.value}")

    print("\n[4/5] Forcing a failed move (expect rollback)...")
    gateway.fail_next_batch = True
    outcome = await controller.move_task("t2", "done")
    print(f"✅ {outcome.value}")
    print(render(controller.board))

    print("\n[5/5] Comparing view with stored state...")
    stored = store.load_board("verify")
    if stored.column_task_ids != controller.board.column_task_ids:
        print("❌ View and store disagree")
        return False
    positions = store.positions("verify")
    for column_id in controller.board.column_ids():
        for index, task_id in enumerate(controller.board.task_ids(column_id)):
            if positions[task_id] != (column_id, index * store.spacing):
                print(f"❌ {task_id} stored at {positions[task_id]}, expected {column_id} #{index}")
                return False
    print("✅ View matches store, positions are dense")
    return True


def main():
    print("=" * 60)
    print("boardsync verification")
    print("=" * 60)
    with tempfile.TemporaryDirectory() as tmp:
        ok = asyncio.run(run(str(Path(tmp) / "verify.db")))
    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED" if ok else "❌ CHECKS FAILED")
    print("=" * 60)


if __name__ == "__main__":
    main()
