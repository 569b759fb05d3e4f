"""
Move resolution for drag-and-drop reorders.

Two entry points:
  move_task    - apply a move given a target column and an optional
                 reference task to insert before
  resolve_drop - translate "dragged X over Y" (Y is a task or a column
                 body) into move_task arguments
"""
from typing import Optional, Tuple

from .errors import ColumnNotFound, TaskNotFound
from .schema import Board


def move_task(
    board: Board,
    task_id: str,
    target_column_id: Optional[str] = None,
    before_task_id: Optional[str] = None,
) -> Board:
    """
    Return a new Board with task_id moved, or the same Board for a no-op.

    The target column is target_column_id when given, otherwise the column
    owning before_task_id. A reference task that is missing or sits in a
    different column is treated as "end of column".

    Raises TaskNotFound when task_id is on no column and ColumnNotFound
    when no target column can be resolved.
    """
    source_column_id = board.column_of(task_id)
    if source_column_id is None:
        raise TaskNotFound(task_id)
    if before_task_id == task_id:
        return board

    if target_column_id is None and before_task_id is not None:
        target_column_id = board.column_of(before_task_id)
    if target_column_id is None or not board.has_column(target_column_id):
        raise ColumnNotFound(target_column_id or "")

    target_ids = board.task_ids(target_column_id)
    remaining = [t for t in target_ids if t != task_id]
    if before_task_id is not None and before_task_id in remaining:
        insert_at = remaining.index(before_task_id)
    else:
        insert_at = len(remaining)
    destination = remaining[:insert_at] + [task_id] + remaining[insert_at:]

    if source_column_id == target_column_id:
        if tuple(destination) == target_ids:
            return board
        result = board.with_column_sequence(target_column_id, destination)
    else:
        source_ids = [t for t in board.task_ids(source_column_id) if t != task_id]
        result = (
            board.with_column_sequence(source_column_id, source_ids)
            .with_column_sequence(target_column_id, destination)
        )

    return result.check_invariants()


def resolve_drop(board: Board, task_id: str, over_id: Optional[str]) -> Optional[Tuple[str, Optional[str]]]:
    """
    Map a drag-end event to (target_column_id, before_task_id).

    Dropping on a task in another column, or on a task above the dragged
    one, inserts before it. Dragging down over a task in the same column
    lands where that task was, i.e. before its successor (or at the end).
    Dropping on a column body targets the end of that column. Returns None
    for drops on nothing, on the dragged task itself, or on unknown ids.
    """
    if not over_id or over_id == task_id:
        return None
    over_column = board.column_of(over_id)
    if over_column is not None:
        if over_column == board.column_of(task_id):
            ids = board.task_ids(over_column)
            over_index = ids.index(over_id)
            if over_index > ids.index(task_id):
                successor = ids[over_index + 1] if over_index + 1 < len(ids) else None
                return over_column, successor
        return over_column, over_id
    if board.has_column(over_id):
        return over_id, None
    return None
