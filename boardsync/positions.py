"""
Position allocation: integer sort keys derived from in-memory order.

Positions are index * spacing. Every reorder renumbers the whole column;
there is no insert-between scheme, which is fine for boards of this size.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .schema import Board

DEFAULT_SPACING = 100


@dataclass(frozen=True)
class RepositionEntry:
    """One row of a batch reposition call."""
    id: str
    column_id: str
    position: int

    def to_dict(self) -> Dict[str, object]:
        return {"id": self.id, "column_id": self.column_id, "position": self.position}


def allocate_positions(task_ids: Sequence[str], spacing: int = DEFAULT_SPACING) -> Dict[str, int]:
    """Map each id to index * spacing. Strictly increasing, never tied."""
    if spacing <= 0:
        raise ValueError(f"spacing must be positive, got {spacing}")
    return {task_id: index * spacing for index, task_id in enumerate(task_ids)}


def reposition_entries(
    board: Board,
    column_ids: Iterable[str],
    spacing: int = DEFAULT_SPACING,
) -> List[RepositionEntry]:
    """Positions for every task in each touched column, in column order."""
    entries: List[RepositionEntry] = []
    seen = set()
    for column_id in column_ids:
        if column_id in seen:
            continue
        seen.add(column_id)
        positions = allocate_positions(board.task_ids(column_id), spacing)
        entries.extend(
            RepositionEntry(id=task_id, column_id=column_id, position=pos)
            for task_id, pos in positions.items()
        )
    return entries
