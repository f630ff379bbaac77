"""Explicit sibling ordering for notes within a book and images within a note.

Positions are dense: a reorder always rewrites the whole sibling set to
``0..n-1``. Both helpers expect to run inside the caller's transaction,
which holds SQLite's write lock from its first statement, so two appends
can never read the same maximum.
"""
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session


def next_sort_order(session: Session, sort_column: Any, parent_column: Any, parent_id: str) -> int:
    """Position for a child appended after its existing siblings.

    Args:
        session: Session of the surrounding transaction.
        sort_column: Mapped ``sort_order`` column of the child model.
        parent_column: Mapped foreign-key column pointing at the parent.
        parent_id: ID of the parent whose children are counted.

    Returns:
        ``1 + max(sort_order)`` among the siblings, or 0 when there are none.
    """
    current_max = session.execute(
        select(func.max(sort_column)).where(parent_column == parent_id)
    ).scalar()
    return (current_max if current_max is not None else -1) + 1


def resequence(ordered_ids: Iterable[str], current_ids: Sequence[str]) -> Dict[str, int]:
    """Compute new dense positions for a set of siblings.

    Args:
        ordered_ids: IDs in the order the caller wants them. IDs that are
            not siblings are ignored; repeated IDs count once.
        current_ids: All sibling IDs in their current listing order.

    Returns:
        Mapping of every sibling ID to its new position. Requested
        siblings come first in the requested order, the rest keep their
        current relative order after them.
    """
    siblings = set(current_ids)
    ordered: List[str] = []
    seen = set()
    for item_id in ordered_ids:
        if item_id in siblings and item_id not in seen:
            ordered.append(item_id)
            seen.add(item_id)
    ordered.extend(item_id for item_id in current_ids if item_id not in seen)
    return {item_id: position for position, item_id in enumerate(ordered)}
