"""Column-set reconciler for change-detection columns.

Keeps the persisted change-detection column set (the columns hashed to
detect row-level changes) consistent with the live columns of the resolved
target table. Column sets are stored comma-joined.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation pass.

    Attributes:
        columns: The column set after the pass, in display order
        added: Live columns that were not selected and now are
        removed: Selected columns that no longer exist in the table
        defaulted: The set was seeded with every live column
        notice: Human-readable summary of an automatic adjustment
    """

    columns: tuple[str, ...]
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    defaulted: bool = False
    notice: str | None = None

    @property
    def changed(self) -> bool:
        return self.defaulted or bool(self.added or self.removed)


def split_columns(value: Any, *, unique: bool = True) -> list[str]:
    """Parse a comma-joined column set (or a sequence of names).

    >>> split_columns(" id, amount ,,id")
    ['id', 'amount']
    """
    if value is None:
        return []
    parts: Iterable[Any] = value.split(",") if isinstance(value, str) else value
    names = [str(part).strip() for part in parts]
    names = [name for name in names if name]
    if unique:
        names = list(dict.fromkeys(names))
    return names


def join_columns(columns: Iterable[str]) -> str | None:
    """Join a column set for storage; an empty set is stored as unset."""
    names = split_columns(list(columns))
    return ",".join(names) if names else None


def _describe(added: Sequence[str], removed: Sequence[str]) -> str:
    parts = []
    if added:
        parts.append(f"added {', '.join(added)}")
    if removed:
        parts.append(f"removed {', '.join(removed)}")
    return "Change-detection columns adjusted to the live table: " + "; ".join(parts)


def reconcile_column_set(
    selection: Any,
    live_columns: Sequence[str],
    *,
    dynamic_schema: bool,
    first_resolution: bool = False,
) -> ReconcileResult:
    """Reconcile a column selection against a table's live columns.

    On the first resolution of a table an empty selection defaults to every
    live column. Afterwards, with dynamic schema enabled, vanished columns
    are dropped and new live columns are appended. With dynamic schema off
    the selection is left untouched; stale references are reported at
    submission instead.

    The pass is idempotent: running it again on its own output with the
    same live columns changes nothing.

    Args:
        selection: Current selection, comma-joined or a sequence
        live_columns: Columns the table has now, in table order
        dynamic_schema: Whether automatic reconciliation is enabled
        first_resolution: The table has just been resolved for this set

    Returns:
        ReconcileResult describing the new selection
    """
    current = split_columns(selection)
    live = split_columns(list(live_columns))

    if first_resolution and not current:
        if not live:
            return ReconcileResult(columns=())
        return ReconcileResult(columns=tuple(live), defaulted=True)

    if not dynamic_schema:
        return ReconcileResult(columns=tuple(current))

    live_set = set(live)
    selected = set(current)
    valid = [name for name in current if name in live_set]
    removed = [name for name in current if name not in live_set]
    added = [name for name in live if name not in selected]

    if not added and not removed:
        return ReconcileResult(columns=tuple(current))

    return ReconcileResult(
        columns=tuple(valid + added),
        added=tuple(added),
        removed=tuple(removed),
        notice=_describe(added, removed),
    )
