"""deterministic grid placement for objects without a stored position."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Sequence

from .models import Entity, Position
from .validation import is_finite_number


COLUMN_WIDTH = 280
ROW_HEIGHT = 180
PADDING_X = 80
PADDING_Y = 80
TOOLBAR_COLUMNS = 3


def _grid_position(index: int, columns: int) -> Position:
    row, column = divmod(index, columns)
    return Position(x=PADDING_X + column * COLUMN_WIDTH, y=PADDING_Y + row * ROW_HEIGHT)


def auto_layout(objects: Sequence[Entity]) -> dict[str, Position]:
    """lay objects out on a roughly square grid, in document order."""
    count = len(objects)
    if count == 0:
        return {}
    columns = max(1, math.ceil(math.sqrt(count)))
    return {obj.id: _grid_position(index, columns) for index, obj in enumerate(objects)}


def next_grid_position(index: int) -> Position:
    """slot for the index-th object created from the toolbar."""
    return _grid_position(index, TOOLBAR_COLUMNS)


def fill_missing_positions(
    objects: Sequence[Entity],
    positions: Mapping[str, Any],
) -> dict[str, Position]:
    """auto layout, overridden by any valid stored position of a known object.

    positions may hold Position values or raw {x, y} dicts from a document;
    unknown ids and malformed entries are dropped.
    """
    result = auto_layout(objects)
    for object_id, raw in positions.items():
        if object_id not in result:
            continue
        if isinstance(raw, Position):
            result[object_id] = raw
        elif isinstance(raw, dict) and is_finite_number(raw.get("x")) and is_finite_number(raw.get("y")):
            result[object_id] = Position(x=raw["x"], y=raw["y"])
    return result


def positions_to_dict(positions: Mapping[str, Position]) -> dict[str, dict]:
    return {object_id: pos.to_dict() for object_id, pos in positions.items()}


def known_positions(object_ids: Iterable[str], positions: Mapping[str, Position]) -> dict[str, Position]:
    """drop entries for ids not in object_ids."""
    ids = set(object_ids)
    return {k: v for k, v in positions.items() if k in ids}
