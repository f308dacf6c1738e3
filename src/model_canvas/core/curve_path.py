"""relationship curve geometry.

a relationship is drawn through its source anchor, its curve points and its
target anchor. the path is a catmull-rom spline converted to cubic bezier
segments, emitted as an svg path string for the browser canvas.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import NamedTuple, Optional, Protocol, Sequence


DEFAULT_TENSION = 1.0


class XY(Protocol):
    x: float
    y: float


class SegmentHit(NamedTuple):
    """closest polyline segment to a query point."""

    segment_index: int
    insert_index: int  # where a new curve point goes in curve_points
    distance_sq: float


def clamp_tension(value: Optional[float]) -> float:
    """0 = nearly straight, 1 = standard catmull-rom, 2 = loose."""
    if value is None or not math.isfinite(value):
        return DEFAULT_TENSION
    return min(2.0, max(0.0, value))


def format_number(value: float) -> str:
    """print a number the way a javascript engine would.

    integral values lose their decimal point and exponent notation only
    kicks in below 1e-6 or from 1e21 up, so the same points always give the
    same path string on both sides of the api.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value) and abs(value) < 1e16:
        return str(int(value))

    text = repr(float(value))
    if "e" not in text:
        return text
    if 1e-6 <= abs(value) < 1e21:
        return format(Decimal(text), "f")
    mantissa, exponent = text.split("e")
    return f"{mantissa}e{int(exponent):+d}"


def build_catmull_rom_path(points: Sequence[XY], tension: Optional[float] = None) -> str:
    """build a smooth svg path through every point.

    missing neighbours at either end are replaced by the nearest real point.
    returns "" when there are fewer than two points (nothing to draw).
    """
    if len(points) < 2:
        return ""

    t = clamp_tension(tension) / 6
    start = points[0]
    parts = [f"M {format_number(start.x)} {format_number(start.y)}"]

    for i in range(len(points) - 1):
        p0 = points[i - 1] if i > 0 else points[i]
        p1 = points[i]
        p2 = points[i + 1]
        p3 = points[i + 2] if i + 2 < len(points) else p2

        cp1x = p1.x + (p2.x - p0.x) * t
        cp1y = p1.y + (p2.y - p0.y) * t
        cp2x = p2.x - (p3.x - p1.x) * t
        cp2y = p2.y - (p3.y - p1.y) * t

        parts.append(
            f"C {format_number(cp1x)} {format_number(cp1y)}, "
            f"{format_number(cp2x)} {format_number(cp2y)}, "
            f"{format_number(p2.x)} {format_number(p2.y)}"
        )

    return " ".join(parts)


def distance_sq_to_segment(point: XY, a: XY, b: XY) -> float:
    """squared distance from point to the closed segment a-b."""
    dx = b.x - a.x
    dy = b.y - a.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        px, py = a.x, a.y
    else:
        # projection clamped onto the segment, not the infinite line
        u = ((point.x - a.x) * dx + (point.y - a.y) * dy) / length_sq
        u = min(1.0, max(0.0, u))
        px, py = a.x + u * dx, a.y + u * dy
    return (point.x - px) ** 2 + (point.y - py) ** 2


def nearest_segment_for_point(polyline: Sequence[XY], point: XY) -> Optional[SegmentHit]:
    """find where a click along a relationship should insert a curve point.

    polyline is source anchor, existing curve points, target anchor. ties go
    to the lowest segment index.
    """
    if len(polyline) < 2:
        return None

    best_index = 0
    best_distance = math.inf
    for i in range(len(polyline) - 1):
        distance = distance_sq_to_segment(point, polyline[i], polyline[i + 1])
        if distance < best_distance:
            best_index = i
            best_distance = distance

    existing = len(polyline) - 2
    insert_index = min(existing, max(0, best_index))
    return SegmentHit(best_index, insert_index, best_distance)
