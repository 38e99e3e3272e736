"""Douglas-Peucker line simplification in coordinate (degree) space.

The tolerance is an angular distance in the same units as the input
coordinates. One degree of longitude shrinks towards the poles, so the same
tolerance removes more detail at high latitudes. Callers choose a tolerance
suited to the latitude band they process; :func:`tolerance_for_latitude`
helps with that but is never applied implicitly.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from .geometry import EARTH_RADIUS_M
from .models import Coordinate

_METRES_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0


def simplify(polyline: Sequence[Sequence[float]], tolerance: float) -> tuple[Coordinate, ...]:
    """Return a simplified copy of ``polyline``.

    Interior vertices whose distance to the chord between the kept neighbours
    is within ``tolerance`` are removed. Endpoints are always preserved and the
    result always has at least two vertices.
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")
    if len(polyline) < 2:
        raise ValueError(f"A polyline needs at least 2 vertices, got {len(polyline)}")

    points = _drop_repeated(polyline)
    if len(points) < 2:
        # Every vertex coincides with the first one
        return (_as_coord(polyline[0]), _as_coord(polyline[-1]))
    if len(points) == 2:
        return tuple(points)

    keep = _douglas_peucker(points, tolerance * tolerance)
    return tuple(p for p, kept in zip(points, keep) if kept)


def tolerance_for_latitude(meters: float, latitude: float) -> float:
    """Degree tolerance that spans roughly ``meters`` east-west at ``latitude``."""
    scale = math.cos(math.radians(latitude))
    if scale <= 1e-12:
        raise ValueError(f"Latitude {latitude} is too close to a pole")
    return meters / (_METRES_PER_DEGREE * scale)


def _as_coord(p: Sequence[float]) -> Coordinate:
    return (float(p[0]), float(p[1]))


def _drop_repeated(polyline: Sequence[Sequence[float]]) -> list[Coordinate]:
    points: list[Coordinate] = []
    for p in polyline:
        coord = _as_coord(p)
        if not points or points[-1] != coord:
            points.append(coord)
    return points


def _douglas_peucker(points: list[Coordinate], sq_tolerance: float) -> list[bool]:
    """Mark the vertices to keep, splitting each span at its farthest vertex."""
    keep = [False] * len(points)
    keep[0] = keep[-1] = True

    # Explicit stack of (first, last) spans; long coastlines would exhaust the recursion limit
    stack = [(0, len(points) - 1)]
    while stack:
        first, last = stack.pop()
        max_sq_dist = sq_tolerance
        index = None
        for i in range(first + 1, last):
            sq_dist = _sq_segment_distance(points[i], points[first], points[last])
            if sq_dist > max_sq_dist:
                index = i
                max_sq_dist = sq_dist

        if index is not None:
            keep[index] = True
            if index - first > 1:
                stack.append((first, index))
            if last - index > 1:
                stack.append((index, last))

    return keep


def _sq_segment_distance(p: Coordinate, a: Coordinate, b: Coordinate) -> float:
    """Squared planar distance from ``p`` to the segment ``a``-``b``."""
    x, y = a
    dx = b[0] - x
    dy = b[1] - y

    if dx != 0 or dy != 0:
        t = ((p[0] - x) * dx + (p[1] - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = b
        elif t > 0:
            x += dx * t
            y += dy * t

    dx = p[0] - x
    dy = p[1] - y
    return dx * dx + dy * dy
