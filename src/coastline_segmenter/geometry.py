"""Geodesic primitives over (lon, lat) polylines.

Distances are great-circle distances on a sphere with the mean Earth radius,
computed with :class:`pyproj.Geod`. Every length and nearest-vertex lookup in
the package goes through :func:`geodesic_distance` so they stay consistent.
"""

from __future__ import annotations

from collections.abc import Sequence

from pyproj import Geod

from .models import Coordinate

EARTH_RADIUS_M = 6_371_008.8

_GEOD = Geod(a=EARTH_RADIUS_M, f=0.0)


def geodesic_distance(p1: Sequence[float], p2: Sequence[float]) -> float:
    """Return the great-circle distance between two (lon, lat) points in metres."""
    if p1[0] == p2[0] and p1[1] == p2[1]:
        return 0.0
    _, _, dist = _GEOD.inv(p1[0], p1[1], p2[0], p2[1])
    return float(dist)


def cumulative_distances(polyline: Sequence[Sequence[float]]) -> list[float]:
    """Arc length from the first vertex to each vertex of ``polyline``."""
    if not polyline:
        return []
    cumulative = [0.0]
    for i in range(1, len(polyline)):
        cumulative.append(cumulative[-1] + geodesic_distance(polyline[i - 1], polyline[i]))
    return cumulative


def length_of(polyline: Sequence[Sequence[float]]) -> float:
    """Total geodesic length of a polyline in metres (0.0 for fewer than two vertices)."""
    if len(polyline) < 2:
        return 0.0
    return cumulative_distances(polyline)[-1]


def point_at_distance(polyline: Sequence[Sequence[float]], distance_m: float) -> Coordinate:
    """Return the point ``distance_m`` metres along ``polyline``.

    The bracketing edge is found from the cumulative arc length, then the
    position is interpolated linearly in lon/lat between its two vertices.
    Distances outside ``[0, length]`` clamp to the first or last vertex.
    """
    if not polyline:
        raise ValueError("Cannot walk an empty polyline")

    first = (float(polyline[0][0]), float(polyline[0][1]))
    last = (float(polyline[-1][0]), float(polyline[-1][1]))
    if distance_m <= 0:
        return first

    cumulative = cumulative_distances(polyline)
    if distance_m >= cumulative[-1]:
        return last

    for i in range(1, len(polyline)):
        if cumulative[i] < distance_m:
            continue
        edge = cumulative[i] - cumulative[i - 1]
        if edge <= 0:
            continue
        fraction = (distance_m - cumulative[i - 1]) / edge
        lon1, lat1 = polyline[i - 1][0], polyline[i - 1][1]
        lon2, lat2 = polyline[i][0], polyline[i][1]
        return (lon1 + (lon2 - lon1) * fraction, lat1 + (lat2 - lat1) * fraction)

    return last


def nearest_vertex_index(
    polyline: Sequence[Sequence[float]],
    point: Sequence[float],
    search_from: int = 0,
) -> int:
    """Index of the vertex closest to ``point``, scanning from ``search_from`` to the end.

    Ties resolve to the lowest index. Passing the start index as
    ``search_from`` when locating an end point keeps the pair ordered on
    lines that revisit a location.
    """
    if not 0 <= search_from < len(polyline):
        raise ValueError(f"search_from={search_from} outside polyline of {len(polyline)} vertices")

    best_index = search_from
    best_dist = geodesic_distance(point, polyline[search_from])
    for i in range(search_from + 1, len(polyline)):
        dist = geodesic_distance(point, polyline[i])
        if dist < best_dist:
            best_dist = dist
            best_index = i
    return best_index
