"""Read and write raw coastline ways as GeoJSON FeatureCollections."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, BinaryIO

from .models import Coordinate, RawWay


def read_geojson(file: str | Path | BinaryIO) -> list[RawWay]:
    """Read a GeoJSON FeatureCollection from a path or file-like object."""
    if isinstance(file, (str, Path)):
        data = json.loads(Path(file).read_text(encoding="utf-8"))
    else:
        data = json.loads(file.read())
    return ways_from_geojson(data)


def ways_from_geojson(data: dict[str, Any]) -> list[RawWay]:
    """Convert GeoJSON features to RawWays.

    Features without a geometry, with a non-line geometry, or with unreadable
    coordinates are kept with ``coordinates=None`` or their original geometry
    type so the segmenter can skip them. A document that is not a
    FeatureCollection raises ``ValueError``.
    """
    if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
        kind = data.get("type") if isinstance(data, dict) else type(data).__name__
        raise ValueError(f"Expected a FeatureCollection, got {kind!r}")
    features = data.get("features") or []
    if not isinstance(features, list):
        raise ValueError("FeatureCollection 'features' must be a list")

    ways: list[RawWay] = []
    for position, feature in enumerate(features):
        if not isinstance(feature, dict):
            ways.append(RawWay(way_id=position, geometry_type=None))
            continue
        properties = _as_dict(feature.get("properties"))
        geometry = _as_dict(feature.get("geometry"))
        geometry_type = geometry.get("type") if isinstance(geometry.get("type"), str) else None

        coordinates = None
        if geometry_type == "LineString":
            coordinates = _lonlat_pairs(geometry.get("coordinates"))

        ways.append(
            RawWay(
                way_id=_way_id(properties, feature, position),
                geometry_type=geometry_type,
                coordinates=coordinates,
                tags={str(k): str(v) for k, v in _as_dict(properties.get("tags")).items()},
            )
        )
    return ways


def ways_to_geojson(ways: list[RawWay]) -> dict[str, Any]:
    """Inverse of :func:`ways_from_geojson` for usable line ways."""
    features = []
    for way in ways:
        geometry = None
        if way.geometry_type == "LineString" and way.coordinates:
            geometry = {"type": "LineString", "coordinates": [list(c) for c in way.coordinates]}
        features.append(
            {
                "type": "Feature",
                "geometry": geometry,
                "properties": {"id": way.way_id, "tags": way.tags},
            }
        )
    return {"type": "FeatureCollection", "features": features}


def write_geojson(ways: list[RawWay], path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(ways_to_geojson(ways)), encoding="utf-8")


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _lonlat_pairs(coords: Any) -> list[Coordinate] | None:
    """(lon, lat) pairs with altitude dropped, or None if any position is unreadable."""
    if not isinstance(coords, list):
        return None
    try:
        return [(float(c[0]), float(c[1])) for c in coords if len(c) >= 2]
    except (TypeError, ValueError):
        return None


def _way_id(properties: dict, feature: dict, position: int) -> int:
    for candidate in (properties.get("id"), feature.get("id")):
        try:
            return int(candidate)
        except (TypeError, ValueError, OverflowError):
            continue
    return position
