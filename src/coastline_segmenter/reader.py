"""Shapefile reader for coastline polylines with CRS auto-detection."""

from __future__ import annotations

from itertools import repeat
from pathlib import Path
from typing import BinaryIO

import shapefile
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from .models import Coordinate, RawWay

ID_FIELDS = ("osm_id", "id", "way_id")


def detect_crs(prj_source: str | Path | None) -> tuple[int | None, str | None, bool | None]:
    """Parse CRS from a .prj WKT string or file path.

    Returns (epsg_code, crs_name, is_projected) or (None, None, None) on failure.
    """
    if prj_source is None:
        return None, None, None

    wkt = prj_source if isinstance(prj_source, str) else ""
    if isinstance(prj_source, Path):
        if not prj_source.exists():
            return None, None, None
        wkt = prj_source.read_text()

    if not wkt.strip():
        return None, None, None

    try:
        crs = CRS.from_wkt(wkt)
    except CRSError:
        return None, None, None

    return crs.to_epsg(), crs.name, crs.is_projected


def read_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
) -> list[RawWay]:
    """Read a polyline shapefile and return one RawWay per record part.

    Supports two modes:
    - File path: pass ``shp_path`` (the .prj is auto-discovered)
    - File objects: pass ``shp_file``, ``shx_file``, ``dbf_file``, and optionally ``prj_wkt``

    Coordinates in a projected CRS are transformed to WGS84 lon/lat.
    """
    if shp_path is not None:
        shp_path = Path(shp_path)
        sf = shapefile.Reader(str(shp_path))
        prj_path = shp_path.with_suffix(".prj")
        if not prj_path.exists():
            # shp_path might already lack an extension (pyshp convention)
            prj_path = Path(str(shp_path) + ".prj")
        epsg, _, is_projected = detect_crs(prj_path if prj_path.exists() else None)
    elif shp_file is not None:
        sf = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
        epsg, _, is_projected = detect_crs(prj_wkt)
    else:
        raise ValueError("Provide either shp_path or shp_file")

    upper = sf.shapeTypeName.upper()
    if not ("POLYLINE" in upper or upper in ("ARC", "ARCZ", "ARCM")):
        raise ValueError(f"Unsupported shape type: {sf.shapeTypeName}. Only POLYLINE shapes are supported.")

    transformer = None
    if is_projected and epsg is not None:
        transformer = Transformer.from_crs(f"EPSG:{epsg}", "EPSG:4326", always_xy=True)

    field_names = [f[0] for f in sf.fields[1:]]  # skip DeletionFlag
    id_field = next((name for name in field_names if name.lower() in ID_FIELDS), None)

    # Without a .dbf there are no attributes; fall back to record numbers
    records = sf.iterRecords() if sf.dbf else repeat(None)

    ways: list[RawWay] = []
    for number, (shape, record) in enumerate(zip(sf.iterShapes(), records)):
        way_id = _record_id(record, id_field, number)
        ways.extend(_shape_to_ways(shape, way_id, transformer))
    return ways


def _record_id(record, id_field: str | None, number: int) -> int:
    if record is not None and id_field is not None:
        try:
            return int(record[id_field])
        except (TypeError, ValueError):
            pass
    return number


def _shape_to_ways(shape: shapefile.Shape, way_id: int, transformer: Transformer | None) -> list[RawWay]:
    """One way per part of a (multi-part) polyline; null shapes yield a skippable way."""
    if shape.shapeType == shapefile.NULL or not shape.points:
        return [RawWay(way_id=way_id, geometry_type=None, coordinates=None)]

    part_starts = list(shape.parts)
    ways: list[RawWay] = []
    for part_idx, start in enumerate(part_starts):
        end = part_starts[part_idx + 1] if part_idx + 1 < len(part_starts) else len(shape.points)
        points = shape.points[start:end]
        ways.append(
            RawWay(
                way_id=way_id,
                geometry_type="LineString",
                coordinates=_to_lonlat(points, transformer),
                tags={"part": str(part_idx)} if len(part_starts) > 1 else {},
            )
        )
    return ways


def _to_lonlat(points: list, transformer: Transformer | None) -> list[Coordinate]:
    if transformer is None:
        return [(float(p[0]), float(p[1])) for p in points]
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    lons, lats = transformer.transform(xs, ys)
    return [(float(lon), float(lat)) for lon, lat in zip(lons, lats)]
