"""FastAPI service for previewing coastline segmentation of uploaded data."""

from __future__ import annotations

import csv
import io
import json
import tempfile
import zipfile
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .catalog import segments_to_geojson, to_wkt
from .geojson_reader import ways_from_geojson
from .kml_reader import read_kmz
from .models import CoastlineSegment, RawWay, SegmentationConfig, SegmentationResult
from .overpass import ways_from_overpass
from .reader import read_shapefile
from .segmenter import segment_coastlines

app = FastAPI(title="Coastline Segmenter", version="0.1.0")

COMPANION_EXTS = {".shp", ".shx", ".dbf", ".prj"}
JSON_EXTS = (".json", ".geojson")

_defaults = SegmentationConfig()


@app.post("/segment")
async def segment_upload(
    files: list[UploadFile],
    max_length: float = Query(_defaults.max_segment_length, gt=0),
    min_length: float = Query(_defaults.min_segment_length, gt=0),
    tolerance: float = Query(_defaults.simplification_tolerance, ge=0),
    workers: int = Query(1, ge=1, le=16),
    format: str = Query("json", pattern="^(json|csv|geojson)$"),
):
    """Segment uploaded coastline ways and return the resulting catalog.

    Accepts:
    - A single .json/.geojson file (Overpass ``out geom`` JSON or a GeoJSON FeatureCollection)
    - A single .kmz or .kml file
    - A single .zip containing shapefile components
    - Multiple files (.shp, .shx, .dbf, and optionally .prj)
    """
    try:
        config = SegmentationConfig(
            max_segment_length=max_length,
            min_segment_length=min_length,
            simplification_tolerance=tolerance,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filename = (files[0].filename or "").lower() if len(files) == 1 else ""
    try:
        if filename.endswith(JSON_EXTS):
            ways = await _handle_json(files[0])
        elif filename.endswith((".kmz", ".kml")):
            ways = read_kmz(await files[0].read())
        elif filename.endswith(".zip"):
            ways = await _handle_zip(files[0])
        else:
            ways = await _handle_multi_file(files)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = segment_coastlines(ways, config, workers=workers)

    if format == "json":
        return result
    if format == "geojson":
        return segments_to_geojson(result.segments)
    return _segments_to_csv_response(result)


async def _handle_json(upload: UploadFile) -> list[RawWay]:
    """Overpass JSON carries ``elements``; anything else must be GeoJSON."""
    try:
        data = json.loads(await upload.read())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    if "elements" in data:
        return ways_from_overpass(data)
    return ways_from_geojson(data)


async def _handle_zip(upload: UploadFile) -> list[RawWay]:
    """Extract a shapefile from a zip archive and read it."""
    content = await upload.read()
    with tempfile.TemporaryDirectory() as extract_dir:
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                zf.extractall(extract_dir)
        except zipfile.BadZipFile as exc:
            raise ValueError(f"Invalid zip archive: {exc}") from exc

        shp_files = sorted(Path(extract_dir).rglob("*.shp"))
        if not shp_files:
            raise ValueError("No .shp file found in zip archive")
        return read_shapefile(shp_files[0])


async def _handle_multi_file(files: list[UploadFile]) -> list[RawWay]:
    """Read a shapefile from its uploaded component files."""
    file_map: dict[str, bytes] = {}
    for f in files:
        ext = Path(f.filename or "").suffix.lower()
        if ext in COMPANION_EXTS:
            file_map[ext] = await f.read()

    if ".shp" not in file_map:
        raise ValueError("Missing required .shp file")

    shx_file = io.BytesIO(file_map[".shx"]) if ".shx" in file_map else None
    dbf_file = io.BytesIO(file_map[".dbf"]) if ".dbf" in file_map else None

    prj_wkt = None
    if ".prj" in file_map:
        prj_wkt = file_map[".prj"].decode("utf-8", errors="replace")

    return read_shapefile(
        shp_file=io.BytesIO(file_map[".shp"]),
        shx_file=shx_file,
        dbf_file=dbf_file,
        prj_wkt=prj_wkt,
    )


def _csv_row(segment: CoastlineSegment) -> dict:
    return {
        "id": segment.id,
        "original_way_id": segment.original_way_id,
        "length_m": segment.length_meters,
        "num_vertices": len(segment.geometry),
        "wkt": to_wkt(segment.geometry),
    }


def _segments_to_csv_response(result: SegmentationResult) -> StreamingResponse:
    """Convert segments to a streaming CSV response."""
    fieldnames = ["id", "original_way_id", "length_m", "num_vertices", "wkt"]

    def generate():
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=fieldnames)
        writer.writeheader()
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)

        for seg in result.segments:
            writer.writerow(_csv_row(seg))
            yield buf.getvalue()
            buf.seek(0)
            buf.truncate(0)

    return StreamingResponse(
        generate(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=coastline_segments.csv"},
    )
