"""Coastline segmentation engine: simplify, split and catalog coastline polylines."""

from .catalog import (
    CatalogClearError,
    CatalogError,
    CatalogWriteError,
    PostgrestStore,
    segments_to_geojson,
    to_wkt,
    write_catalog,
    write_segments_geojson,
)
from .geojson_reader import read_geojson, ways_from_geojson
from .geometry import geodesic_distance, length_of, nearest_vertex_index, point_at_distance
from .kml_reader import read_kmz
from .models import (
    CatalogRecord,
    CoastlineSegment,
    RawWay,
    SegmentationConfig,
    SegmentationResult,
    SegmentationStats,
)
from .overpass import fetch_coastline, ways_from_overpass
from .pipeline import ImportSummary, run_import
from .reader import detect_crs, read_shapefile
from .segmenter import segment_coastlines, segment_way, split_line
from .simplify import simplify, tolerance_for_latitude

__all__ = [
    "CatalogClearError",
    "CatalogError",
    "CatalogRecord",
    "CatalogWriteError",
    "CoastlineSegment",
    "ImportSummary",
    "PostgrestStore",
    "RawWay",
    "SegmentationConfig",
    "SegmentationResult",
    "SegmentationStats",
    "detect_crs",
    "fetch_coastline",
    "geodesic_distance",
    "length_of",
    "nearest_vertex_index",
    "point_at_distance",
    "read_geojson",
    "read_kmz",
    "read_shapefile",
    "run_import",
    "segment_coastlines",
    "segment_way",
    "segments_to_geojson",
    "simplify",
    "split_line",
    "to_wkt",
    "tolerance_for_latitude",
    "ways_from_geojson",
    "ways_from_overpass",
    "write_catalog",
    "write_segments_geojson",
]
