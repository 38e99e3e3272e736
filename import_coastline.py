"""Import OpenStreetMap coastline into the segment catalog: fetch, segment, plot and write.

This script uses the coastline_segmenter library for fetching and segmentation
and adds Supabase credentials, debug dumps and an optional map plot on top.

Usage:
    python import_coastline.py                       # fetch the default bbox and import
    python import_coastline.py --input ways.geojson --dry-run --plot
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import httpx
import matplotlib.pyplot as plt
from dotenv import load_dotenv
from pydantic import ValidationError

from coastline_segmenter import (
    CatalogError,
    CatalogRecord,
    PostgrestStore,
    SegmentationConfig,
    fetch_coastline,
    read_geojson,
    read_kmz,
    read_shapefile,
    run_import,
)
from coastline_segmenter.geojson_reader import write_geojson
from coastline_segmenter.overpass import DEFAULT_BBOX, DEFAULT_ENDPOINT, OverpassError, ways_from_overpass

DATA_DIR = Path(__file__).parent / "data"


def load_ways(args):
    """Read ways from ``--input`` or fetch them from Overpass."""
    if args.input is None:
        ways = fetch_coastline(tuple(args.bbox), args.endpoint)
        write_geojson(ways, args.data_dir / "coastline_raw.geojson")
        return ways

    path = Path(args.input)
    suffix = path.suffix.lower()
    if suffix in (".kmz", ".kml"):
        return read_kmz(str(path))
    if suffix == ".shp":
        return read_shapefile(path)

    data = json.loads(path.read_text(encoding="utf-8"))
    if "elements" in data:
        return ways_from_overpass(data)
    return read_geojson(path)


def plot_segments(segments, path: Path, title: str = "Coastline segments") -> None:
    """Draw every segment in its own colour so the cut points are visible."""
    fig, ax = plt.subplots(figsize=(8, 10))
    cmap = plt.get_cmap("tab10")
    for i, seg in enumerate(segments):
        lons = [c[0] for c in seg.geometry]
        lats = [c[1] for c in seg.geometry]
        ax.plot(lons, lats, color=cmap(i % 10), linewidth=0.8)

    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(title)
    ax.set_aspect("equal", adjustable="datalim")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"Plot saved: {path}")


def make_store(dry_run: bool, columns=None):
    if dry_run:
        return None
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise SystemExit("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set (or pass --dry-run)")
    return PostgrestStore(url, key, columns=columns)


def parse_args(argv=None):
    defaults = SegmentationConfig()
    parser = argparse.ArgumentParser(description="Segment OSM coastline and import it into the catalog")
    parser.add_argument("--input", help="GeoJSON, Overpass JSON, KML/KMZ or .shp file (default: fetch from Overpass)")
    parser.add_argument(
        "--bbox", type=float, nargs=4, default=list(DEFAULT_BBOX),
        metavar=("SOUTH", "WEST", "NORTH", "EAST"), help="Overpass bounding box",
    )
    parser.add_argument("--endpoint", default=DEFAULT_ENDPOINT, help="Overpass interpreter URL")
    parser.add_argument("--max-length", type=float, default=defaults.max_segment_length, help="metres")
    parser.add_argument("--min-length", type=float, default=defaults.min_segment_length, help="metres")
    parser.add_argument("--tolerance", type=float, default=defaults.simplification_tolerance, help="degrees")
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--batch-size", type=int, default=100)
    parser.add_argument(
        "--columns", nargs="+", choices=list(CatalogRecord.model_fields), metavar="COLUMN",
        help="Catalog columns to insert (default: all; use svg_id geom name for tables without original_way_id)",
    )
    parser.add_argument("--data-dir", type=Path, default=DATA_DIR, help="Where debug dumps are written")
    parser.add_argument("--dry-run", action="store_true", help="Segment only, do not write the catalog")
    parser.add_argument("--plot", action="store_true", help="Save a PNG map of the segments")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        config = SegmentationConfig(
            max_segment_length=args.max_length,
            min_segment_length=args.min_length,
            simplification_tolerance=args.tolerance,
        )
    except ValidationError as exc:
        print(f"Invalid segmentation parameters:\n{exc}", file=sys.stderr)
        return 2

    store = make_store(args.dry_run, args.columns)
    args.data_dir.mkdir(parents=True, exist_ok=True)

    print("1. Loading coastline ways...")
    try:
        ways = load_ways(args)
    except (OverpassError, httpx.HTTPError, ValueError, OSError) as exc:
        print(f"Failed to load coastline: {exc}", file=sys.stderr)
        return 1
    print(f"Loaded {len(ways):,} ways\n")

    print("2. Segmenting and importing...")
    segments_path = args.data_dir / "coastline_segments.geojson"
    try:
        summary = run_import(
            ways,
            store,
            config,
            batch_size=args.batch_size,
            workers=args.workers,
            segments_path=segments_path,
        )
    except CatalogError as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    finally:
        if store is not None:
            store.close()

    stats = summary.stats
    print(f"Ways processed:    {stats.ways_processed:,} ({stats.ways_skipped:,} skipped, {stats.fallbacks:,} fallbacks)")
    print(f"Segments produced: {stats.segments_produced:,}")
    print(f"Segments dropped:  {stats.segments_dropped:,} (< {config.min_segment_length:.0f} m)")
    print(f"Segments kept:     {stats.segments_kept:,}")
    print(f"Records written:   {summary.records_written:,}")

    if args.plot:
        plot_segments(summary.result.segments, args.data_dir / "coastline_segments.png")

    return 0


if __name__ == "__main__":
    sys.exit(main())
