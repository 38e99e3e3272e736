"""KMZ/KML reader that turns each Placemark into a coastline way.

KMZ is a ZIP archive containing KML. KML coordinates are always WGS84 (EPSG:4326)
in ``longitude,latitude,altitude`` format.
"""

from __future__ import annotations

import io
import zipfile
import xml.etree.ElementTree as ET
from typing import BinaryIO

from .models import Coordinate, RawWay

KML_NS = "{http://www.opengis.net/kml/2.2}"

_GEOMETRY_TAGS = ("LineString", "Point", "Polygon", "LinearRing")


def read_kmz(file: str | bytes | BinaryIO) -> list[RawWay]:
    """Read a KMZ (or plain KML) file and return one RawWay per Placemark line.

    Args:
        file: Path to a .kmz/.kml file, raw bytes, or a file-like object containing KMZ/KML bytes.
    """
    data = _read_bytes(file)

    # KMZ is a ZIP; plain KML is XML text
    if _is_zip(data):
        kml_text = _extract_kml_from_kmz(data)
    else:
        kml_text = data.decode("utf-8", errors="replace")

    try:
        root = ET.fromstring(kml_text)
    except ET.ParseError as exc:
        raise ValueError(f"Invalid KML: {exc}") from exc

    ways: list[RawWay] = []
    for position, placemark in enumerate(root.iter(f"{KML_NS}Placemark")):
        ways.extend(_placemark_to_ways(placemark, position))
    return ways


def _read_bytes(file: str | bytes | BinaryIO) -> bytes:
    if isinstance(file, str):
        with open(file, "rb") as f:
            return f.read()
    if isinstance(file, bytes):
        return file
    return file.read()


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def _extract_kml_from_kmz(data: bytes) -> str:
    """Extract the first .kml file from a KMZ (ZIP) archive."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        # Prefer doc.kml, fall back to any .kml
        names = zf.namelist()
        kml_name = next((n for n in names if n.lower() == "doc.kml"), None)
        if kml_name is None:
            kml_name = next((n for n in names if n.lower().endswith(".kml")), None)
        if kml_name is None:
            raise ValueError("No .kml file found in KMZ archive")
        return zf.read(kml_name).decode("utf-8", errors="replace")


def _placemark_to_ways(placemark: ET.Element, position: int) -> list[RawWay]:
    """One way per LineString in the Placemark, including those nested in a MultiGeometry.

    A Placemark without any LineString yields a single skippable way carrying
    the kind of geometry it had.
    """
    way_id = _placemark_id(placemark, position)
    tags: dict[str, str] = {}
    name = placemark.find(f"{KML_NS}name")
    if name is not None and name.text:
        tags["name"] = name.text.strip()

    lines: list[list[Coordinate] | None] = []
    geometry_type = None
    for elem in placemark.iter():
        tag = elem.tag.replace(KML_NS, "")
        if tag == "LineString":
            coords_elem = elem.find(f"{KML_NS}coordinates")
            text = coords_elem.text if coords_elem is not None else None
            lines.append(_parse_coordinates_text(text) if text else None)
        elif tag in _GEOMETRY_TAGS and geometry_type is None:
            # Polygon rings are not coastline lines; report the outer kind only
            geometry_type = "Polygon" if tag == "LinearRing" else tag

    if not lines:
        return [RawWay(way_id=way_id, geometry_type=geometry_type, coordinates=None, tags=tags)]

    return [
        RawWay(
            way_id=way_id,
            geometry_type="LineString",
            coordinates=coordinates,
            tags={**tags, "part": str(part)} if len(lines) > 1 else tags,
        )
        for part, coordinates in enumerate(lines)
    ]


def _placemark_id(placemark: ET.Element, position: int) -> int:
    raw = placemark.get("id", "")
    try:
        return int(raw)
    except ValueError:
        return position


def _parse_coordinates_text(text: str) -> list[Coordinate]:
    """Parse a KML ``<coordinates>`` text block.

    Format: ``lon,lat[,alt] lon,lat[,alt] ...`` (whitespace-separated tuples).
    Altitude is discarded.
    """
    coords: list[Coordinate] = []
    for token in text.strip().split():
        parts = token.split(",")
        if len(parts) < 2:
            continue
        coords.append((float(parts[0]), float(parts[1])))
    return coords
