"""Fetch coastline ways from the OpenStreetMap Overpass API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .models import Coordinate, RawWay

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://lz4.overpass-api.de/api/interpreter"

# (south, west, north, east) around the Iwate coast
DEFAULT_BBOX = (38.0, 140.0, 41.0, 142.5)


class OverpassError(RuntimeError):
    """The Overpass API returned no usable coastline data."""


def build_coastline_query(bbox: tuple[float, float, float, float], timeout: int = 120) -> str:
    """Overpass QL query for every ``natural=coastline`` way inside ``bbox``."""
    south, west, north, east = bbox
    if south >= north or west >= east:
        raise ValueError(f"Invalid bbox (south, west, north, east): {bbox}")
    return (
        f"[out:json][timeout:{timeout}];\n"
        "(\n"
        f'  way["natural"="coastline"]({south},{west},{north},{east});\n'
        ");\n"
        "out geom;"
    )


def fetch_overpass(
    query: str,
    endpoint: str = DEFAULT_ENDPOINT,
    *,
    timeout: float = 300.0,
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """POST ``query`` to the interpreter and return the parsed JSON body."""
    owns_client = client is None
    client = client or httpx.Client(timeout=httpx.Timeout(timeout, connect=60.0))
    try:
        resp = client.post(endpoint, content=query, headers={"Content-Type": "text/plain"})
        resp.raise_for_status()
        data = resp.json()
    finally:
        if owns_client:
            client.close()
    logger.info("Received %d bytes, %d elements", len(resp.content), len(data.get("elements") or []))
    return data


def ways_from_overpass(data: dict[str, Any]) -> list[RawWay]:
    """Convert Overpass ``out geom`` elements to RawWays.

    Non-way elements are ignored, as are ways without a numeric id. Ways
    without usable node geometry are kept with ``coordinates=None`` so they
    are counted and skipped downstream.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected an Overpass JSON object, got {type(data).__name__}")
    elements = data.get("elements") or []
    if not isinstance(elements, list):
        raise ValueError("Overpass 'elements' must be a list")

    ways: list[RawWay] = []
    for el in elements:
        if not isinstance(el, dict) or el.get("type") != "way":
            continue
        try:
            way_id = int(el["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring Overpass way without a usable id: %r", el.get("id"))
            continue
        coordinates = _node_coordinates(el.get("geometry"))
        tags = el.get("tags") if isinstance(el.get("tags"), dict) else {}
        ways.append(
            RawWay(
                way_id=way_id,
                geometry_type="LineString" if coordinates else None,
                coordinates=coordinates,
                tags={str(k): str(v) for k, v in tags.items()},
            )
        )
    return ways


def _node_coordinates(nodes: Any) -> list[Coordinate] | None:
    """(lon, lat) of every node, or None if the geometry is missing or unreadable."""
    if not isinstance(nodes, list):
        return None
    try:
        coordinates = [(float(n["lon"]), float(n["lat"])) for n in nodes if n]
    except (KeyError, TypeError, ValueError):
        return None
    return coordinates or None


def fetch_coastline(
    bbox: tuple[float, float, float, float] = DEFAULT_BBOX,
    endpoint: str = DEFAULT_ENDPOINT,
    *,
    timeout: float = 300.0,
    client: httpx.Client | None = None,
) -> list[RawWay]:
    """Fetch and convert the coastline ways inside ``bbox``."""
    logger.info("Fetching coastline for bbox %s from %s", bbox, endpoint)
    data = fetch_overpass(build_coastline_query(bbox), endpoint, timeout=timeout, client=client)
    if not data.get("elements"):
        raise OverpassError(f"No coastline elements found in bbox {bbox}")
    ways = ways_from_overpass(data)
    logger.info("Converted %d coastline ways", len(ways))
    return ways
