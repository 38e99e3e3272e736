"""Persist a segment catalog to the storage collaborator in fixed-size batches."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import httpx

from .models import CatalogRecord, CoastlineSegment
from .segmenter import SEGMENT_ID_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_TABLE = "coastline_segments"
DEFAULT_NAME_TEMPLATE = "Coastline segment {id}"


class CatalogError(Exception):
    """Base class for failures talking to the catalog store."""


class CatalogClearError(CatalogError):
    """Removing the previous catalog failed; nothing new has been written."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(f"Failed to clear catalog entries with prefix {prefix!r}")


class CatalogWriteError(CatalogError):
    """A batch insert failed. Batches before ``batch_index`` are already stored."""

    def __init__(self, batch_index: int, attempted: int, written: int):
        self.batch_index = batch_index
        self.attempted = attempted
        self.written = written
        super().__init__(
            f"Batch {batch_index} failed ({attempted} records attempted, {written} already written)"
        )


class CatalogStore(Protocol):
    def delete_prefix(self, prefix: str) -> None: ...

    def insert(self, records: list[CatalogRecord]) -> None: ...


def to_wkt(geometry: Sequence[Sequence[float]]) -> str:
    """Format a polyline as ``LINESTRING(lon lat, lon lat, ...)``."""
    coords = ", ".join(f"{lon} {lat}" for lon, lat in geometry)
    return f"LINESTRING({coords})"


def to_record(segment: CoastlineSegment, name_template: str = DEFAULT_NAME_TEMPLATE) -> CatalogRecord:
    return CatalogRecord(
        svg_id=segment.id,
        geom=to_wkt(segment.geometry),
        name=name_template.format(id=segment.id),
        original_way_id=segment.original_way_id,
    )


def write_catalog(
    segments: Sequence[CoastlineSegment],
    store: CatalogStore,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    id_prefix: str = SEGMENT_ID_PREFIX,
    replace: bool = True,
    name_template: str = DEFAULT_NAME_TEMPLATE,
) -> int:
    """Write ``segments`` to ``store`` and return the number of records written.

    With ``replace`` the previous catalog (every key starting with
    ``id_prefix``) is deleted first. A failing batch raises
    :class:`CatalogWriteError`; earlier batches stay written and nothing is
    retried.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    if replace:
        logger.info("Clearing catalog entries with prefix %r", id_prefix)
        try:
            store.delete_prefix(id_prefix)
        except Exception as exc:
            raise CatalogClearError(id_prefix) from exc

    total = len(segments)
    written = 0
    for batch_index, start in enumerate(range(0, total, batch_size)):
        batch = [to_record(s, name_template) for s in segments[start : start + batch_size]]
        try:
            store.insert(batch)
        except Exception as exc:
            logger.error("Batch %d failed after %d/%d records", batch_index, written, total)
            raise CatalogWriteError(batch_index, len(batch), written) from exc
        written += len(batch)
        logger.info("Progress: %d/%d (%d%%)", written, total, round(written / total * 100))

    return written


class PostgrestStore:
    """Catalog store backed by a PostgREST (Supabase) table."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = DEFAULT_TABLE,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        columns: Sequence[str] | None = None,
    ):
        self.table = table
        # Restrict the payload for tables without every CatalogRecord column
        self.columns = set(columns) if columns else None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }

    @property
    def _path(self) -> str:
        return f"/rest/v1/{self.table}"

    def delete_prefix(self, prefix: str) -> None:
        resp = self._client.delete(
            self._path, params={"svg_id": f"like.{prefix}*"}, headers=self._headers
        )
        resp.raise_for_status()

    def insert(self, records: list[CatalogRecord]) -> None:
        resp = self._client.post(
            self._path,
            json=[r.model_dump(include=self.columns) for r in records],
            headers={**self._headers, "Prefer": "return=minimal"},
        )
        resp.raise_for_status()

    def close(self) -> None:
        self._client.close()


def segments_to_geojson(segments: Sequence[CoastlineSegment]) -> dict:
    """Convert segments to a GeoJSON FeatureCollection of LineStrings."""
    features = []
    for seg in segments:
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": [list(c) for c in seg.geometry]},
                "properties": {
                    "id": seg.id,
                    "length_m": seg.length_meters,
                    "original_way_id": seg.original_way_id,
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}


def write_segments_geojson(segments: Sequence[CoastlineSegment], path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(segments_to_geojson(segments)), encoding="utf-8")
