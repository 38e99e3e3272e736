"""End-to-end import: segment raw ways and replace the stored catalog."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel

from .catalog import DEFAULT_BATCH_SIZE, CatalogStore, write_catalog, write_segments_geojson
from .models import RawWay, SegmentationConfig, SegmentationResult, SegmentationStats
from .segmenter import segment_coastlines

logger = logging.getLogger(__name__)


class ImportSummary(BaseModel):
    result: SegmentationResult
    records_written: int

    @property
    def stats(self) -> SegmentationStats:
        return self.result.stats


def run_import(
    ways: Sequence[RawWay],
    store: CatalogStore | None,
    config: SegmentationConfig | None = None,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    workers: int = 1,
    segments_path: str | Path | None = None,
) -> ImportSummary:
    """Segment ``ways`` and write them to ``store``.

    ``store=None`` is a dry run. Catalog errors propagate unchanged; whatever
    was written before the failing batch stays in place.
    """
    result = segment_coastlines(ways, config, workers=workers)

    if segments_path is not None:
        write_segments_geojson(result.segments, segments_path)
        logger.info("Saved %d segments to %s", len(result.segments), segments_path)

    written = 0
    if store is not None:
        written = write_catalog(result.segments, store, batch_size=batch_size)
        logger.info("Imported %d segments", written)

    return ImportSummary(result=result, records_written=written)
