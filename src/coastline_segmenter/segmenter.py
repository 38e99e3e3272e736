"""Split raw coastline ways into a catalog of bounded-length segments.

Each way is handled on its own: simplify, measure, then keep it whole or cut
it into equal-length pieces snapped to existing vertices. Pieces from all ways
are numbered by their position in input order, and the minimum-length filter
runs once over the whole output.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial

from .geometry import length_of, nearest_vertex_index, point_at_distance
from .models import (
    CoastlineSegment,
    RawWay,
    SegmentationConfig,
    SegmentationResult,
    SegmentationStats,
    SegmentPiece,
    WayOutcome,
)
from .simplify import simplify

logger = logging.getLogger(__name__)

SEGMENT_ID_PREFIX = "segment_"
LINE_GEOMETRY = "LineString"


class SplitError(ValueError):
    """Raised when a long way cannot be partitioned into vertex ranges."""


def segment_id(position: int) -> str:
    return f"{SEGMENT_ID_PREFIX}{position}"


def split_line(
    line: Sequence[Sequence[float]],
    total_length: float,
    max_segment_length: float,
) -> list[SegmentPiece]:
    """Cut ``line`` into ``ceil(total / max)`` pieces of equal nominal length.

    Cut points are snapped to the nearest existing vertex, so the measured
    length of each piece differs slightly from the nominal one.
    """
    num_segments = math.ceil(total_length / max_segment_length)
    segment_length = total_length / num_segments

    pieces: list[SegmentPiece] = []
    for i in range(num_segments):
        start_dist = i * segment_length
        end_dist = min((i + 1) * segment_length, total_length)

        start_point = point_at_distance(line, start_dist)
        end_point = point_at_distance(line, end_dist)
        start_index = nearest_vertex_index(line, start_point)
        end_index = nearest_vertex_index(line, end_point, search_from=start_index)

        if start_index > end_index or end_index - start_index < 1:
            raise SplitError(
                f"piece {i}/{num_segments} snapped to vertices [{start_index}, {end_index}]"
            )

        coords = tuple(line[start_index : end_index + 1])
        pieces.append(SegmentPiece(geometry=coords, length_meters=length_of(coords)))

    return pieces


def segment_way(way: RawWay, config: SegmentationConfig) -> WayOutcome:
    """Simplify, measure and (if needed) split a single way."""
    coords = way.coordinates
    if way.geometry_type != LINE_GEOMETRY or not coords or len(coords) < 2:
        logger.info("Skipping way %s: no usable line geometry (%s)", way.way_id, way.geometry_type)
        return WayOutcome(way_id=way.way_id, status="skipped")

    try:
        simplified = simplify(coords, config.simplification_tolerance)
    except ValueError as exc:
        logger.warning("Simplification failed for way %s, keeping it unsimplified: %s", way.way_id, exc)
        simplified = tuple(coords)

    total_length = length_of(simplified)
    whole = [SegmentPiece(geometry=simplified, length_meters=total_length)]

    if total_length < config.min_segment_length:
        return WayOutcome(way_id=way.way_id, status="short", pieces=whole)

    if total_length <= config.max_segment_length:
        return WayOutcome(way_id=way.way_id, status="normal", pieces=whole)

    try:
        pieces = split_line(simplified, total_length, config.max_segment_length)
    except (SplitError, ArithmeticError, ValueError) as exc:
        logger.warning(
            "Could not split way %s (%.1f m), using the whole line: %s", way.way_id, total_length, exc
        )
        return WayOutcome(way_id=way.way_id, status="fallback", pieces=whole)

    return WayOutcome(way_id=way.way_id, status="split", pieces=pieces)


def segment_coastlines(
    ways: Iterable[RawWay],
    config: SegmentationConfig | None = None,
    *,
    workers: int = 1,
    cancel_event: threading.Event | None = None,
    progress_every: int = 100,
) -> SegmentationResult:
    """Segment every way and return the filtered, numbered catalog.

    With ``workers > 1`` ways are processed on a thread pool; outcomes come
    back in input order, so ids are identical to a sequential run. Setting
    ``cancel_event`` stops the run before the next way is started or collected;
    ways already in flight on the pool finish but are not reported.
    """
    config = config or SegmentationConfig()
    ways = list(ways)
    stats = SegmentationStats(ways_total=len(ways))
    logger.info("Segmenting %d coastline ways", len(ways))

    outcomes: list[WayOutcome] = []
    for outcome in _iter_outcomes(ways, config, workers, cancel_event):
        outcomes.append(outcome)
        stats.ways_processed += 1
        if outcome.status == "skipped":
            stats.ways_skipped += 1
        elif outcome.status == "split":
            stats.ways_split += 1
        elif outcome.status == "fallback":
            stats.fallbacks += 1
        if progress_every and stats.ways_processed % progress_every == 0:
            logger.info("Processed %d/%d ways", stats.ways_processed, stats.ways_total)

    if cancel_event is not None and cancel_event.is_set() and stats.ways_processed < stats.ways_total:
        stats.cancelled = True
        logger.warning("Segmentation cancelled after %d/%d ways", stats.ways_processed, stats.ways_total)

    segments = number_segments(outcomes)
    kept = [s for s in segments if s.length_meters >= config.min_segment_length]

    stats.segments_produced = len(segments)
    stats.segments_kept = len(kept)
    stats.segments_dropped = len(segments) - len(kept)
    logger.info(
        "Produced %d segments, dropped %d below %.0f m, kept %d",
        stats.segments_produced,
        stats.segments_dropped,
        config.min_segment_length,
        stats.segments_kept,
    )
    return SegmentationResult(config=config, stats=stats, segments=kept)


def number_segments(outcomes: Iterable[WayOutcome]) -> list[CoastlineSegment]:
    """Assign ``segment_<n>`` ids by position across the ordered outcomes."""
    flat = ((outcome.way_id, piece) for outcome in outcomes for piece in outcome.pieces)
    return [
        CoastlineSegment(
            id=segment_id(position),
            geometry=piece.geometry,
            length_meters=piece.length_meters,
            original_way_id=way_id,
        )
        for position, (way_id, piece) in enumerate(flat)
    ]


def _iter_outcomes(
    ways: list[RawWay],
    config: SegmentationConfig,
    workers: int,
    cancel_event: threading.Event | None,
) -> Iterator[WayOutcome]:
    run = partial(segment_way, config=config)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    if workers <= 1:
        for way in ways:
            if cancelled():
                return
            yield run(way)
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        # At most `workers` ways in flight, collected in submission order
        pending: deque[Future[WayOutcome]] = deque()
        remaining = iter(ways)
        while True:
            if cancelled():
                for future in pending:
                    future.cancel()
                return
            while len(pending) < workers:
                way = next(remaining, None)
                if way is None:
                    break
                pending.append(executor.submit(run, way))
            if not pending:
                return
            yield pending.popleft().result()
