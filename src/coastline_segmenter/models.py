"""Pydantic data models for the coastline segmenter."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Coordinate = tuple[float, float]
"""A (longitude, latitude) pair in WGS84 degrees."""

Polyline = Annotated[tuple[Coordinate, ...], Field(min_length=2)]

WayStatus = Literal["skipped", "short", "normal", "split", "fallback"]


class RawWay(BaseModel):
    """A single source polyline as delivered by one of the readers.

    Malformed entries are kept with a missing or non-line geometry so the
    segmenter can skip them without aborting the run.
    """

    way_id: int
    geometry_type: str | None = "LineString"
    coordinates: list[Coordinate] | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class SegmentationConfig(BaseModel):
    """Length policy and simplification tolerance governing one run."""

    model_config = ConfigDict(frozen=True)

    max_segment_length: float = 1500.0  # metres
    min_segment_length: float = 300.0  # metres
    simplification_tolerance: float = Field(default=0.0001, ge=0)  # degrees

    @model_validator(mode="after")
    def _check_lengths(self):
        if not 0 < self.min_segment_length < self.max_segment_length:
            raise ValueError(
                "expected 0 < min_segment_length < max_segment_length, got "
                f"min={self.min_segment_length} max={self.max_segment_length}"
            )
        return self


class SegmentPiece(BaseModel):
    """Geometry and measured length of one piece cut from a way, before numbering."""

    model_config = ConfigDict(frozen=True)

    geometry: Polyline
    length_meters: float


class WayOutcome(BaseModel):
    """What the segmenter made of a single way."""

    way_id: int
    status: WayStatus
    pieces: list[SegmentPiece] = Field(default_factory=list)


class CoastlineSegment(BaseModel):
    """A bounded-length output polyline. Ids are only stable within one run."""

    model_config = ConfigDict(frozen=True)

    id: str
    geometry: Polyline
    length_meters: float
    original_way_id: int


class SegmentationStats(BaseModel):
    """Counters reported at the end of a run."""

    ways_total: int = 0
    ways_processed: int = 0
    ways_skipped: int = 0
    ways_split: int = 0
    fallbacks: int = 0
    segments_produced: int = 0
    segments_dropped: int = 0
    segments_kept: int = 0
    cancelled: bool = False


class SegmentationResult(BaseModel):
    """Complete result of segmenting a collection of ways."""

    config: SegmentationConfig
    stats: SegmentationStats
    segments: list[CoastlineSegment]


class CatalogRecord(BaseModel):
    """A row handed to the storage collaborator."""

    svg_id: str
    geom: str  # WKT LINESTRING
    name: str
    original_way_id: int
