import pytest

from coastline_segmenter import RawWay, SegmentationConfig

# One degree of longitude at the equator on the mean-radius sphere
METRES_PER_DEGREE = 111_195.08

ZIGZAG_STEP = 0.0002
ZIGZAG_AMPLITUDE = 0.0005
ZIGZAG_EDGE_M = METRES_PER_DEGREE * (ZIGZAG_STEP**2 + ZIGZAG_AMPLITUDE**2) ** 0.5  # ~59.9 m


def _zigzag(length_m: float):
    """An eastward zigzag along the equator; every vertex survives a 0.0001 deg simplification."""
    coords = [(0.0, 0.0)]
    i = 0
    while ZIGZAG_EDGE_M * i < length_m:
        i += 1
        coords.append((i * ZIGZAG_STEP, ZIGZAG_AMPLITUDE if i % 2 else 0.0))
    return coords


def _straight(length_m: float):
    """A two-vertex eastward line along the equator."""
    return [(0.0, 0.0), (length_m / METRES_PER_DEGREE, 0.0)]


class FakeStore:
    """In-memory catalog store that can be told to fail on a given insert call."""

    def __init__(self, fail_on_batch=None, fail_delete=False):
        self.records = []
        self.batches = []
        self.deleted_prefixes = []
        self.fail_on_batch = fail_on_batch
        self.fail_delete = fail_delete

    def delete_prefix(self, prefix):
        if self.fail_delete:
            raise RuntimeError("delete refused")
        self.deleted_prefixes.append(prefix)
        self.records = [r for r in self.records if not r.svg_id.startswith(prefix)]

    def insert(self, records):
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise RuntimeError("insert refused")
        self.batches.append(list(records))
        self.records.extend(records)


@pytest.fixture
def zigzag():
    return _zigzag


@pytest.fixture
def straight():
    return _straight


@pytest.fixture
def zigzag_edge_m():
    return ZIGZAG_EDGE_M


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def config():
    return SegmentationConfig(max_segment_length=1500, min_segment_length=300, simplification_tolerance=0.0001)


@pytest.fixture
def long_way():
    return RawWay(way_id=101, coordinates=_zigzag(5000))


@pytest.fixture
def short_way():
    return RawWay(way_id=202, coordinates=_straight(200))


@pytest.fixture
def medium_way():
    return RawWay(way_id=303, coordinates=_zigzag(1000))
