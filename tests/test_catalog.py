"""Tests for the catalog writer, the PostgREST store and the import pipeline."""

import json

import httpx
import pytest

from coastline_segmenter import (
    CatalogClearError,
    CatalogWriteError,
    CoastlineSegment,
    PostgrestStore,
    RawWay,
    run_import,
    segments_to_geojson,
    to_wkt,
    write_catalog,
)
from coastline_segmenter.catalog import to_record


def _segments(n):
    return [
        CoastlineSegment(
            id=f"segment_{i}",
            geometry=((141.0 + i * 0.5, 39.0), (141.25 + i * 0.5, 39.25)),
            length_meters=500.0,
            original_way_id=1000 + i,
        )
        for i in range(n)
    ]


class TestWkt:
    def test_linestring(self):
        assert to_wkt(((141.5, 39.25), (141.75, 39.5))) == "LINESTRING(141.5 39.25, 141.75 39.5)"

    def test_record(self):
        record = to_record(_segments(1)[0])
        assert record.svg_id == "segment_0"
        assert record.geom.startswith("LINESTRING(141.0 39.0, ")
        assert record.name == "Coastline segment segment_0"
        assert record.original_way_id == 1000

    def test_custom_name(self):
        record = to_record(_segments(1)[0], name_template="Iwate coastline {id}")
        assert record.name == "Iwate coastline segment_0"


class TestWriteCatalog:
    def test_writes_in_fixed_batches(self, make_store):
        store = make_store()
        written = write_catalog(_segments(250), store, batch_size=100)
        assert written == 250
        assert [len(b) for b in store.batches] == [100, 100, 50]
        assert [r.svg_id for r in store.records] == [f"segment_{i}" for i in range(250)]

    def test_replaces_previous_catalog(self, make_store):
        store = make_store()
        write_catalog(_segments(5), store)
        write_catalog(_segments(3), store)
        assert store.deleted_prefixes == ["segment_", "segment_"]
        assert len(store.records) == 3

    def test_merge_when_not_replacing(self, make_store):
        store = make_store()
        write_catalog(_segments(2), store, replace=False)
        assert store.deleted_prefixes == []

    def test_empty_catalog(self, make_store):
        store = make_store()
        assert write_catalog([], store) == 0
        assert store.batches == []

    def test_failed_batch_reports_position(self, make_store):
        store = make_store(fail_on_batch=2)
        with pytest.raises(CatalogWriteError) as excinfo:
            write_catalog(_segments(250), store, batch_size=100)

        err = excinfo.value
        assert err.batch_index == 2
        assert err.attempted == 50
        assert err.written == 200
        assert isinstance(err.__cause__, RuntimeError)
        # Earlier batches stay written
        assert len(store.records) == 200

    def test_failed_clear_writes_nothing(self, make_store):
        store = make_store(fail_delete=True)
        with pytest.raises(CatalogClearError):
            write_catalog(_segments(3), store)
        assert store.batches == []

    def test_invalid_batch_size(self, make_store):
        with pytest.raises(ValueError):
            write_catalog(_segments(1), make_store(), batch_size=0)


class TestPostgrestStore:
    def _store(self, handler):
        client = httpx.Client(base_url="https://example.supabase.co", transport=httpx.MockTransport(handler))
        return PostgrestStore("https://example.supabase.co", "secret", client=client)

    def test_delete_prefix(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        self._store(handler).delete_prefix("segment_")
        request = seen[0]
        assert request.method == "DELETE"
        assert request.url.path == "/rest/v1/coastline_segments"
        assert request.url.params["svg_id"] == "like.segment_*"
        assert request.headers["apikey"] == "secret"
        assert request.headers["authorization"] == "Bearer secret"

    def test_insert(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201)

        store = self._store(handler)
        store.insert([to_record(s) for s in _segments(2)])
        body = json.loads(seen[0].content)
        assert seen[0].method == "POST"
        assert seen[0].headers["prefer"] == "return=minimal"
        assert [row["svg_id"] for row in body] == ["segment_0", "segment_1"]
        assert body[0]["geom"].startswith("LINESTRING(")

    def test_restricted_columns(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201)

        client = httpx.Client(base_url="https://example.supabase.co", transport=httpx.MockTransport(handler))
        store = PostgrestStore("https://example.supabase.co", "secret", client=client, columns=["svg_id", "geom", "name"])
        store.insert([to_record(s) for s in _segments(1)])
        assert set(json.loads(seen[0].content)[0]) == {"svg_id", "geom", "name"}

    def test_http_error_becomes_write_error(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(500, json={"message": "db down"})
            return httpx.Response(204)

        with pytest.raises(CatalogWriteError) as excinfo:
            write_catalog(_segments(3), self._store(handler), batch_size=2)
        assert excinfo.value.batch_index == 0
        assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


class TestGeojsonExport:
    def test_feature_collection(self):
        fc = segments_to_geojson(_segments(2))
        assert fc["type"] == "FeatureCollection"
        assert len(fc["features"]) == 2
        feature = fc["features"][1]
        assert feature["geometry"]["type"] == "LineString"
        assert feature["geometry"]["coordinates"][0] == [141.5, 39.0]
        assert feature["properties"] == {"id": "segment_1", "length_m": 500.0, "original_way_id": 1001}


class TestRunImport:
    def test_dry_run(self, long_way, short_way, config, tmp_path):
        path = tmp_path / "out" / "segments.geojson"
        summary = run_import([short_way, long_way], None, config, segments_path=path)
        assert summary.records_written == 0
        assert summary.stats.segments_kept == 4
        assert len(json.loads(path.read_text())["features"]) == 4

    def test_writes_catalog(self, long_way, medium_way, config, make_store):
        store = make_store()
        summary = run_import([long_way, medium_way], store, config, batch_size=2)
        assert summary.records_written == 5
        assert [len(b) for b in store.batches] == [2, 2, 1]

    def test_write_failure_propagates(self, long_way, config, make_store):
        store = make_store(fail_on_batch=1)
        with pytest.raises(CatalogWriteError):
            run_import([long_way], store, config, batch_size=3)
        assert len(store.records) == 3

    def test_skipped_way_counted(self, config, make_store):
        bad = RawWay(way_id=1, geometry_type=None)
        summary = run_import([bad], make_store(), config)
        assert summary.stats.ways_skipped == 1
        assert summary.records_written == 0
