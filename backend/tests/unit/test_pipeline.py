import asyncio
import logging

import pytest

from matrikelkort.gsearch import GSearchClient
from matrikelkort.pipeline import build_parcel_map, render_parcel_map
from matrikelkort.projection import Reprojector
from matrikelkort.rendering import PayloadRenderer
from tests.payloads import match_payload, shifted_ring

UTM32 = "+proj=utm +zone=32 +ellps=GRS80 +units=m +no_defs"
UNIT_SQUARE = [[0, 0], [0, 10], [10, 10], [10, 0], [0, 0]]


@pytest.fixture(scope="module")
def reprojector():
    return Reprojector(UTM32, "EPSG:4326")


def _build(raw, reprojector, concurrency=1):
    async def run():
        async with GSearchClient("https://gsearch.test/matrikel", "token") as client:
            return await build_parcel_map(raw, client, reprojector, concurrency=concurrency)
    return asyncio.run(run())


def _render(parcel_map):
    renderer = PayloadRenderer()
    render_parcel_map(parcel_map, renderer)
    return renderer


def test_single_parcel(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1695i'] = match_payload(ring=UNIT_SQUARE)

    parcel_map = _build("2000174:1695i", reprojector)

    projected = reprojector.to_display(UNIT_SQUARE)
    xs = [p[0] for p in projected]
    ys = [p[1] for p in projected]
    assert parcel_map.extent == pytest.approx([min(xs), min(ys), max(xs), max(ys)])
    assert len(parcel_map.features.features) == 1

    renderer = _render(parcel_map)
    assert renderer.fit.extent == parcel_map.extent
    assert renderer.fit.durationMs == 2500
    assert len(renderer.layers) == 1


def test_empty_match_is_skipped(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1695i'] = match_payload()
    mocked_gsearch['routes']['1441b'] = []

    parcel_map = _build("2000174:1695i;2000174:1441b", reprojector)

    assert [f.properties.id for f in parcel_map.features.features] == ["2000174:1695i"]
    assert parcel_map.failures == []
    assert [u.key for u in parcel_map.unmatched] == ["2000174:1441b"]
    assert parcel_map.extent is not None


def test_empty_input_skips_fit(mocked_gsearch, reprojector):
    parcel_map = _build("", reprojector)

    assert parcel_map.features.features == []
    assert parcel_map.extent is None
    assert mocked_gsearch['calls'] == []

    renderer = _render(parcel_map)
    assert renderer.fit is None
    features, _ = renderer.layers[0]
    assert features.features == []


def test_malformed_identifier_is_skipped(mocked_gsearch, reprojector):
    parcel_map = _build("BAD", reprojector)

    assert parcel_map.features.features == []
    assert [m.raw for m in parcel_map.malformed] == ["BAD"]
    # Never sent to gsearch
    assert mocked_gsearch['calls'] == []
    assert _render(parcel_map).fit is None


def test_http_500_is_logged_and_skipped(mocked_gsearch, reprojector, caplog):
    mocked_gsearch['routes']['1695i'] = (500, {})
    mocked_gsearch['routes']['1441b'] = match_payload()

    with caplog.at_level(logging.WARNING, logger="matrikelkort.gsearch"):
        parcel_map = _build("2000174:1695i;2000174:1441b", reprojector)

    assert [f.properties.id for f in parcel_map.features.features] == ["2000174:1441b"]
    assert [f.identifier.key for f in parcel_map.failures] == ["2000174:1695i"]
    records = [r for r in caplog.records if r.getMessage() == "Parcel lookup failed"]
    assert len(records) == 1
    assert records[0].parcel == "2000174:1695i"
    assert records[0].status_code == 500


def test_malformed_geometry_is_skipped(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1a'] = [{'geometri': {'type': 'MultiPolygon', 'coordinates': [{'x': 1}]}}]
    mocked_gsearch['routes']['2a'] = match_payload()

    parcel_map = _build("1:1a;1:2a", reprojector)

    assert [f.properties.id for f in parcel_map.features.features] == ["1:2a"]
    assert [f.identifier.key for f in parcel_map.failures] == ["1:1a"]
    assert _render(parcel_map).fit is not None


def test_all_failed_skips_fit(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1695i'] = (404, {})

    parcel_map = _build("2000174:1695i", reprojector)

    assert parcel_map.extent is None
    assert _render(parcel_map).fit is None


def test_one_fewer_feature_than_full_run(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1a'] = match_payload(ring=shifted_ring(0, 0))
    mocked_gsearch['routes']['2a'] = match_payload(ring=shifted_ring(500, 0))
    mocked_gsearch['routes']['3a'] = match_payload(ring=shifted_ring(1000, 0))
    full = _build("1:1a;1:2a;1:3a", reprojector)

    mocked_gsearch['routes']['2a'] = []
    degraded = _build("1:1a;1:2a;1:3a", reprojector)

    assert len(degraded.features.features) == len(full.features.features) - 1


def test_order_is_the_same_with_concurrency(mocked_gsearch, reprojector):
    for index, matrikel in enumerate(["1a", "2a", "3a"]):
        mocked_gsearch['routes'][matrikel] = match_payload(ring=shifted_ring(index * 500, 0))
    mocked_gsearch['delays'].update({'1a': 0.03, '2a': 0.0, '3a': 0.01})

    sequential = _build("1:1a;1:2a;1:3a", reprojector)
    concurrent = _build("1:1a;1:2a;1:3a", reprojector, concurrency=3)

    assert [f.properties.id for f in concurrent.features.features] == ["1:1a", "1:2a", "1:3a"]
    assert concurrent.extent == sequential.extent


def test_extent_spans_all_parcels(mocked_gsearch, reprojector):
    mocked_gsearch['routes']['1a'] = match_payload(ring=shifted_ring(0, 0))
    mocked_gsearch['routes']['2a'] = match_payload(ring=shifted_ring(5000, 5000))

    parcel_map = _build("1:1a;1:2a", reprojector)

    minx, miny, maxx, maxy = parcel_map.extent
    first = reprojector.to_display(shifted_ring(0, 0)[0])
    last = reprojector.to_display(shifted_ring(5000, 5000)[2])
    assert minx <= first[0] and miny <= first[1]
    assert maxx >= last[0] and maxy >= last[1]
