"""Tests for merging samples and media into a timeline."""

import pytest

from conftest import FakeCatalog, FakeGeotagReader, record
from core.models import LatLng, LocationSample, MediaItem, MediaKind
from core.services.interfaces import MediaIndexResult
from core.services.media_indexer import UNPLACED, MediaIndexer
from core.services.timeline_merger import TimelineMerger, floor_ceiling


def sample(ts, lat, lng):
    return LocationSample(ts, LatLng(lat, lng))


def item(id, ts, position=UNPLACED, geotagged=False):
    return MediaItem(
        path=f"/media/{id}.jpg",
        id=id,
        timestamp_ms=ts,
        kind=MediaKind.IMAGE,
        position=position,
        has_direct_geotag=geotagged,
    )


def samples_of(*items):
    return {s.timestamp_ms: s for s in items}


class TestFloorCeiling:
    @pytest.mark.parametrize(
        "timestamp, expected",
        [(20, (20, 20)), (25, (20, 30)), (5, (None, 10)), (35, (30, None))],
    )
    def test_lookup(self, timestamp, expected):
        assert floor_ceiling([10, 20, 30], timestamp) == expected

    def test_exclude_skips_exact_key(self):
        assert floor_ceiling([10, 20, 30], 20, exclude=20) == (10, 30)

    def test_empty(self):
        assert floor_ceiling([], 5) == (None, None)


class TestMerge:
    def test_midpoint_between_samples(self):
        samples = samples_of(sample(0, 0, 0), sample(1000, 0, 10))
        index = MediaIndexResult(ungeotagged=[item(1, 500)])
        timeline = TimelineMerger().merge(samples, index)

        (placed,) = timeline.media_items
        assert not placed.has_direct_geotag
        assert placed.position.lat == pytest.approx(0.0, abs=1e-9)
        assert placed.position.lng == pytest.approx(5.0)

    def test_before_first_sample_uses_ceiling(self):
        samples = samples_of(sample(1000, 3, 4))
        index = MediaIndexResult(ungeotagged=[item(1, 10)])
        (placed,) = TimelineMerger().merge(samples, index).media_items
        assert placed.position == LatLng(3, 4)

    def test_after_last_sample_uses_floor(self):
        samples = samples_of(sample(1000, 3, 4))
        index = MediaIndexResult(ungeotagged=[item(1, 5000)])
        (placed,) = TimelineMerger().merge(samples, index).media_items
        assert placed.position == LatLng(3, 4)

    def test_items_without_any_sample_are_dropped(self):
        index = MediaIndexResult(ungeotagged=[item(1, 500), item(2, 600)])
        timeline = TimelineMerger().merge({}, index)
        assert timeline.media_items == ()
        assert timeline.sample_count == 0

    def test_contributed_samples_place_other_items(self):
        tagged = item(1, 0, LatLng(0, 0), geotagged=True)
        index = MediaIndexResult(
            geotagged=[tagged],
            ungeotagged=[item(2, 500)],
            contributed_samples={0: sample(0, 0, 0)},
        )
        timeline = TimelineMerger().merge(samples_of(sample(1000, 0, 10)), index)

        assert [m.id for m in timeline.media_items] == [1, 2]
        assert timeline.media_items[0] is tagged
        assert timeline.media_items[1].position.lng == pytest.approx(5.0)
        assert list(timeline.samples) == [0, 1000]

    def test_sample_contributed_at_item_time_is_not_a_donor(self):
        """An item never takes its position from a geotag captured at its own time."""
        catalog = FakeCatalog([record(1, taken=500, added=1), record(2, taken=500, added=1)])
        geotags = FakeGeotagReader({"/media/Camera/1.jpg": LatLng(1, 1)})
        index = MediaIndexer(catalog, geotags).index(0, 10_000)
        assert list(index.contributed_samples) == [500]
        assert [m.id for m in index.ungeotagged] == [2]

        timeline = TimelineMerger().merge(samples_of(sample(0, 0, 0)), index)

        placed = {m.id: m for m in timeline.media_items}
        assert placed[1].position == LatLng(1, 1)
        assert placed[1].has_direct_geotag
        assert placed[2].position == LatLng(0, 0)
        assert list(timeline.samples) == [0, 500]

    def test_item_with_only_its_own_time_sample_is_dropped(self):
        catalog = FakeCatalog([record(1, taken=500, added=1), record(2, taken=500, added=1)])
        geotags = FakeGeotagReader({"/media/Camera/1.jpg": LatLng(1, 1)})
        index = MediaIndexer(catalog, geotags).index(0, 10_000)

        timeline = TimelineMerger().merge({}, index)

        assert [m.id for m in timeline.media_items] == [1]

    def test_duplicate_ids_keep_first(self):
        tagged = item(1, 100, LatLng(9, 9), geotagged=True)
        index = MediaIndexResult(geotagged=[tagged], ungeotagged=[item(1, 100)])
        timeline = TimelineMerger().merge(samples_of(sample(0, 0, 0)), index)
        assert timeline.media_items == (tagged,)

    def test_progress_reaches_100_once(self):
        progress: list[int] = []
        TimelineMerger().merge({}, MediaIndexResult(), progress=progress.append)
        assert progress == [100]

    def test_log_samples_are_sorted_and_read_only(self):
        samples = samples_of(sample(30, 0, 0), sample(10, 0, 0), sample(20, 0, 0))
        timeline = TimelineMerger().merge(samples, MediaIndexResult())
        assert list(timeline.samples) == [10, 20, 30]
        with pytest.raises(TypeError):
            timeline.samples[40] = sample(40, 0, 0)

    def test_geotagged_and_interpolated_views(self):
        tagged = item(1, 0, LatLng(0, 0), geotagged=True)
        index = MediaIndexResult(
            geotagged=[tagged],
            ungeotagged=[item(2, 500)],
            contributed_samples={0: sample(0, 0, 0)},
        )
        timeline = TimelineMerger().merge(samples_of(sample(1000, 0, 10)), index)

        assert timeline.geotagged_items() == [tagged]
        assert [m.id for m in timeline.interpolated_items()] == [2]
