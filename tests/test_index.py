"""Tests for the spatial index."""
import pytest

from geoveil.server.index import SpatialIndex, extract_bounding_box
from geoveil.shared.events import INDEX_BUILT
from geoveil.shared.protocol import BoundingBox, EncryptedBounds, EncryptedLocation, POIRecord
from geoveil.shared.utils import generate_random_points


def point_record(poi_id, x, y, category=None):
    return POIRecord(
        id=poi_id,
        encrypted_location=EncryptedLocation(coords=(x, y, 0.0, 0.0)),
        category=category,
    )


class TestExtractBoundingBox:
    """Test how records map to index boxes."""

    def test_stored_box_wins(self):
        box = BoundingBox(1.0, 2.0, 3.0, 4.0)
        record = POIRecord(
            id="a",
            encrypted_location=EncryptedLocation(coords=(9.0, 9.0, 9.0, 9.0)),
            bounding_box=box,
        )
        assert extract_bounding_box(record) == box

    def test_stored_box_is_normalized(self):
        record = POIRecord(id="a", bounding_box=BoundingBox(3.0, 4.0, 1.0, 2.0))
        assert extract_bounding_box(record) == BoundingBox(1.0, 2.0, 3.0, 4.0)

    def test_falls_back_to_location(self):
        assert extract_bounding_box(point_record("a", 0.3, 0.7)) == BoundingBox(0.3, 0.7, 0.3, 0.7)

    def test_empty_record(self):
        assert extract_bounding_box(POIRecord(id="a")) == BoundingBox(0.0, 0.0, 0.0, 0.0)


class TestSpatialIndex:
    """Test build, search and incremental updates."""

    def test_search_returns_only_intersecting(self, events):
        index = SpatialIndex(events=events)
        index.build_index([
            point_record("inside", 0.5, 0.5),
            point_record("outside", 0.9, 0.9),
        ])

        results = index.search(BoundingBox(0.4, 0.4, 0.6, 0.6))
        assert [r.id for r in results] == ["inside"]

    def test_search_with_stored_boxes(self):
        index = SpatialIndex()
        index.build_index([
            POIRecord(id="near", bounding_box=BoundingBox(0.4, 0.4, 0.6, 0.6)),
            POIRecord(id="far", bounding_box=BoundingBox(0.85, 0.85, 0.95, 0.95)),
        ])
        assert [r.id for r in index.search(BoundingBox(0.3, 0.3, 0.7, 0.7))] == ["near"]

    def test_inverted_stored_box_insert_and_search(self):
        """Stored boxes are normalized on both the insert and bulk-load paths."""
        index = SpatialIndex()
        index.insert(POIRecord(id="a", bounding_box=BoundingBox(0.6, 0.6, 0.4, 0.4)))
        assert [r.id for r in index.search(BoundingBox(0.45, 0.45, 0.55, 0.55))] == ["a"]

        index.build_index([POIRecord(id="b", bounding_box=BoundingBox(0.6, 0.6, 0.4, 0.4))])
        assert [r.id for r in index.search(BoundingBox(0.45, 0.45, 0.55, 0.55))] == ["b"]

    def test_search_accepts_encrypted_bounds_in_any_order(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.5, 0.5), point_record("b", 0.9, 0.9)])

        bounds = EncryptedBounds(
            encrypted_min=(0.6, 0.6, 0.0, 0.0),
            encrypted_max=(0.4, 0.4, 0.0, 0.0),
        )
        assert [r.id for r in index.search(bounds)] == ["a"]

    def test_inverted_box_is_normalized(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.5, 0.5)])
        assert len(index.search(BoundingBox(0.6, 0.6, 0.4, 0.4))) == 1

    def test_build_reports_stats_and_event(self, events):
        index = SpatialIndex(events=events)
        stats = index.build_index([point_record(f"p{i}", i / 100, i / 100) for i in range(50)])

        assert stats.total_pois == 50
        assert stats.total_nodes > 0
        assert stats.last_build_time_ms is not None
        assert stats.query_count == 0
        assert events.names == [INDEX_BUILT]

    @pytest.mark.parametrize("fanout", [4, 9, 16, 32, 64])
    def test_supported_fanouts(self, fanout):
        index = SpatialIndex(max_entries=fanout)
        index.insert(point_record("a", 0.1, 0.1))
        stats = index.build_index([point_record(f"p{i}", i / 200, i / 200) for i in range(200)])

        assert stats.total_pois == 200
        assert len(index.search(BoundingBox(0.0, 0.0, 1.0, 1.0))) == 200

    def test_build_empty(self):
        stats = SpatialIndex().build_index([])
        assert stats.total_pois == 0
        assert stats.total_nodes == 0

    def test_rebuild_replaces_contents(self):
        index = SpatialIndex()
        index.build_index([point_record("old", 0.1, 0.1)])
        index.build_index([point_record("new", 0.2, 0.2)])

        assert "old" not in index
        assert "new" in index
        assert len(index) == 1

    def test_duplicate_ids_keep_last(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.1, 0.1), point_record("a", 0.8, 0.8)])

        assert len(index) == 1
        assert index.search(BoundingBox(0.0, 0.0, 0.2, 0.2)) == []
        assert len(index.search(BoundingBox(0.7, 0.7, 0.9, 0.9))) == 1

    def test_insert_and_remove(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.1, 0.1)])
        index.insert(point_record("b", 0.5, 0.5))

        assert [r.id for r in index.search(BoundingBox(0.4, 0.4, 0.6, 0.6))] == ["b"]
        assert index.get_stats().total_pois == 2

        assert index.remove("b") is True
        assert index.search(BoundingBox(0.4, 0.4, 0.6, 0.6)) == []
        assert index.get_stats().total_pois == 1

    def test_remove_unknown(self):
        index = SpatialIndex()
        assert index.remove("missing") is False

    def test_reinsert_moves_entry(self):
        index = SpatialIndex()
        index.insert(point_record("a", 0.1, 0.1))
        index.insert(point_record("a", 0.9, 0.9))

        assert len(index) == 1
        assert index.search(BoundingBox(0.0, 0.0, 0.2, 0.2)) == []
        assert len(index.search(BoundingBox(0.8, 0.8, 1.0, 1.0))) == 1

    def test_query_count(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.1, 0.1)])
        for _ in range(3):
            index.search(BoundingBox(0.0, 0.0, 1.0, 1.0))
        assert index.get_stats().query_count == 3

    def test_stats_are_a_copy(self):
        index = SpatialIndex()
        stats = index.get_stats()
        stats.query_count = 99
        assert index.get_stats().query_count == 0

    def test_identical_points(self):
        index = SpatialIndex(max_entries=4)
        index.build_index([point_record(f"p{i}", 0.5, 0.5) for i in range(20)])
        assert len(index.search(BoundingBox(0.5, 0.5, 0.5, 0.5))) == 20

    def test_get_all_and_get(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.1, 0.1, "cafe"), point_record("b", 0.2, 0.2)])

        assert sorted(r.id for r in index.get_all()) == ["a", "b"]
        assert index.get("a").category == "cafe"
        assert index.get("zzz") is None

    def test_clear(self):
        index = SpatialIndex()
        index.build_index([point_record("a", 0.1, 0.1)])
        index.search(BoundingBox(0.0, 0.0, 1.0, 1.0))
        index.clear()

        assert len(index) == 0
        assert index.search(BoundingBox(0.0, 0.0, 1.0, 1.0)) == []
        assert index.get_stats().total_pois == 0

    def test_bulk_build_thousand_points(self):
        """Bulk loading 1000 POIs stays well under a second."""
        points = generate_random_points(1000, seed=1)
        records = [
            point_record(f"p{i}", (lat + 90) / 180, (lng + 180) / 360)
            for i, (lat, lng) in enumerate(points)
        ]
        stats = SpatialIndex().build_index(records)

        assert stats.total_pois == 1000
        assert stats.last_build_time_ms < 1000
