"""
R-tree index over encrypted bounding boxes for coarse candidate filtering.

Backed by rtree (libspatialindex). Full builds use the STR bulk loader;
single POIs are inserted and deleted incrementally.
"""
import itertools
import logging
import math
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union

from rtree import index as rtree_index

from geoveil.shared import events as ev
from geoveil.shared.events import EventSink, LoggingEventSink
from geoveil.shared.protocol import BoundingBox, EncryptedBounds, IndexStats, POIRecord
from geoveil.shared.utils import Timer

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 9

_EMPTY_BOX = BoundingBox(0.0, 0.0, 0.0, 0.0)


def extract_bounding_box(record: POIRecord) -> BoundingBox:
    """
    Box under which a record is indexed.

    Uses the stored box when the record has one (normalized, since encrypted
    corners need not be ordered), otherwise a degenerate box at the first
    two encrypted coordinates.
    """
    if record.bounding_box is not None:
        return record.bounding_box.normalized()
    if record.encrypted_location is not None and len(record.encrypted_location) >= 2:
        return BoundingBox.from_point(record.encrypted_location.coords)
    return _EMPTY_BOX


class SpatialIndex:
    """
    Bounding-box tree keyed by opaque POI identifier.

    The tree only stores integer slots; a side map resolves slots back to
    the full POIRecord. Every tree operation runs under one lock, so a
    search never observes a half-applied mutation.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        events: Optional[EventSink] = None,
    ):
        """
        Initialize an empty index.

        Args:
            max_entries: Node fan-out (leaf and branch capacity)
            events: Sink for index_built events
        """
        self.max_entries = max_entries
        self.events = events or LoggingEventSink()

        self._lock = threading.RLock()
        self._slots = itertools.count()
        self._tree = self._new_tree()
        self._records: Dict[str, POIRecord] = {}
        self._entries: Dict[str, Tuple[int, BoundingBox]] = {}
        self._ids_by_slot: Dict[int, str] = {}
        self._stats = IndexStats()

    def _properties(self) -> rtree_index.Property:
        props = rtree_index.Property()
        props.dimension = 2
        props.leaf_capacity = self.max_entries
        props.index_capacity = self.max_entries
        # libspatialindex requires this below both capacities.
        props.near_minimum_overlap_factor = min(32, self.max_entries - 1)
        return props

    def _new_tree(self, stream=None) -> rtree_index.Index:
        if stream:
            return rtree_index.Index(iter(stream), properties=self._properties())
        return rtree_index.Index(properties=self._properties())

    def build_index(self, records: Iterable[POIRecord]) -> IndexStats:
        """
        Replace the index contents with the given records.

        Args:
            records: Encrypted POIs from the ingestion collaborator

        Returns:
            Build statistics; the query counter is reset
        """
        with Timer() as t:
            records_by_id: Dict[str, POIRecord] = {}
            for record in records:
                records_by_id[record.id] = record

            entries: Dict[str, Tuple[int, BoundingBox]] = {}
            ids_by_slot: Dict[int, str] = {}
            stream = []
            for slot, (poi_id, record) in enumerate(records_by_id.items()):
                box = extract_bounding_box(record)
                entries[poi_id] = (slot, box)
                ids_by_slot[slot] = poi_id
                stream.append((slot, box.as_tuple(), None))

            tree = self._new_tree(stream)

            with self._lock:
                self._tree = tree
                self._records = records_by_id
                self._entries = entries
                self._ids_by_slot = ids_by_slot
                self._slots = itertools.count(len(stream))
                self._stats = IndexStats(
                    total_nodes=self._count_nodes(),
                    total_pois=len(records_by_id),
                    query_count=0,
                )

        with self._lock:
            self._stats.last_build_time_ms = t.elapsed_ms
            stats = self.get_stats()

        logger.info(
            "Spatial index built in %.2fms (%d POIs, %d nodes)",
            t.elapsed_ms, stats.total_pois, stats.total_nodes,
        )
        self.events.emit(
            ev.INDEX_BUILT,
            total_pois=stats.total_pois,
            total_nodes=stats.total_nodes,
            build_ms=round(t.elapsed_ms, 2),
        )
        return stats

    def _count_nodes(self) -> int:
        """Leaves reported by the tree plus the branch levels above them."""
        if not self._records:
            return 0
        level = len(self._tree.leaves())
        total = level
        while level > 1:
            level = math.ceil(level / self.max_entries)
            total += level
        return total

    def insert(self, record: POIRecord) -> None:
        """Add one POI without rebuilding. A known id replaces its old entry."""
        box = extract_bounding_box(record)
        with self._lock:
            if record.id in self._entries:
                self._delete_entry(record.id)
            slot = next(self._slots)
            self._tree.insert(slot, box.as_tuple())
            self._entries[record.id] = (slot, box)
            self._ids_by_slot[slot] = record.id
            self._records[record.id] = record
            self._stats.total_pois = len(self._records)

    def remove(self, poi_id: str) -> bool:
        """
        Remove a POI.

        Returns:
            False when the id is not indexed
        """
        with self._lock:
            if poi_id not in self._entries:
                return False
            self._delete_entry(poi_id)
            self._stats.total_pois = len(self._records)
            return True

    def _delete_entry(self, poi_id: str) -> None:
        slot, box = self._entries.pop(poi_id)
        self._tree.delete(slot, box.as_tuple())
        self._ids_by_slot.pop(slot, None)
        self._records.pop(poi_id, None)

    def search(self, bounds: Union[EncryptedBounds, BoundingBox]) -> List[POIRecord]:
        """
        Find POIs whose box intersects the query box.

        The query corners are normalized first since encryption does not
        keep min below max.

        Args:
            bounds: Encrypted query bounds or an explicit box

        Returns:
            Candidate records (a superset of the true matches)
        """
        if isinstance(bounds, EncryptedBounds):
            box = bounds.to_box()
        else:
            box = bounds.normalized()

        with Timer() as t:
            with self._lock:
                self._stats.query_count += 1
                slots = list(self._tree.intersection(box.as_tuple()))
                results = []
                for slot in slots:
                    poi_id = self._ids_by_slot.get(slot)
                    record = self._records.get(poi_id) if poi_id is not None else None
                    if record is not None:
                        results.append(record)

        logger.debug(
            "Spatial search completed in %.2fms (%d candidates, %d results)",
            t.elapsed_ms, len(slots), len(results),
        )
        return results

    def get_all(self) -> List[POIRecord]:
        """All indexed records."""
        with self._lock:
            return list(self._records.values())

    def get(self, poi_id: str) -> Optional[POIRecord]:
        with self._lock:
            return self._records.get(poi_id)

    def get_stats(self) -> IndexStats:
        """Copy of the current statistics."""
        with self._lock:
            return IndexStats(
                total_nodes=self._stats.total_nodes,
                total_pois=self._stats.total_pois,
                last_build_time_ms=self._stats.last_build_time_ms,
                query_count=self._stats.query_count,
            )

    def clear(self) -> None:
        """Empty the index and reset statistics."""
        with self._lock:
            self._tree = self._new_tree()
            self._records = {}
            self._entries = {}
            self._ids_by_slot = {}
            self._slots = itertools.count()
            self._stats = IndexStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, poi_id: str) -> bool:
        with self._lock:
            return poi_id in self._records
