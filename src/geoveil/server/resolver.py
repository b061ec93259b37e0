"""
Plaintext resolution and POI ingestion helpers.

The resolver is the one place that may see plaintext: it turns an
encrypted record back into display fields plus the original coordinates
needed for true-distance ranking. The in-memory store here stands in for
whatever decrypting record store a deployment uses.
"""
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from geoveil.client.transform import CoordinateTransform
from geoveil.shared.protocol import BoundingBox, PlaintextPOI, POIRecord

logger = logging.getLogger(__name__)

PoiSource = Callable[[], Iterable[POIRecord]]


class PlaintextResolver(Protocol):
    """Maps an encrypted record to its plaintext form."""

    def resolve(self, record: POIRecord) -> Optional[PlaintextPOI]:
        ...


class InMemoryPlaintextStore:
    """Dictionary-backed PlaintextResolver."""

    def __init__(self, pois: Optional[Iterable[PlaintextPOI]] = None):
        self._pois: Dict[str, PlaintextPOI] = {}
        self._lock = threading.Lock()
        for poi in pois or ():
            self.add(poi)

    def add(self, poi: PlaintextPOI) -> None:
        with self._lock:
            self._pois[poi.id] = poi

    def remove(self, poi_id: str) -> bool:
        with self._lock:
            return self._pois.pop(poi_id, None) is not None

    def resolve(self, record: POIRecord) -> Optional[PlaintextPOI]:
        with self._lock:
            poi = self._pois.get(record.id)
        if poi is None:
            logger.debug("No plaintext available for POI %s", record.id)
        return poi

    def __len__(self) -> int:
        with self._lock:
            return len(self._pois)


def build_record(
    transform: CoordinateTransform,
    poi: PlaintextPOI,
    encrypted_fields: Optional[Dict[str, Any]] = None,
) -> POIRecord:
    """
    Encrypt a POI's location for indexing.

    The bounding box comes from a second, independent encryption of the
    same point, so it sits close to but not exactly on the stored location.

    Args:
        transform: Transform holding the master key
        poi: Plaintext POI with coordinates
        encrypted_fields: Opaque ciphertexts of the text fields

    Returns:
        POIRecord ready for SpatialIndex.insert / build_index
    """
    if poi.latitude is None or poi.longitude is None:
        raise ValueError(f"POI {poi.id} has no coordinates")

    location = transform.encrypt_point(poi.latitude, poi.longitude)
    box_point = transform.encrypt_point(poi.latitude, poi.longitude)

    return POIRecord(
        id=poi.id,
        encrypted_location=location,
        bounding_box=BoundingBox.from_point(box_point.coords),
        category=poi.category,
        encrypted_fields=dict(encrypted_fields or {}),
    )
