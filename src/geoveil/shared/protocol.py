"""
Data model shared by the client and server sides.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

POINT_DIMENSION = 4
QUERY_DIMENSION = 6


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in transformed-coordinate space."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_point(cls, coords: Sequence[float]) -> "BoundingBox":
        """Degenerate box (min == max) from the first two components."""
        x, y = float(coords[0]), float(coords[1])
        return cls(x, y, x, y)

    @classmethod
    def from_corners(
        cls, corner_a: Sequence[float], corner_b: Sequence[float]
    ) -> "BoundingBox":
        """Box spanning two corners, whatever order they come in."""
        return cls(
            float(corner_a[0]), float(corner_a[1]),
            float(corner_b[0]), float(corner_b[1]),
        ).normalized()

    def normalized(self) -> "BoundingBox":
        """Swap min/max per axis when they are inverted."""
        return BoundingBox(
            min(self.min_x, self.max_x),
            min(self.min_y, self.max_y),
            max(self.min_x, self.max_x),
            max(self.min_y, self.max_y),
        )

    def intersects(self, other: "BoundingBox") -> bool:
        return (
            self.min_x <= other.max_x
            and other.min_x <= self.max_x
            and self.min_y <= other.max_y
            and other.min_y <= self.max_y
        )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class EncryptedLocation:
    """
    Transformed location of a POI.

    coords is the 4-d output of the coordinate transform. It is produced
    once at ingestion and never edited afterwards.
    """
    coords: Tuple[float, ...]
    timestamp: int = 0  # epoch ms
    version: str = "1.0"

    def __len__(self) -> int:
        return len(self.coords)


@dataclass(frozen=True)
class EncryptedBounds:
    """Encrypted min/max corners of a query region."""
    encrypted_min: Tuple[float, ...]
    encrypted_max: Tuple[float, ...]

    def to_box(self) -> BoundingBox:
        """
        Project the corners onto the indexed plane.

        The encryption does not preserve ordering, so the result is
        normalized before use.
        """
        return BoundingBox.from_corners(self.encrypted_min, self.encrypted_max)


@dataclass(frozen=True)
class QueryToken:
    """
    Encrypted representation of a range search request.

    Tokens are request scoped and never persisted.
    """
    encrypted_query: Tuple[float, ...]
    encrypted_bounds: EncryptedBounds
    radius_normalized: float
    created_at: int  # epoch ms
    expires_at: int  # epoch ms

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at


@dataclass
class POIRecord:
    """
    Encrypted POI as supplied by the ingestion collaborator.

    encrypted_fields holds the opaque ciphertexts of the display fields;
    this package never looks inside them. category stays plaintext and is
    only used for caller-side filtering.
    """
    id: str
    encrypted_location: Optional[EncryptedLocation] = None
    bounding_box: Optional[BoundingBox] = None
    category: Optional[str] = None
    encrypted_fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlaintextPOI:
    """Decrypted display fields plus the original coordinates."""
    id: str
    name: str
    category: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""
    description: str = ""
    phone: str = ""

    def attributes(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "address": self.address,
            "description": self.description,
            "phone": self.phone,
        }


@dataclass
class QueryOptions:
    """Per-call switches for the query orchestrator."""
    use_cache: bool = True
    decrypt: bool = True
    limit: Optional[int] = None


@dataclass
class SearchResult:
    """One POI returned by a range query."""
    poi_id: str
    category: Optional[str]
    distance_km: float = 0.0
    rank: int = 0
    attributes: Dict[str, Any] = field(default_factory=dict)
    record: Optional[POIRecord] = None


@dataclass
class QueryMetadata:
    """Counts and per-stage timings (ms, 2 decimals) for a query."""
    total_candidates: int = 0
    matching_count: int = 0
    returned_count: int = 0
    timing: Dict[str, float] = field(default_factory=dict)
    total_time_ms: Optional[float] = None


@dataclass
class QueryResult:
    """Outcome of a range query. Failures carry an error and no results."""
    success: bool
    query_id: str
    results: List[SearchResult] = field(default_factory=list)
    metadata: Optional[QueryMetadata] = None
    error: Optional[str] = None


@dataclass
class IndexStats:
    """Statistics reported by the spatial index."""
    total_nodes: int = 0
    total_pois: int = 0
    last_build_time_ms: Optional[float] = None
    query_count: int = 0


@dataclass
class CacheEntry(Generic[T]):
    """A cached value and the wall-clock time (seconds) it was stored."""
    key: str
    value: T
    inserted_at: float
