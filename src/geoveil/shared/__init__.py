"""Shared utilities and protocol definitions."""
from geoveil.shared.protocol import (
    BoundingBox,
    CacheEntry,
    EncryptedBounds,
    EncryptedLocation,
    IndexStats,
    PlaintextPOI,
    POIRecord,
    QueryMetadata,
    QueryOptions,
    QueryResult,
    QueryToken,
    SearchResult,
)
from geoveil.shared.utils import (
    haversine_km,
    km_to_lat_degrees,
    km_to_lng_degrees,
    generate_random_points,
    Timer,
)
from geoveil.shared.errors import (
    GeoveilError,
    ValidationError,
    TokenExpiredError,
    QueryExecutionError,
)
from geoveil.shared.config import Settings, get_settings

__all__ = [
    "BoundingBox",
    "CacheEntry",
    "EncryptedBounds",
    "EncryptedLocation",
    "IndexStats",
    "PlaintextPOI",
    "POIRecord",
    "QueryMetadata",
    "QueryOptions",
    "QueryResult",
    "QueryToken",
    "SearchResult",
    "haversine_km",
    "km_to_lat_degrees",
    "km_to_lng_degrees",
    "generate_random_points",
    "Timer",
    "GeoveilError",
    "ValidationError",
    "TokenExpiredError",
    "QueryExecutionError",
    "Settings",
    "get_settings",
]
