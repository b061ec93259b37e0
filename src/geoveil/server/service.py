"""
User-facing search service.

Validates requests, lazily builds the index from the ingestion source and
applies the caller-side category filter on top of the query orchestrator.
"""
import dataclasses
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Optional

from geoveil.server.query import QueryContext, QueryOrchestrator
from geoveil.server.resolver import PoiSource
from geoveil.shared.config import Settings, get_settings
from geoveil.shared.errors import ValidationError
from geoveil.shared.protocol import POIRecord, QueryOptions, QueryResult
from geoveil.shared.utils import Timer
from geoveil.shared.validators import validate_latitude, validate_longitude, validate_radius

logger = logging.getLogger(__name__)


@dataclass
class SearchParams:
    """Raw search request as received from the API layer."""
    latitude: Any
    longitude: Any
    radius: Any = None
    limit: Optional[int] = None
    category: Optional[str] = None
    use_cache: bool = True


class SearchService:
    """
    Privacy-preserving POI search for end users.

    Holds its own QueryContext, so two services never share an index or a
    cache.
    """

    def __init__(
        self,
        source: PoiSource,
        context: Optional[QueryContext] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            source: Returns the encrypted POIs to index
            context: Query context (built from settings when omitted)
            settings: Configuration for defaults and limits (process-wide when omitted)
        """
        self.settings = settings or get_settings()
        self.context = context or QueryContext.create(self.settings)
        self.orchestrator = QueryOrchestrator(self.context)
        self.source = source
        self.is_initialized = False

    def initialize(self) -> Dict[str, Any]:
        """
        Load POIs from the source and build the index.

        Returns:
            Summary dict; failures are reported with success=False
        """
        try:
            with Timer() as t:
                stats = self.orchestrator.initialize(self.source())
            self.is_initialized = True
            logger.info("Search service initialized in %.2fms", t.elapsed_ms)
            return {
                "success": True,
                "poi_count": stats.total_pois,
                "index_nodes": stats.total_nodes,
                "init_time_ms": round(t.elapsed_ms, 2),
            }
        except Exception as e:
            logger.error("Failed to initialize search service: %s", e)
            return {"success": False, "error": str(e)}

    def search(self, params: SearchParams, requester_id: str) -> QueryResult:
        """
        Validate and run a range search.

        Args:
            params: Raw request parameters
            requester_id: Caller identity for logging

        Returns:
            QueryResult; validation failures come back with success=False
        """
        with Timer() as t:
            try:
                lat = validate_latitude(params.latitude)
                lng = validate_longitude(params.longitude)
                radius_value = params.radius if params.radius is not None else self.settings.default_radius_km
                radius = validate_radius(radius_value, self.settings.max_radius_km)
            except ValidationError as e:
                logger.info("Rejected search from %s: %s", requester_id, e)
                return QueryResult(success=False, query_id="", error=str(e), results=[])

            if not self.is_initialized:
                self.initialize()

            result = self.orchestrator.execute_query(
                lat,
                lng,
                radius,
                requester_id,
                QueryOptions(
                    use_cache=params.use_cache,
                    decrypt=True,
                    limit=params.limit or self.settings.default_limit,
                ),
            )

            # Never mutate the result in place: it may be the cached object.
            if result.success and params.category:
                filtered = [r for r in result.results if r.category == params.category]
                result = dataclasses.replace(
                    result,
                    results=filtered,
                    metadata=dataclasses.replace(result.metadata, returned_count=len(filtered)),
                )

        if result.metadata is not None:
            result = dataclasses.replace(
                result,
                metadata=dataclasses.replace(result.metadata, total_time_ms=round(t.elapsed_ms, 2)),
            )
        return result

    def add_poi(self, record: POIRecord) -> None:
        """Index one new POI and drop cached results that may now be stale."""
        self.context.index.insert(record)
        self.context.cache.clear()

    def remove_poi(self, poi_id: str) -> bool:
        """Remove one POI from the index; False when it was not indexed."""
        removed = self.context.index.remove(poi_id)
        if removed:
            self.context.cache.clear()
        return removed

    def get_categories(self) -> Dict[str, Any]:
        """Number of indexed POIs per category."""
        counts = Counter(record.category or "unknown" for record in self.context.index.get_all())
        return {
            "success": True,
            "categories": [{"name": name, "count": count} for name, count in sorted(counts.items())],
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "is_initialized": self.is_initialized,
            "processor_stats": self.orchestrator.get_stats(),
            "default_radius_km": self.settings.default_radius_km,
            "max_radius_km": self.settings.max_radius_km,
        }

    def clear_cache(self) -> None:
        self.orchestrator.clear_cache()

    def refresh(self) -> Dict[str, Any]:
        """Drop the cache and rebuild the index from the source."""
        self.is_initialized = False
        self.orchestrator.clear_cache()
        return self.initialize()
