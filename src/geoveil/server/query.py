"""
Server-side range query orchestration.

Coordinates the full query flow:
1. Check the result cache
2. Generate an encrypted query token
3. Prune candidates through the spatial index
4. Evaluate the predicate on each candidate
5. Resolve plaintext and rank by true distance
6. Store the result in the cache
"""
import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

import numpy as np

from geoveil.client.tokens import QueryTokenGenerator
from geoveil.server.cache import QueryCache
from geoveil.server.compute import PredicateEvaluator
from geoveil.server.index import SpatialIndex
from geoveil.server.resolver import PlaintextResolver
from geoveil.shared import events as ev
from geoveil.shared.config import Settings, get_settings
from geoveil.shared.errors import QueryExecutionError
from geoveil.shared.events import EventSink, LoggingEventSink
from geoveil.shared.protocol import (
    IndexStats,
    POIRecord,
    QueryMetadata,
    QueryOptions,
    QueryResult,
    SearchResult,
)
from geoveil.shared.utils import Timer, format_number, haversine_km, round_half_up

logger = logging.getLogger(__name__)


def generate_query_id(lat: float, lng: float, radius_km: float) -> str:
    """
    Cache fingerprint for a query.

    Built from the rounded plaintext parameters rather than the token, so
    repeated queries share a slot even though every token is randomized.
    """
    return "_".join([
        format_number(round_half_up(lat, 3)),
        format_number(round_half_up(lng, 3)),
        format_number(round_half_up(radius_km, 1)),
    ])


@dataclass
class QueryContext:
    """
    Everything a query needs, owned explicitly.

    Separate contexts never share index or cache state, which lets several
    tenants (or tests) run side by side.
    """
    token_generator: QueryTokenGenerator
    index: SpatialIndex
    evaluator: PredicateEvaluator
    cache: QueryCache[QueryResult]
    resolver: Optional[PlaintextResolver] = None
    events: EventSink = field(default_factory=LoggingEventSink)

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        resolver: Optional[PlaintextResolver] = None,
        events: Optional[EventSink] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "QueryContext":
        """
        Build a fresh context from settings.

        Args:
            settings: Configuration (defaults to the process-wide get_settings())
            resolver: Plaintext resolver for decrypting results
            events: Event sink shared by all components
            rng: Random generator for the transform
            clock: Epoch-millisecond clock for tokens and expiry checks
        """
        settings = settings or get_settings()
        events = events or LoggingEventSink()

        cache_clock = None
        if clock is not None:
            def cache_clock() -> float:
                return clock() / 1000.0

        return cls(
            token_generator=QueryTokenGenerator(
                settings.resolved_master_key(),
                noise_scale=settings.noise_scale,
                token_ttl_ms=int(settings.token_ttl_seconds * 1000),
                rng=rng,
                clock=clock,
            ),
            index=SpatialIndex(max_entries=settings.index_max_entries, events=events),
            evaluator=PredicateEvaluator(
                enforce_expiry=settings.enforce_token_expiry,
                clock=clock,
            ),
            cache=QueryCache(
                max_entries=settings.cache_max_entries,
                max_age_seconds=settings.cache_max_age_seconds,
                clock=cache_clock,
            ),
            resolver=resolver,
            events=events,
        )


class QueryOrchestrator:
    """
    Runs privacy-preserving range queries against a QueryContext.

    Never raises from execute_query: failures come back as a QueryResult
    with success=False.
    """

    def __init__(self, context: QueryContext):
        """
        Args:
            context: Index, cache, token generator and collaborators to use
        """
        self.context = context

    def initialize(self, records: Iterable[POIRecord]) -> IndexStats:
        """Build the spatial index from encrypted records."""
        return self.context.index.build_index(records)

    def execute_query(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        requester_id: str,
        options: Optional[QueryOptions] = None,
    ) -> QueryResult:
        """
        Execute a range query.

        Args:
            lat: Query centre latitude (validated upstream)
            lng: Query centre longitude (validated upstream)
            radius_km: Search radius in kilometers (validated upstream)
            requester_id: Caller identity, used for logging only
            options: Cache / decryption / limit switches

        Returns:
            QueryResult with ranked results and per-stage timings
        """
        options = options or QueryOptions()
        ctx = self.context
        query_id = generate_query_id(lat, lng, radius_km)

        try:
            with Timer() as total:
                self._validate(lat, lng, radius_km)

                if options.use_cache:
                    cached = ctx.cache.get(query_id)
                    if cached is not None:
                        ctx.events.emit(ev.CACHE_HIT, query_id=query_id)
                        return cached
                    ctx.events.emit(ev.CACHE_MISS, query_id=query_id)

                with Timer() as t_token:
                    token = ctx.token_generator.generate_token(lat, lng, radius_km)
                ctx.events.emit(
                    ev.TOKEN_GENERATED,
                    query_id=query_id,
                    elapsed_ms=round(t_token.elapsed_ms, 2),
                )

                with Timer() as t_search:
                    candidates = ctx.index.search(token.encrypted_bounds)
                ctx.events.emit(
                    ev.INDEX_SEARCHED,
                    query_id=query_id,
                    candidates=len(candidates),
                    elapsed_ms=round(t_search.elapsed_ms, 2),
                )

                with Timer() as t_eval:
                    matching = ctx.evaluator.filter(candidates, token)
                ctx.events.emit(
                    ev.PREDICATE_EVALUATED,
                    query_id=query_id,
                    matched=len(matching),
                    elapsed_ms=round(t_eval.elapsed_ms, 2),
                )

                decrypt_ms = 0.0
                if options.decrypt:
                    with Timer() as t_decrypt:
                        results = [self._resolve(record, lat, lng) for record in matching]
                        results.sort(key=lambda r: r.distance_km)
                    decrypt_ms = t_decrypt.elapsed_ms
                else:
                    results = [
                        SearchResult(poi_id=record.id, category=record.category, record=record)
                        for record in matching
                    ]

                if options.limit:
                    results = results[:options.limit]
                for rank, result in enumerate(results):
                    result.rank = rank + 1

            query_result = QueryResult(
                success=True,
                query_id=query_id,
                results=results,
                metadata=QueryMetadata(
                    total_candidates=len(candidates),
                    matching_count=len(matching),
                    returned_count=len(results),
                    timing={
                        "token_generation": round(t_token.elapsed_ms, 2),
                        "spatial_search": round(t_search.elapsed_ms, 2),
                        "predicate_evaluation": round(t_eval.elapsed_ms, 2),
                        "decryption": round(decrypt_ms, 2),
                        "total": round(total.elapsed_ms, 2),
                    },
                ),
            )

            if options.use_cache:
                ctx.cache.put(query_id, query_result)

            ctx.events.emit(
                ev.QUERY_EXECUTED,
                query_id=query_id,
                requester_id=requester_id,
                result_count=len(results),
                elapsed_ms=round(total.elapsed_ms, 2),
            )
            return query_result

        except Exception as e:
            logger.debug("Query %s failed", query_id, exc_info=True)
            ctx.events.emit(
                ev.QUERY_FAILED,
                query_id=query_id,
                requester_id=requester_id,
                error=str(e),
            )
            return QueryResult(success=False, query_id=query_id, error=str(e), results=[])

    @staticmethod
    def _validate(lat: float, lng: float, radius_km: float) -> None:
        for name, value in (("lat", lat), ("lng", lng), ("radius_km", radius_km)):
            if not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise QueryExecutionError(f"{name} must be a finite number, got {value!r}")

    def _resolve(self, record: POIRecord, lat: float, lng: float) -> SearchResult:
        """Attach plaintext attributes and the true distance to the query centre."""
        poi = self.context.resolver.resolve(record) if self.context.resolver else None
        if poi is None:
            return SearchResult(poi_id=record.id, category=record.category, record=record)

        return SearchResult(
            poi_id=record.id,
            category=poi.category or record.category,
            distance_km=self.calculate_distance(poi.latitude, poi.longitude, lat, lng),
            attributes=poi.attributes(),
            record=record,
        )

    @staticmethod
    def calculate_distance(
        poi_lat: Optional[float],
        poi_lng: Optional[float],
        query_lat: float,
        query_lng: float,
    ) -> float:
        """Haversine distance in km, or 0 when the original coordinates are unknown."""
        if poi_lat is None or poi_lng is None:
            return 0.0
        return haversine_km(query_lat, query_lng, poi_lat, poi_lng)

    def clear_cache(self) -> None:
        self.context.cache.clear()
        logger.info("Query cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Index statistics plus cache occupancy."""
        return {
            "index_stats": self.context.index.get_stats(),
            "cache_size": len(self.context.cache),
            "cache_max_size": self.context.cache.max_entries,
        }
