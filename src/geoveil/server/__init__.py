"""Server-side components for privacy-preserving search."""
from geoveil.server.cache import QueryCache
from geoveil.server.compute import PredicateEvaluator
from geoveil.server.index import SpatialIndex
from geoveil.server.query import QueryContext, QueryOrchestrator, generate_query_id
from geoveil.server.resolver import InMemoryPlaintextStore, PlaintextResolver, build_record
from geoveil.server.service import SearchParams, SearchService

__all__ = [
    "QueryCache",
    "PredicateEvaluator",
    "SpatialIndex",
    "QueryContext",
    "QueryOrchestrator",
    "generate_query_id",
    "InMemoryPlaintextStore",
    "PlaintextResolver",
    "build_record",
    "SearchParams",
    "SearchService",
]
