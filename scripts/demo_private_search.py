#!/usr/bin/env python3
"""
End-to-end demo: encrypted POI ingestion followed by private range search.

1. Setup: random POIs around a city centre are encrypted and indexed
2. Search: range queries run against encrypted data only
3. Results: ranked matches plus the per-stage timing breakdown
"""
import sys
import argparse
from pathlib import Path

import numpy as np

# Add src to path for development
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from geoveil.server.query import QueryContext
from geoveil.server.resolver import InMemoryPlaintextStore, build_record
from geoveil.server.service import SearchParams, SearchService
from geoveil.shared.config import get_settings
from geoveil.shared.events import configure_logging
from geoveil.shared.protocol import PlaintextPOI
from geoveil.shared.utils import Timer, generate_random_points

CATEGORIES = ["restaurant", "cafe", "museum", "park", "pharmacy"]


def run_demo(
    num_pois: int = 1000,
    center: tuple = (40.7128, -74.0060),
    radius_km: float = 5.0,
    category: str = None,
    seed: int = 42,
):
    """
    Run the demo pipeline.
    """
    print("=" * 70)
    print("geoveil - Private POI Range Search")
    print("=" * 70)
    print(f"\nConfiguration:")
    print(f"  POIs:      {num_pois:,}")
    print(f"  Centre:    {center[0]:.4f}, {center[1]:.4f}")
    print(f"  Radius:    {radius_km} km")
    print(f"  Category:  {category or 'any'}")

    # =========================================================================
    # SETUP PHASE
    # =========================================================================
    print("\n" + "=" * 70)
    print("SETUP PHASE")
    print("=" * 70)

    settings = get_settings()
    store = InMemoryPlaintextStore()
    context = QueryContext.create(
        settings,
        resolver=store,
        rng=np.random.default_rng(seed),
    )

    print("\n[1] Generating plaintext POIs...")
    points = generate_random_points(num_pois, seed=seed, center=center, spread_deg=0.2)
    rng = np.random.default_rng(seed)
    pois = [
        PlaintextPOI(
            id=f"poi_{i:06d}",
            name=f"Place {i}",
            category=CATEGORIES[int(rng.integers(len(CATEGORIES)))],
            latitude=float(lat),
            longitude=float(lng),
        )
        for i, (lat, lng) in enumerate(points)
    ]
    for poi in pois:
        store.add(poi)

    print("\n[2] Encrypting locations...")
    with Timer() as t:
        records = [build_record(context.token_generator, poi) for poi in pois]
    print(f"    Encrypted {len(records):,} POIs in {t.elapsed_ms:.0f}ms")

    service = SearchService(lambda: records, context=context, settings=settings)

    print("\n[3] Building spatial index...")
    summary = service.initialize()
    print(f"    Indexed {summary['poi_count']:,} POIs, {summary['index_nodes']} nodes "
          f"in {summary['init_time_ms']:.0f}ms")

    # =========================================================================
    # SEARCH PHASE
    # =========================================================================
    print("\n" + "=" * 70)
    print("SEARCH PHASE")
    print("=" * 70)

    params = SearchParams(
        latitude=center[0],
        longitude=center[1],
        radius=radius_km,
        category=category,
        limit=10,
    )
    result = service.search(params, requester_id="demo-user")
    if not result.success:
        print(f"\n  Search failed: {result.error}")
        return result

    meta = result.metadata
    print(f"\n  Candidates from index:  {meta.total_candidates}")
    print(f"  Predicate matches:      {meta.matching_count}")
    print(f"  Returned:               {meta.returned_count}")

    print("\nResults:")
    print("-" * 50)
    for r in result.results:
        print(f"  #{r.rank:2d}: {r.poi_id} {r.attributes.get('name', '')!s:12} "
              f"{r.category or '-':11} {r.distance_km:7.2f} km")

    # =========================================================================
    # TIMING
    # =========================================================================
    print("\n" + "=" * 70)
    print("TIMING BREAKDOWN")
    print("=" * 70)
    timing = meta.timing
    print(f"\n  Token generation:     {timing['token_generation']:8.2f}ms")
    print(f"  Spatial search:       {timing['spatial_search']:8.2f}ms")
    print(f"  Predicate evaluation: {timing['predicate_evaluation']:8.2f}ms")
    print(f"  Decryption:           {timing['decryption']:8.2f}ms")
    print(f"  {'='*40}")
    print(f"  TOTAL:                {timing['total']:8.2f}ms")

    cached = service.search(params, requester_id="demo-user")
    print(f"\n  Repeat query served from cache in {cached.metadata.total_time_ms:.2f}ms")

    return result


def main():
    parser = argparse.ArgumentParser(
        description="Demo private POI range search"
    )
    parser.add_argument(
        "--num-pois", "-n",
        type=int,
        default=1000,
        help="Number of POIs to index",
    )
    parser.add_argument("--lat", type=float, default=40.7128, help="Query latitude")
    parser.add_argument("--lng", type=float, default=-74.0060, help="Query longitude")
    parser.add_argument(
        "--radius",
        type=float,
        default=5.0,
        help="Search radius in km",
    )
    parser.add_argument(
        "--category",
        choices=CATEGORIES,
        help="Only return POIs of this category",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")

    args = parser.parse_args()
    configure_logging(args.log_level)

    run_demo(
        num_pois=args.num_pois,
        center=(args.lat, args.lng),
        radius_km=args.radius,
        category=args.category,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
