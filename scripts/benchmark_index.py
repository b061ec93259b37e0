#!/usr/bin/env python3
"""
Benchmark spatial index build and search over encrypted POIs.
"""
import sys
import argparse
from pathlib import Path

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from geoveil.client.tokens import QueryTokenGenerator
from geoveil.server.compute import PredicateEvaluator
from geoveil.server.index import SpatialIndex
from geoveil.shared.events import RecordingEventSink
from geoveil.shared.protocol import POIRecord
from geoveil.shared.utils import Timer, generate_random_points


def main():
    parser = argparse.ArgumentParser(description="Benchmark the encrypted spatial index")
    parser.add_argument("--num-pois", "-n", type=int, default=100_000)
    parser.add_argument("--queries", "-q", type=int, default=100)
    parser.add_argument("--fanout", type=int, default=9)
    parser.add_argument("--radius", type=float, default=5.0)
    args = parser.parse_args()

    print("=" * 60)
    print(f"Spatial index benchmark: {args.num_pois:,} POIs, fan-out {args.fanout}")
    print("=" * 60)

    generator = QueryTokenGenerator("benchmark-key", rng=np.random.default_rng(42))

    # 1. Encrypt locations
    print(f"\n[1/4] Encrypting {args.num_pois:,} locations...")
    points = generate_random_points(args.num_pois, seed=42)
    with Timer() as t:
        records = [
            POIRecord(id=f"poi_{i}", encrypted_location=generator.encrypt_point(lat, lng))
            for i, (lat, lng) in enumerate(points)
        ]
    print(f"   Encrypted in {t.elapsed_ms:.0f}ms ({t.elapsed_ms / args.num_pois * 1000:.1f}us/POI)")

    # 2. Bulk load
    print("\n[2/4] Bulk loading index...")
    index = SpatialIndex(max_entries=args.fanout, events=RecordingEventSink())
    stats = index.build_index(records)
    print(f"   {stats.total_pois:,} POIs, {stats.total_nodes:,} nodes in {stats.last_build_time_ms:.0f}ms")

    # 3. Search
    print(f"\n[3/4] Running {args.queries} searches...")
    queries = generate_random_points(args.queries, seed=123)
    tokens = [generator.generate_token(lat, lng, args.radius) for lat, lng in queries]
    candidate_counts = []
    with Timer() as t:
        for token in tokens:
            candidate_counts.append(len(index.search(token.encrypted_bounds)))
    print(f"   Avg search: {t.elapsed_ms / args.queries:.3f}ms, "
          f"avg candidates: {np.mean(candidate_counts):.1f}")

    # 4. Predicate
    print("\n[4/4] Evaluating predicate on candidates...")
    evaluator = PredicateEvaluator()
    matched = 0
    with Timer() as t:
        for token in tokens:
            matched += len(evaluator.filter(index.search(token.encrypted_bounds), token))
    print(f"   Search + predicate: {t.elapsed_ms / args.queries:.3f}ms/query, {matched} matches total")

    print(f"\nQuery counter: {index.get_stats().query_count}")


if __name__ == "__main__":
    main()
