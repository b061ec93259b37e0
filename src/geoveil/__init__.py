"""
geoveil: Privacy-preserving point-of-interest range search.

Uses a two-stage funnel approach:
1. Coarse Stage: R-tree pruning over encrypted bounding boxes
2. Fine Stage: inner-product predicate over encrypted coordinates

The server NEVER sees the query coordinates in plaintext.
Only transformed vectors reach the index and the predicate evaluator.
"""

__version__ = "0.1.0"
