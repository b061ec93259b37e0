"""Client-side components for privacy-preserving search."""
from geoveil.client.transform import CoordinateTransform, derive_matrix
from geoveil.client.tokens import QueryTokenGenerator

__all__ = ["CoordinateTransform", "QueryTokenGenerator", "derive_matrix"]
