"""
Range query token generation.

A token carries the encrypted query vector used by the predicate evaluator
and an encrypted bounding box used to prune the spatial index.
"""
import logging
from typing import Callable, Optional

import numpy as np

from geoveil.client.transform import CoordinateTransform, derive_matrix
from geoveil.shared.protocol import QUERY_DIMENSION, EncryptedBounds, QueryToken
from geoveil.shared.utils import (
    EARTH_CIRCUMFERENCE_KM,
    Timer,
    km_to_lat_degrees,
    km_to_lng_degrees,
)

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_MS = 300_000


class QueryTokenGenerator(CoordinateTransform):
    """
    Builds encrypted range query tokens.

    The query vector is encrypted with its own 6x6 matrix, derived from the
    same key but a different seed, so query and point vectors are not
    directly comparable. Only the first four query components are used at
    evaluation time.
    """

    QUERY_DIMENSION = QUERY_DIMENSION

    def __init__(
        self,
        master_key: Optional[str] = None,
        noise_scale: float = CoordinateTransform.DEFAULT_NOISE_SCALE,
        token_ttl_ms: int = DEFAULT_TOKEN_TTL_MS,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the generator.

        Args:
            master_key: Secret key shared with POI ingestion
            noise_scale: Noise bound for the bounding box corners
            token_ttl_ms: Lifetime of generated tokens
            rng: Random generator for padding and noise
            clock: Returns the current time in epoch milliseconds
        """
        super().__init__(master_key, noise_scale=noise_scale, rng=rng, clock=clock)
        self.token_ttl_ms = token_ttl_ms
        self.query_matrix = derive_matrix(
            self.master_key,
            self.QUERY_DIMENSION,
            seed_suffix="extended",
            cell_tag="ext-",
        )

    @staticmethod
    def normalize_radius(radius_km: float) -> float:
        """Radius as a fraction of the Earth's circumference."""
        return radius_km / EARTH_CIRCUMFERENCE_KM

    def encrypt_query_vector(self, vector: np.ndarray) -> np.ndarray:
        """Apply the query matrix. No noise is added."""
        return self.query_matrix @ vector

    def encrypt_bounds(
        self,
        min_lat: float,
        min_lng: float,
        max_lat: float,
        max_lng: float,
    ) -> EncryptedBounds:
        """Encrypt both corners of a plaintext bounding box with the point transform."""
        encrypted_min = self.encrypt_point(min_lat, min_lng)
        encrypted_max = self.encrypt_point(max_lat, max_lng)
        return EncryptedBounds(
            encrypted_min=encrypted_min.coords,
            encrypted_max=encrypted_max.coords,
        )

    def generate_token(self, lat: float, lng: float, radius_km: float) -> QueryToken:
        """
        Generate an encrypted token for a range search.

        The radius is assumed to be validated already.

        Args:
            lat: Query centre latitude
            lng: Query centre longitude
            radius_km: Search radius in kilometers

        Returns:
            QueryToken with a 6-d encrypted query and encrypted bounds
        """
        with Timer() as t:
            created_at = self._clock()
            norm_lat, norm_lng = self.normalize(lat, lng)
            norm_radius = self.normalize_radius(radius_km)

            query_vector = np.array([
                norm_lat,
                norm_lng,
                norm_radius,
                norm_radius * norm_radius,
                1.0,
                (created_at % 1_000_000) / 1_000_000,
            ])
            encrypted_query = self.encrypt_query_vector(query_vector)

            lat_delta = km_to_lat_degrees(radius_km)
            lng_delta = km_to_lng_degrees(radius_km, lat)
            encrypted_bounds = self.encrypt_bounds(
                lat - lat_delta, lng - lng_delta,
                lat + lat_delta, lng + lng_delta,
            )

        logger.debug("QUERY_TOKEN_GENERATE completed in %.3fms", t.elapsed_ms)

        return QueryToken(
            encrypted_query=tuple(float(v) for v in encrypted_query),
            encrypted_bounds=encrypted_bounds,
            radius_normalized=norm_radius,
            created_at=created_at,
            expires_at=created_at + self.token_ttl_ms,
        )
