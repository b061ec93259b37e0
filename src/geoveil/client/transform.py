"""
Client-side coordinate transform.

Maps (latitude, longitude) to a 4-d vector with a linear map derived from
the master key, so that stored POIs and query centres land in the same
vector space.
"""
import hashlib
import logging
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from geoveil.shared.config import generate_master_key
from geoveil.shared.protocol import POINT_DIMENSION, EncryptedLocation
from geoveil.shared.utils import Timer, now_ms

logger = logging.getLogger(__name__)

# Pivots smaller than this are treated as zero during inversion.
PIVOT_TOLERANCE = 1e-10


def derive_matrix(
    master_key: str,
    size: int,
    seed_suffix: str = "",
    cell_tag: str = "",
) -> np.ndarray:
    """
    Derive a deterministic square matrix from a master key.

    Each cell is the first 32 bits of SHA-256("<seed>-<tag><i>-<j>") scaled
    to [0, 1], where seed is the SHA-256 hex digest of master_key + seed_suffix.
    The exact string layout matters: data encrypted elsewhere with the same
    key must land in the same space.

    Args:
        master_key: Secret key string
        size: Matrix dimension
        seed_suffix: Appended to the key before hashing the seed
        cell_tag: Prefix inserted before the row index of every cell

    Returns:
        Array of shape (size, size)
    """
    seed = hashlib.sha256((master_key + seed_suffix).encode("utf-8")).hexdigest()
    matrix = np.empty((size, size), dtype=np.float64)

    for i in range(size):
        for j in range(size):
            digest = hashlib.sha256(f"{seed}-{cell_tag}{i}-{j}".encode("utf-8")).hexdigest()
            matrix[i, j] = int(digest[:8], 16) / 0xFFFFFFFF

    return matrix


def approximate_inverse(matrix: np.ndarray) -> np.ndarray:
    """
    Invert a matrix by Gauss-Jordan elimination with partial pivoting.

    Columns whose best pivot is below PIVOT_TOLERANCE are skipped instead of
    raising, so a singular input yields a partial result.
    """
    n = matrix.shape[0]
    augmented = np.hstack([matrix.astype(np.float64), np.eye(n)])

    for i in range(n):
        max_row = i + int(np.argmax(np.abs(augmented[i:, i])))
        if max_row != i:
            augmented[[i, max_row]] = augmented[[max_row, i]]

        pivot = augmented[i, i]
        if abs(pivot) < PIVOT_TOLERANCE:
            logger.debug("Skipping near-singular pivot at column %d", i)
            continue

        augmented[i] /= pivot
        for k in range(n):
            if k != i:
                augmented[k] -= augmented[k, i] * augmented[i]

    return augmented[:, n:]


class CoordinateTransform:
    """
    Deterministic location transform.

    Responsible for:
    - Deriving the point matrix (and its inverse) from the master key
    - Encrypting (lat, lng) pairs into 4-d vectors
    - Approximate coordinate recovery through the inverse
    """

    DIMENSION = POINT_DIMENSION
    DEFAULT_NOISE_SCALE = 0.001

    def __init__(
        self,
        master_key: Optional[str] = None,
        noise_scale: float = DEFAULT_NOISE_SCALE,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the transform.

        Args:
            master_key: Secret key; a random one is generated when omitted
            noise_scale: Upper bound of the additive noise term
            rng: Random generator for padding and noise (seed it in tests)
            clock: Returns the current time in epoch milliseconds
        """
        self.master_key = master_key or generate_master_key()
        self.noise_scale = noise_scale
        self._rng = rng if rng is not None else np.random.default_rng()
        self._clock = clock or now_ms

        self.encryption_matrix = derive_matrix(self.master_key, self.DIMENSION)
        self.decryption_matrix = approximate_inverse(self.encryption_matrix)

    def random_coefficient(self) -> float:
        """Random value in [0, 1) with six decimal digits."""
        return int(self._rng.integers(0, 1_000_000)) / 1_000_000

    @staticmethod
    def normalize(lat: float, lng: float) -> Tuple[float, float]:
        """Map latitude and longitude to [0, 1]."""
        return (lat + 90) / 180, (lng + 180) / 360

    def encrypt_point(self, lat: float, lng: float) -> EncryptedLocation:
        """
        Encrypt a location.

        The padding coefficient and the noise are drawn fresh on every call,
        so two encryptions of one point are close but not identical.

        Args:
            lat: Latitude in degrees (not range checked here)
            lng: Longitude in degrees (not range checked here)

        Returns:
            EncryptedLocation with a 4-element coordinate vector
        """
        with Timer() as t:
            norm_lat, norm_lng = self.normalize(lat, lng)
            location_vector = np.array(
                [norm_lat, norm_lng, 1.0, self.random_coefficient()]
            )

            encrypted = self.encryption_matrix @ location_vector
            noise = self.random_coefficient() * self.noise_scale
            coords = tuple(float(v) + noise for v in encrypted)

        logger.debug("LOCATION_ENCRYPT completed in %.3fms", t.elapsed_ms)

        return EncryptedLocation(coords=coords, timestamp=self._clock())

    def recover_coordinates(self, coords: Sequence[float]) -> Tuple[float, float]:
        """
        Approximately invert encrypt_point.

        Noise is not removed, so the result is only as exact as the noise
        scale allows.

        Returns:
            (lat, lng) in degrees
        """
        vector = self.decryption_matrix @ np.asarray(coords, dtype=np.float64)
        return float(vector[0] * 180 - 90), float(vector[1] * 360 - 180)
