"""
Shared utility functions.
"""
import math
import time
from typing import Optional

import numpy as np

EARTH_RADIUS_KM = 6371.0
EARTH_CIRCUMFERENCE_KM = 40075.0
KM_PER_DEGREE = 111.32


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def km_to_lat_degrees(km: float) -> float:
    """Convert kilometers to degrees of latitude."""
    return km / KM_PER_DEGREE


def km_to_lng_degrees(km: float, lat: float) -> float:
    """Convert kilometers to degrees of longitude at the given latitude."""
    return km / (KM_PER_DEGREE * math.cos(lat * math.pi / 180))


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1, lng1: First point in degrees
        lat2, lng2: Second point in degrees

    Returns:
        Distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def round_half_up(value: float, digits: int) -> float:
    """Round with ties going towards +infinity."""
    if not math.isfinite(value):
        return value
    factor = 10 ** digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def format_number(value: float) -> str:
    """Shortest text form of a float; integral values drop the '.0'."""
    if value == 0:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def generate_random_points(
    num_points: int,
    seed: Optional[int] = None,
    center: Optional[tuple] = None,
    spread_deg: float = 0.5,
) -> np.ndarray:
    """
    Generate random (lat, lng) pairs for testing.

    Args:
        num_points: Number of points to generate
        seed: Random seed for reproducibility
        center: Optional (lat, lng) to cluster points around
        spread_deg: Half-width of the cluster in degrees

    Returns:
        Array of shape (num_points, 2)
    """
    rng = np.random.default_rng(seed)

    if center is None:
        lats = rng.uniform(-90.0, 90.0, num_points)
        lngs = rng.uniform(-180.0, 180.0, num_points)
    else:
        lats = np.clip(center[0] + rng.uniform(-spread_deg, spread_deg, num_points), -90.0, 90.0)
        lngs = np.clip(center[1] + rng.uniform(-spread_deg, spread_deg, num_points), -180.0, 180.0)

    return np.column_stack([lats, lngs])


class Timer:
    """Context manager for timing operations."""

    def __init__(self, name: str = "Operation"):
        self.name = name
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.perf_counter() - self.start_time

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        if self.elapsed is None:
            if self.start_time is not None:
                return (time.perf_counter() - self.start_time) * 1000
            return 0.0
        return self.elapsed * 1000
