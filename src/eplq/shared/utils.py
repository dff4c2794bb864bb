"""
Shared utility functions.
"""
import math
import numpy as np
from typing import List, Optional, Sequence, Tuple
import time

from eplq.shared.geo import KM_PER_DEGREE


def generate_random_points(
    num_points: int,
    center_lat: float,
    center_lon: float,
    max_distance_km: float,
    seed: Optional[int] = None,
) -> List[Tuple[float, float]]:
    """
    Generate random coordinates scattered around a center.

    Args:
        num_points: Number of points to generate
        center_lat: Center latitude in degrees
        center_lon: Center longitude in degrees
        max_distance_km: Approximate maximum offset from the center
        seed: Random seed for reproducibility

    Returns:
        List of (latitude, longitude) tuples, clamped to valid ranges
    """
    rng = np.random.default_rng(seed)

    distances = max_distance_km * np.sqrt(rng.random(num_points))
    bearings = rng.random(num_points) * 2 * np.pi

    lat_offsets = distances * np.cos(bearings) / KM_PER_DEGREE
    cos_lat = max(abs(math.cos(math.radians(center_lat))), 1e-6)
    lon_offsets = distances * np.sin(bearings) / (KM_PER_DEGREE * cos_lat)

    lats = np.clip(center_lat + lat_offsets, -90.0, 90.0)
    lons = np.clip(center_lon + lon_offsets, -180.0, 180.0)
    return [(float(lat), float(lon)) for lat, lon in zip(lats, lons)]


def rank_by_distance(distances: Sequence[float]) -> np.ndarray:
    """
    Get indices ordering `distances` ascending.

    The sort is stable: equal distances keep their input order.
    """
    if len(distances) == 0:
        return np.array([], dtype=np.int64)
    return np.argsort(np.asarray(distances, dtype=np.float64), kind="stable")


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
