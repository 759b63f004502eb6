"""
Geographic helpers: great-circle distance, bounding boxes and circle polygons.

Distances are in kilometres, coordinates in decimal degrees (WGS84).
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Tuple

import numpy as np

from landvalue.models import ConfigError, GeoPoint

EARTH_RADIUS_KM = 6371.0

# Equirectangular approximation, km per degree
KM_PER_DEG_LAT = 110.574
KM_PER_DEG_LNG_EQUATOR = 111.32


def haversine_km(lng1, lat1, lng2, lat2):
    """
    Great-circle distance in km.

    Accepts scalars or numpy arrays (broadcast), so the field synthesizer can
    evaluate a whole grid against one attractor in a single call.
    """
    lat1_r = np.radians(lat1)
    lat2_r = np.radians(lat2)
    d_lat = np.radians(np.asarray(lat2) - np.asarray(lat1))
    d_lng = np.radians(np.asarray(lng2) - np.asarray(lng1))

    a = np.sin(d_lat / 2) ** 2 + np.cos(lat1_r) * np.cos(lat2_r) * np.sin(d_lng / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Scalar distance between two points."""
    return float(haversine_km(a.lng, a.lat, b.lng, b.lat))


def degrees_per_km(lat: float) -> Tuple[float, float]:
    """(lng_degrees, lat_degrees) spanned by one km at this latitude."""
    return (
        1.0 / (KM_PER_DEG_LNG_EQUATOR * math.cos(math.radians(lat))),
        1.0 / KM_PER_DEG_LAT,
    )


# ═══════════════════════════════════════════════════════════════════════════
# BOUNDING BOX
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class BoundingBox:
    """
    Geographic bounding box.

    All coordinates are in decimal degrees (WGS84).
    """
    min_latitude: float   # Southern edge
    max_latitude: float   # Northern edge
    min_longitude: float  # Western edge
    max_longitude: float  # Eastern edge

    def __post_init__(self):
        # Reuse GeoPoint's range checks on both corners
        GeoPoint(self.min_longitude, self.min_latitude)
        GeoPoint(self.max_longitude, self.max_latitude)
        if self.min_latitude >= self.max_latitude or self.min_longitude >= self.max_longitude:
            raise ConfigError(f"Degenerate bounding box: {self}")

    @property
    def center_latitude(self) -> float:
        return (self.min_latitude + self.max_latitude) / 2

    def to_corners(self) -> List[List[float]]:
        """[[west, south], [east, north]] as map engines expect for max bounds."""
        return [
            [self.min_longitude, self.min_latitude],
            [self.max_longitude, self.max_latitude],
        ]

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "BoundingBox":
        return cls(**data)

    @classmethod
    def from_corners(cls, sw: Tuple[float, float], ne: Tuple[float, float]) -> "BoundingBox":
        """Build from (lng, lat) south-west and north-east corners."""
        return cls(
            min_latitude=sw[1],
            max_latitude=ne[1],
            min_longitude=sw[0],
            max_longitude=ne[0],
        )


# ═══════════════════════════════════════════════════════════════════════════
# CIRCLES
# ═══════════════════════════════════════════════════════════════════════════
MIN_RING_VERTICES = 32


def circle_ring(center: GeoPoint, radius_km: float, points: int = 64) -> Tuple[Tuple[float, float], ...]:
    """
    Approximate a circle as a closed polygon ring.

    Emits `points` vertices at equal angular steps, then repeats the first
    one, so the ring holds points + 1 coordinates.
    """
    if radius_km <= 0:
        raise ConfigError(f"Circle radius must be > 0, got {radius_km}")
    if points < MIN_RING_VERTICES:
        raise ConfigError(f"Circle needs at least {MIN_RING_VERTICES} vertices, got {points}")

    dx_per_km, dy_per_km = degrees_per_km(center.lat)
    dx = radius_km * dx_per_km
    dy = radius_km * dy_per_km

    ring = []
    for i in range(points):
        theta = (i / points) * (2 * math.pi)
        ring.append((center.lng + dx * math.cos(theta), center.lat + dy * math.sin(theta)))
    ring.append(ring[0])
    return tuple(ring)
