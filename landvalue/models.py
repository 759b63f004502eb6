"""
Core data models for the City Value Map.
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd


class ConfigError(ValueError):
    """Raised when static configuration is invalid. Always raised at load time."""


# ═══════════════════════════════════════════════════════════════════════════
# GEOGRAPHY
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in decimal degrees."""
    lng: float
    lat: float

    def __post_init__(self):
        if not -180.0 <= self.lng <= 180.0:
            raise ConfigError(f"Longitude out of range: {self.lng}")
        if not -90.0 <= self.lat <= 90.0:
            raise ConfigError(f"Latitude out of range: {self.lat}")

    def to_list(self) -> List[float]:
        """GeoJSON order: [lng, lat]."""
        return [self.lng, self.lat]

    @classmethod
    def from_dict(cls, data: Dict) -> "GeoPoint":
        return cls(lng=float(data["lng"]), lat=float(data["lat"]))


@dataclass(frozen=True)
class CameraPose:
    """Camera position as reported to (and requested by) the host view."""
    lng: float
    lat: float
    zoom: float
    pitch: float = 0.0
    bearing: float = 0.0

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(self.lng, self.lat)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "CameraPose":
        return cls(**data)


@dataclass(frozen=True)
class Landmark:
    """A named place the camera can fly to."""
    id: str
    name: str
    description: str
    pose: CameraPose

    @classmethod
    def from_dict(cls, data: Dict) -> "Landmark":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            pose=CameraPose.from_dict(data["pose"]),
        )


# ═══════════════════════════════════════════════════════════════════════════
# ECONOMIC INPUTS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Attractor:
    """
    An economic center pulling prices up around it.

    Influence on a point is base_price * exp(-decay_rate * distance_km).
    """
    location: GeoPoint
    base_price: float
    decay_rate: float
    name: str = ""

    def __post_init__(self):
        if self.base_price <= 0:
            raise ConfigError(f"Attractor {self.name!r}: base_price must be > 0")
        # decay_rate == 0 would give infinite reach
        if self.decay_rate <= 0:
            raise ConfigError(f"Attractor {self.name!r}: decay_rate must be > 0")

    @classmethod
    def from_dict(cls, data: Dict) -> "Attractor":
        return cls(
            location=GeoPoint(float(data["lng"]), float(data["lat"])),
            base_price=float(data["base_price"]),
            decay_rate=float(data["decay_rate"]),
            name=data.get("name", ""),
        )


class FacilityKind(Enum):
    """Amenity categories."""
    HOSPITAL = "Hospital"
    SCHOOL = "School"
    GOVERNMENT = "Government"

    @classmethod
    def parse(cls, value: str) -> "FacilityKind":
        aliases = {"gov": cls.GOVERNMENT}
        key = value.strip().lower()
        if key in aliases:
            return aliases[key]
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        raise ConfigError(f"Unknown facility kind: {value!r}")


@dataclass(frozen=True)
class Facility:
    """
    A point amenity that adds a bonus to nearby land.

    The bonus decays linearly from `boost` at the facility to zero at `radius_km`.
    """
    name: str
    location: GeoPoint
    kind: FacilityKind
    boost: float
    radius_km: float
    color: str = "#ffffff"
    icon: str = ""

    def __post_init__(self):
        if self.boost <= 0:
            raise ConfigError(f"Facility {self.name!r}: boost must be > 0")
        if self.radius_km <= 0:
            raise ConfigError(f"Facility {self.name!r}: radius_km must be > 0")

    @property
    def description(self) -> str:
        return f"Impact: +¥{self.boost:g} within {self.radius_km:g}km"

    def to_feature(self, index: int) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "id": f"fac-{index}",
            "properties": {
                "name": self.name,
                "type": self.kind.value,
                "icon": self.icon,
                "color": self.color,
                "boost": self.boost,
                "radius": self.radius_km,
                "description": self.description,
            },
            "geometry": {"type": "Point", "coordinates": self.location.to_list()},
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Facility":
        return cls(
            name=data["name"],
            location=GeoPoint(float(data["lng"]), float(data["lat"])),
            kind=FacilityKind.parse(data["type"]),
            boost=float(data["boost"]),
            radius_km=float(data["radius"]),
            color=data.get("color", "#ffffff"),
            icon=data.get("icon", ""),
        )


@dataclass(frozen=True)
class ExclusionRegion:
    """
    Land treated as unbuildable (e.g. a lake).

    Nodes inside `radius_km` of `center` are dropped unless they price at
    or above `min_price`.
    """
    name: str
    center: GeoPoint
    radius_km: float
    min_price: float

    def __post_init__(self):
        if self.radius_km <= 0:
            raise ConfigError(f"Exclusion region {self.name!r}: radius_km must be > 0")

    @classmethod
    def from_dict(cls, data: Dict) -> "ExclusionRegion":
        return cls(
            name=data["name"],
            center=GeoPoint(float(data["lng"]), float(data["lat"])),
            radius_km=float(data["radius"]),
            min_price=float(data["min_price"]),
        )


# ═══════════════════════════════════════════════════════════════════════════
# SYNTHESIZED OUTPUT
# ═══════════════════════════════════════════════════════════════════════════
def format_price(price: float) -> str:
    """Price in units of 10k yuan, e.g. 91234 -> '¥9.1万'."""
    return f"¥{price / 10000:.1f}万"


@dataclass(frozen=True)
class ValueSample:
    """A single synthesized point of the land-value field."""
    id: int
    location: GeoPoint
    price: int
    normalized_weight: float
    label: str

    def to_feature(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "id": self.id,
            "properties": {
                "price": self.price,
                "formattedPrice": self.label,
                "heatmapWeight": self.normalized_weight,
            },
            "geometry": {"type": "Point", "coordinates": self.location.to_list()},
        }


@dataclass(frozen=True)
class InfluenceZone:
    """Display polygon approximating a facility's radius of influence."""
    facility_name: str
    kind: FacilityKind
    color: str
    boost: float
    ring: Tuple[Tuple[float, float], ...]

    @property
    def is_closed(self) -> bool:
        return len(self.ring) > 1 and self.ring[0] == self.ring[-1]

    def to_feature(self, index: int) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "id": f"zone-{index}",
            "properties": {
                "name": self.facility_name,
                "type": self.kind.value,
                "color": self.color,
                "boost": self.boost,
            },
            "geometry": {
                "type": "Polygon",
                "coordinates": [[list(v) for v in self.ring]],
            },
        }


@dataclass(frozen=True)
class FieldCollection:
    """
    The full, read-only output of one synthesis run.

    Regenerate from scratch when attractors or facilities change; there is
    no incremental update path.
    """
    samples: Tuple[ValueSample, ...]
    zones: Tuple[InfluenceZone, ...]
    facilities: Tuple[Facility, ...]
    nodes_visited: int = 0
    seed: Optional[int] = None

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def discarded(self) -> int:
        return self.nodes_visited - len(self.samples)

    def samples_geojson(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [s.to_feature() for s in self.samples],
        }

    def zones_geojson(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [z.to_feature(i) for i, z in enumerate(self.zones)],
        }

    def facilities_geojson(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [f.to_feature(i) for i, f in enumerate(self.facilities)],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per sample: id, lng, lat, price, weight, label."""
        rows = [
            {
                "id": s.id,
                "lng": s.location.lng,
                "lat": s.location.lat,
                "price": s.price,
                "weight": s.normalized_weight,
                "label": s.label,
            }
            for s in self.samples
        ]
        return pd.DataFrame(rows, columns=["id", "lng", "lat", "price", "weight", "label"])

    def summary(self) -> Dict[str, float]:
        """Headline numbers for the host panel."""
        if not self.samples:
            return {"count": 0, "discarded": self.discarded, "min": 0, "max": 0, "mean": 0.0}
        prices = [s.price for s in self.samples]
        return {
            "count": len(prices),
            "discarded": self.discarded,
            "min": min(prices),
            "max": max(prices),
            "mean": math.fsum(prices) / len(prices),
        }
