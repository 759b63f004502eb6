"""
City presets: the static inputs of the field and the camera.

A preset bundles the sampling area, attractors, facilities, exclusion
regions and landmarks for one city. HANGZHOU is the built-in one; others
can be loaded from JSON with loaders.presets.load_city_preset().
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from landvalue.config import FieldConfig
from landvalue.field import synthesize_field
from landvalue.geo import BoundingBox
from landvalue.models import (
    Attractor,
    CameraPose,
    ConfigError,
    ExclusionRegion,
    Facility,
    FacilityKind,
    FieldCollection,
    GeoPoint,
    Landmark,
)


@dataclass(frozen=True)
class CityPreset:
    name: str
    field_bounds: BoundingBox
    attractors: Tuple[Attractor, ...]
    facilities: Tuple[Facility, ...]
    landmarks: Tuple[Landmark, ...] = field(default_factory=tuple)
    exclusions: Tuple[ExclusionRegion, ...] = field(default_factory=tuple)

    def landmark(self, landmark_id: str) -> Optional[Landmark]:
        for lm in self.landmarks:
            if lm.id == landmark_id:
                return lm
        return None

    def synthesize(self, config: Optional[FieldConfig] = None, seed: Optional[int] = None) -> FieldCollection:
        """Run the synthesizer over this city's inputs."""
        config = config or FieldConfig()
        return synthesize_field(
            bounds=self.field_bounds,
            grid_step_km=config.grid_step_km,
            attractors=self.attractors,
            facilities=self.facilities,
            config=config,
            exclusions=self.exclusions,
            seed=seed,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "CityPreset":
        try:
            return cls(
                name=data["name"],
                field_bounds=BoundingBox.from_dict(data["field_bounds"]),
                attractors=tuple(Attractor.from_dict(a) for a in data.get("attractors", [])),
                facilities=tuple(Facility.from_dict(f) for f in data.get("facilities", [])),
                landmarks=tuple(Landmark.from_dict(lm) for lm in data.get("landmarks", [])),
                exclusions=tuple(ExclusionRegion.from_dict(e) for e in data.get("exclusions", [])),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Malformed city preset: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════
# HANGZHOU
# ═══════════════════════════════════════════════════════════════════════════
HOSPITAL_COLOR = "#3b82f6"    # Blue
SCHOOL_COLOR = "#10b981"      # Green
GOVERNMENT_COLOR = "#f59e0b"  # Orange


def _facility(name, kind, boost, radius, lng, lat):
    color, icon = {
        FacilityKind.HOSPITAL: (HOSPITAL_COLOR, "🏥"),
        FacilityKind.SCHOOL: (SCHOOL_COLOR, "🎓"),
        FacilityKind.GOVERNMENT: (GOVERNMENT_COLOR, "⚖️"),
    }[kind]
    return Facility(name, GeoPoint(lng, lat), kind, boost, radius, color, icon)


def _landmark(id, name, description, lng, lat, zoom, pitch, bearing):
    return Landmark(id, name, description, CameraPose(lng, lat, zoom, pitch, bearing))


HANGZHOU = CityPreset(
    name="Hangzhou",
    field_bounds=BoundingBox(
        min_latitude=30.12,
        max_latitude=30.38,
        min_longitude=120.00,
        max_longitude=120.35,
    ),
    attractors=(
        Attractor(GeoPoint(120.2109, 30.2442), 90000, 0.4, name="CBD"),
        Attractor(GeoPoint(120.1468, 30.2476), 85000, 0.3, name="West Lake"),
    ),
    facilities=(
        # Hospitals
        _facility("浙一医院 (First Affiliated)", FacilityKind.HOSPITAL, 15000, 2.0, 120.18, 30.25),
        _facility("邵逸夫医院 (Sir Run Run Shaw)", FacilityKind.HOSPITAL, 18000, 2.5, 120.205, 30.26),
        # Schools, education districts are expensive
        _facility("浙江大学 (ZJU Yuquan)", FacilityKind.SCHOOL, 25000, 1.5, 120.125, 30.263),
        _facility("杭州高级中学 (Hangzhou High)", FacilityKind.SCHOOL, 30000, 1.2, 120.17, 30.255),
        _facility("学军中学 (Xuejun High)", FacilityKind.SCHOOL, 28000, 1.2, 120.135, 30.275),
        # Government
        _facility("市民中心 (Citizen Center)", FacilityKind.GOVERNMENT, 12000, 3.0, 120.212, 30.245),
        _facility("省政府 (Provincial Gov)", FacilityKind.GOVERNMENT, 10000, 2.0, 120.155, 30.265),
    ),
    landmarks=(
        _landmark("cbd", "钱江新城 (CBD)",
                  "Modern central business district with iconic architecture.",
                  120.2109, 30.2442, 15.5, 65, -20),
        _landmark("westlake", "西湖 (West Lake)",
                  "UNESCO World Heritage site, classical beauty.",
                  120.1468, 30.2476, 14, 50, 90),
        _landmark("binjiang", "滨江 (Binjiang)",
                  "High-tech district, home to major tech companies.",
                  120.2155, 30.1834, 15, 60, 45),
        _landmark("gongshu", "拱墅 (Gongshu)",
                  "Historic district along the Grand Canal.",
                  120.1588, 30.3200, 14.5, 45, 0),
        _landmark("xixi", "西溪湿地 (Xixi Wetland)",
                  "Urban wetland park and ecological preserve.",
                  120.0636, 30.2608, 13.5, 40, 0),
    ),
    exclusions=(
        # Lake surface: only the priciest shoreline nodes survive
        ExclusionRegion("West Lake", GeoPoint(120.1420, 30.2440), 1.4, 110000),
    ),
)
