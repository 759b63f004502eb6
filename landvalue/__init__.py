"""
Land-value field for the City Value Map.
Contains data models, the price model, and the procedural field synthesizer.
"""

from landvalue.models import (
    ConfigError,
    GeoPoint,
    CameraPose,
    Landmark,
    Attractor,
    Facility,
    FacilityKind,
    ExclusionRegion,
    ValueSample,
    InfluenceZone,
    FieldCollection,
)
from landvalue.geo import BoundingBox, haversine_km, distance_km, circle_ring
from landvalue.grid import GridEngine
from landvalue.scoring import PriceModel
from landvalue.config import FieldConfig, RenderConfig, AppConfig, load_config
from landvalue.field import synthesize_field, build_influence_zones
from landvalue.presets import CityPreset, HANGZHOU

__all__ = [
    # Models
    "ConfigError",
    "GeoPoint",
    "CameraPose",
    "Landmark",
    "Attractor",
    "Facility",
    "FacilityKind",
    "ExclusionRegion",
    "ValueSample",
    "InfluenceZone",
    "FieldCollection",
    # Geometry
    "BoundingBox",
    "haversine_km",
    "distance_km",
    "circle_ring",
    "GridEngine",
    # Synthesis
    "PriceModel",
    "synthesize_field",
    "build_influence_zones",
    # Configuration
    "FieldConfig",
    "RenderConfig",
    "AppConfig",
    "load_config",
    "CityPreset",
    "HANGZHOU",
]
