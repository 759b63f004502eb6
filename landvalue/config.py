"""
Configuration for the field synthesizer and the render controller.

Values are plain dataclasses with explicit defaults. An optional JSON file
can override any of them:

    {
        "synthesis": {"grid_step_km": 0.5, "seed": 7},
        "render": {"fly_duration_ms": 1500}
    }

The map access token is read from the MAPBOX_TOKEN environment variable
unless the file sets one. The address offered for reopening the app outside a
restricted frame comes from APP_URL the same way.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Optional

from landvalue.geo import MIN_RING_VERTICES, BoundingBox
from landvalue.models import CameraPose, ConfigError

log = logging.getLogger(__name__)

DEFAULT_STYLE = "mapbox://styles/mapbox/navigation-night-v1"
DEFAULT_APP_URL = "http://localhost:8501"
DEFAULT_BUILDINGS_TILES = (
    "https://api.mapbox.com/v4/mapbox.mapbox-streets-v8/{z}/{x}/{y}.vector.pbf"
)


# ═══════════════════════════════════════════════════════════════════════════
# FIELD SYNTHESIS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class FieldConfig:
    """
    Tunables of the land-value synthesizer.

    Prices are yuan per square metre.
    """
    floor_price: float = 25000.0       # Minimum city price, macro never drops below
    discard_price: float = 28000.0     # Nodes pricing below this are unbuildable
    cap_price: float = 160000.0        # Heat weight saturates here
    noise_min: float = 0.85
    noise_max: float = 1.15
    jitter_fraction: float = 0.18      # Of a grid cell, per axis
    grid_step_km: float = 0.6
    zone_vertices: int = 64
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.floor_price < 0:
            raise ConfigError("floor_price must be >= 0")
        if self.cap_price <= 0:
            raise ConfigError("cap_price must be > 0")
        if not 0 < self.noise_min <= self.noise_max:
            raise ConfigError(
                f"Noise range must satisfy 0 < min <= max, got [{self.noise_min}, {self.noise_max}]"
            )
        if not 0.0 <= self.jitter_fraction <= 0.5:
            raise ConfigError("jitter_fraction must be within [0, 0.5]")
        if self.grid_step_km <= 0:
            raise ConfigError("grid_step_km must be > 0")
        if self.zone_vertices < MIN_RING_VERTICES:
            raise ConfigError(f"zone_vertices must be >= {MIN_RING_VERTICES}")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "FieldConfig":
        return cls(**data)


# ═══════════════════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class RenderConfig:
    """Settings handed to the render controller and its engine."""
    initial_style: str = DEFAULT_STYLE
    default_view: CameraPose = field(
        default_factory=lambda: CameraPose(lng=120.19, lat=30.25, zoom=13, pitch=55, bearing=-10)
    )
    max_bounds: BoundingBox = field(
        default_factory=lambda: BoundingBox.from_corners((119.90, 30.10), (120.45, 30.45))
    )
    min_zoom: float = 10.0
    fly_duration_ms: int = 2000
    access_token: str = ""
    worker_url: Optional[str] = None
    worker_required: bool = False
    buildings_tile_url: str = DEFAULT_BUILDINGS_TILES
    reopen_url: str = ""

    def __post_init__(self):
        if not self.access_token:
            self.access_token = os.getenv("MAPBOX_TOKEN", "")
        if not self.reopen_url:
            self.reopen_url = os.getenv("APP_URL", DEFAULT_APP_URL)
        if self.fly_duration_ms <= 0:
            raise ConfigError("fly_duration_ms must be > 0")

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["access_token"] = "***" if self.access_token else ""
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "RenderConfig":
        data = dict(data)
        if "default_view" in data:
            data["default_view"] = CameraPose.from_dict(data["default_view"])
        if "max_bounds" in data:
            data["max_bounds"] = BoundingBox.from_dict(data["max_bounds"])
        return cls(**data)


@dataclass
class AppConfig:
    synthesis: FieldConfig = field(default_factory=FieldConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    @classmethod
    def from_dict(cls, data: Dict) -> "AppConfig":
        return cls(
            synthesis=FieldConfig.from_dict(data.get("synthesis", {})),
            render=RenderConfig.from_dict(data.get("render", {})),
        )


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load configuration, falling back to defaults.

    Args:
        path: Optional JSON file; a missing file is an error, None means defaults

    Raises:
        ConfigError: If the file is unreadable or any value is invalid
    """
    if path is None:
        return AppConfig()

    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e

    try:
        config = AppConfig.from_dict(data)
    except TypeError as e:
        # Unknown keys surface as unexpected keyword arguments
        raise ConfigError(f"Invalid config {config_path}: {e}") from e

    log.info(f"Loaded config from {config_path}")
    return config
