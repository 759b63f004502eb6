"""
City preset loader - read CityPreset definitions from JSON files.

Expected shape:

    {
      "name": "Hangzhou",
      "field_bounds": {"min_latitude": 30.12, "max_latitude": 30.38,
                       "min_longitude": 120.0, "max_longitude": 120.35},
      "attractors": [{"lng": 120.21, "lat": 30.24, "base_price": 90000, "decay_rate": 0.4}],
      "facilities": [{"name": "...", "type": "Hospital", "boost": 15000,
                      "radius": 2.0, "lng": 120.18, "lat": 30.25}],
      "landmarks": [{"id": "cbd", "name": "...", "description": "...",
                     "pose": {"lng": 120.21, "lat": 30.24, "zoom": 15.5}}],
      "exclusions": [{"name": "...", "lng": 120.14, "lat": 30.24,
                      "radius": 1.4, "min_price": 110000}]
    }
"""

import json
import logging
from pathlib import Path
from typing import Dict, Union

from landvalue.models import ConfigError
from landvalue.presets import HANGZHOU, CityPreset

log = logging.getLogger(__name__)

BUILTIN_PRESETS: Dict[str, CityPreset] = {
    "hangzhou": HANGZHOU,
}


def load_city_preset(path: Union[str, Path]) -> CityPreset:
    """
    Load a city preset from a JSON file.

    Raises:
        ConfigError: If the file is missing, not JSON, or not a valid preset.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read city preset {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"City preset {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"City preset {path} must be a JSON object")

    preset = CityPreset.from_dict(data)
    log.info(
        f"Loaded city preset {preset.name!r}: {len(preset.attractors)} attractors, "
        f"{len(preset.facilities)} facilities, {len(preset.landmarks)} landmarks"
    )
    return preset


def get_city_preset(name_or_path: str) -> CityPreset:
    """Built-in preset by name (case-insensitive), otherwise a JSON file path."""
    builtin = BUILTIN_PRESETS.get(name_or_path.lower())
    if builtin is not None:
        return builtin
    return load_city_preset(name_or_path)
