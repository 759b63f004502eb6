"""
Data loaders for the land-value map.

Includes:
- Engine assets (worker script over HTTP, retried and cached)
- City presets (built-in and JSON files)
"""

from loaders.assets import EngineAssetLoader, get_asset_loader
from loaders.presets import BUILTIN_PRESETS, load_city_preset, get_city_preset

__all__ = [
    "EngineAssetLoader",
    "get_asset_loader",
    "BUILTIN_PRESETS",
    "load_city_preset",
    "get_city_preset",
]
