"""
Render layer for the land-value map.

Includes:
- Map engine interface and its pydeck adapter
- Render controller (lifecycle, style switching, visual modes)
- Custom sources/layers, visual modes, styles and fog
- Error taxonomy
"""

from render.engine import (
    MapEngine,
    EngineOptions,
    EngineFactory,
    EngineError,
    EngineUnavailableError,
    EnvironmentRestrictedError,
    AssetLoadError,
)
from render.errors import ErrorKind, Remedy, RenderError
from render.styles import MapStyle, MAP_STYLES, fog_for_style
from render.modes import VisualMode, MODES, register_mode, get_mode
from render.deck_engine import DeckEngine
from render.controller import RenderController, ControllerState, ControllerStatus

__all__ = [
    # Engine
    "MapEngine",
    "EngineOptions",
    "EngineFactory",
    "EngineError",
    "EngineUnavailableError",
    "EnvironmentRestrictedError",
    "AssetLoadError",
    "DeckEngine",
    # Errors
    "ErrorKind",
    "Remedy",
    "RenderError",
    # Styles & modes
    "MapStyle",
    "MAP_STYLES",
    "fog_for_style",
    "VisualMode",
    "MODES",
    "register_mode",
    "get_mode",
    # Controller
    "RenderController",
    "ControllerState",
    "ControllerStatus",
]
