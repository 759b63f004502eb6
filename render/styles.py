"""
Base map styles and the fog that goes with each.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List


class MapStyle(str, Enum):
    STREETS = "mapbox://styles/mapbox/streets-v12"
    OUTDOORS = "mapbox://styles/mapbox/outdoors-v12"
    LIGHT = "mapbox://styles/mapbox/light-v11"
    DARK = "mapbox://styles/mapbox/dark-v11"
    SATELLITE = "mapbox://styles/mapbox/satellite-streets-v12"
    NAVIGATION_NIGHT = "mapbox://styles/mapbox/navigation-night-v1"


@dataclass(frozen=True)
class StyleOption:
    """An entry of the style picker."""
    id: MapStyle
    name: str
    icon: str


MAP_STYLES: List[StyleOption] = [
    StyleOption(MapStyle.NAVIGATION_NIGHT, "Night (3D)", "🌙"),
    StyleOption(MapStyle.SATELLITE, "Satellite", "🛰️"),
    StyleOption(MapStyle.LIGHT, "Light", "☀️"),
    StyleOption(MapStyle.STREETS, "Streets", "🛣️"),
]


FOG_PRESETS: Dict[str, Dict[str, Any]] = {
    "dark": {
        "range": [0.8, 8],
        "color": "#242b4b",
        "horizon-blend": 0.1,
    },
    "light": {
        "range": [0.5, 10],
        "color": "#ffffff",
        "horizon-blend": 0.2,
    },
}

_DARK_MARKERS = ("night", "satellite", "dark")


def style_url(style) -> str:
    """Accept a MapStyle or a raw style URL."""
    return style.value if isinstance(style, MapStyle) else str(style)


def is_dark_style(style) -> bool:
    url = style_url(style)
    return any(marker in url for marker in _DARK_MARKERS)


def fog_for_style(style) -> Dict[str, Any]:
    """Atmosphere settings matching a base map's palette."""
    return dict(FOG_PRESETS["dark" if is_dark_style(style) else "light"])
