"""
Custom sources and layers the controller provisions into the engine.

Layer specs use the Mapbox GL style-spec vocabulary (type, source, paint,
layout, expressions) since that is what the engine interface speaks.
Provisioning is idempotent: anything already present is left alone.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from landvalue.models import FieldCollection
from render.engine import HIDDEN, MapEngine

log = logging.getLogger(__name__)

# Source ids
SOURCE_SAMPLES = "value-samples"
SOURCE_ZONES = "influence-zones"
SOURCE_FACILITIES = "facilities"

# Layer ids
BUILDINGS_LAYER = "3d-buildings"
ZONES_LAYER = "influence-zones-fill"
HEAT_LAYER = "value-heat"
MARKERS_LAYER = "facility-markers"
LABELS_LAYER = "value-labels"

# Draw order, bottom to top
OVERLAY_LAYER_IDS = (ZONES_LAYER, HEAT_LAYER, MARKERS_LAYER, LABELS_LAYER)

BUILDINGS_MIN_ZOOM = 13

# Extrusion pops up between these zooms instead of snapping in
_EXTRUDE_ZOOM_START = 13
_EXTRUDE_ZOOM_END = 13.05


def extrusion_ramp(property_name: str, scale: float = 1.0) -> List[Any]:
    """Zoom-gated extrusion of a height attribute, optionally exaggerated."""
    value: Any = ["get", property_name]
    if scale != 1.0:
        value = ["*", value, scale]
    return ["interpolate", ["linear"], ["zoom"], _EXTRUDE_ZOOM_START, 0, _EXTRUDE_ZOOM_END, value]


BUILDING_BASE_PAINT: Dict[str, Any] = {
    "fill-extrusion-color": [
        "interpolate", ["linear"], ["get", "height"],
        0, "#2a2a2a",
        50, "#4a4a4a",
        100, "#5a7a9a",
        300, "#8ab4d4",
    ],
    "fill-extrusion-height": extrusion_ramp("height"),
    "fill-extrusion-base": extrusion_ramp("min_height"),
    "fill-extrusion-opacity": 0.9,
}


def build_sources(collection: FieldCollection) -> Dict[str, Dict[str, Any]]:
    """GeoJSON sources for one field collection."""
    return {
        SOURCE_SAMPLES: {"type": "geojson", "data": collection.samples_geojson()},
        SOURCE_ZONES: {"type": "geojson", "data": collection.zones_geojson()},
        SOURCE_FACILITIES: {"type": "geojson", "data": collection.facilities_geojson()},
    }


def building_layer() -> Dict[str, Any]:
    """3D extrusion of the base map's own building footprints."""
    return {
        "id": BUILDINGS_LAYER,
        "source": "composite",
        "source-layer": "building",
        "filter": ["==", "extrude", "true"],
        "type": "fill-extrusion",
        "minzoom": BUILDINGS_MIN_ZOOM,
        "paint": copy.deepcopy(BUILDING_BASE_PAINT),
    }


def overlay_layers() -> List[Dict[str, Any]]:
    """Value overlays, created hidden; the visual mode decides visibility."""
    return [
        {
            "id": ZONES_LAYER,
            "type": "fill",
            "source": SOURCE_ZONES,
            "layout": {"visibility": HIDDEN},
            "paint": {
                "fill-color": ["get", "color"],
                "fill-opacity": 0.12,
                "fill-outline-color": ["get", "color"],
            },
        },
        {
            "id": HEAT_LAYER,
            "type": "heatmap",
            "source": SOURCE_SAMPLES,
            "layout": {"visibility": HIDDEN},
            "paint": {
                "heatmap-weight": ["get", "heatmapWeight"],
                "heatmap-intensity": ["interpolate", ["linear"], ["zoom"], 10, 0.6, 15, 1.5],
                "heatmap-color": [
                    "interpolate", ["linear"], ["heatmap-density"],
                    0, "rgba(33,102,172,0)",
                    0.2, "#2563eb",
                    0.4, "#10b981",
                    0.6, "#facc15",
                    0.8, "#f97316",
                    1, "#dc2626",
                ],
                "heatmap-radius": ["interpolate", ["linear"], ["zoom"], 10, 8, 15, 30],
                "heatmap-opacity": 0.75,
            },
        },
        {
            "id": MARKERS_LAYER,
            "type": "circle",
            "source": SOURCE_FACILITIES,
            "layout": {"visibility": HIDDEN},
            "paint": {
                "circle-color": ["get", "color"],
                "circle-radius": 7,
                "circle-stroke-width": 2,
                "circle-stroke-color": "#ffffff",
            },
        },
        {
            "id": LABELS_LAYER,
            "type": "symbol",
            "source": SOURCE_SAMPLES,
            "minzoom": 14.5,
            "layout": {
                "visibility": HIDDEN,
                "text-field": ["get", "formattedPrice"],
                "text-size": 11,
            },
            "paint": {
                "text-color": "#ffffff",
                "text-halo-color": "#000000",
                "text-halo-width": 1,
            },
        },
    ]


def find_label_layer_id(style: Optional[Dict[str, Any]]) -> Optional[str]:
    """First symbol layer with text labels; buildings go underneath it."""
    if not style:
        return None
    for layer in style.get("layers", []):
        if layer.get("type") == "symbol" and (layer.get("layout") or {}).get("text-field"):
            return layer["id"]
    return None


@dataclass
class ProvisionReport:
    """What a provisioning pass actually created."""
    sources_added: List[str] = field(default_factory=list)
    layers_added: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.sources_added or self.layers_added)


def provision(engine: MapEngine, sources: Dict[str, Dict[str, Any]]) -> ProvisionReport:
    """
    Make sure every custom source and layer exists in the engine.

    Safe to call any number of times: ids already present are skipped, so a
    second call in the same style is a no-op.
    """
    report = ProvisionReport()

    for source_id, source in sources.items():
        if engine.get_source(source_id) is None:
            engine.add_source(source_id, source)
            report.sources_added.append(source_id)

    if engine.get_layer(BUILDINGS_LAYER) is None:
        engine.add_layer(building_layer(), before_id=find_label_layer_id(engine.get_style()))
        report.layers_added.append(BUILDINGS_LAYER)

    for spec in overlay_layers():
        if engine.get_layer(spec["id"]) is None:
            engine.add_layer(spec)
            report.layers_added.append(spec["id"])

    if report.changed:
        log.info(
            f"Provisioned {len(report.sources_added)} sources, "
            f"{len(report.layers_added)} layers"
        )
    else:
        log.debug("Provisioning skipped, everything already present")
    return report

