"""
Visual modes as data.

A mode is the complete set of paint properties and layer visibilities it
wants on the custom layers. Switching modes only writes these values, never
creates or removes layers, so applying a mode twice is the same as once and
switching back restores the previous look exactly.

New modes are added with register_mode(); the controller never branches on
mode names beyond picking NORMAL or ANALYSIS for the boolean flag.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from render.engine import HIDDEN, VISIBLE
from render.layers import (
    BUILDING_BASE_PAINT,
    BUILDINGS_LAYER,
    OVERLAY_LAYER_IDS,
    extrusion_ramp,
)

log = logging.getLogger(__name__)

NORMAL = "normal"
ANALYSIS = "analysis"


@dataclass(frozen=True)
class VisualMode:
    """Paint and visibility targets for the custom layers."""
    name: str
    description: str
    paint: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    visibility: Dict[str, str] = field(default_factory=dict)

    def signature(self):
        """Which (layer, property) pairs this mode controls."""
        paint_keys = {(layer, prop) for layer, props in self.paint.items() for prop in props}
        return paint_keys, set(self.visibility)


# ═══════════════════════════════════════════════════════════════════════════
# PREDEFINED MODES
# ═══════════════════════════════════════════════════════════════════════════
MODES: Dict[str, VisualMode] = {
    NORMAL: VisualMode(
        name=NORMAL,
        description="Subdued monochrome buildings colored by height, overlays hidden",
        paint={BUILDINGS_LAYER: copy.deepcopy(BUILDING_BASE_PAINT)},
        visibility={layer_id: HIDDEN for layer_id in OVERLAY_LAYER_IDS},
    ),
    ANALYSIS: VisualMode(
        name=ANALYSIS,
        description="Buildings on a steep warm height ramp, value heat, labels, zones and facilities shown",
        paint={
            BUILDINGS_LAYER: {
                "fill-extrusion-color": [
                    "interpolate", ["linear"], ["get", "height"],
                    0, "#1e3a8a",
                    20, "#7c3aed",
                    60, "#f59e0b",
                    150, "#ef4444",
                    300, "#fde047",
                ],
                "fill-extrusion-height": extrusion_ramp("height", scale=1.6),
                "fill-extrusion-base": extrusion_ramp("min_height"),
                "fill-extrusion-opacity": 0.95,
            },
        },
        visibility={layer_id: VISIBLE for layer_id in OVERLAY_LAYER_IDS},
    ),
}


def register_mode(mode: VisualMode) -> None:
    """
    Add or replace a mode.

    Raises:
        ValueError: If the mode does not control exactly the same layer
            properties and visibilities as NORMAL; otherwise switching away
            from it could leave values behind.
    """
    reference = MODES[NORMAL]
    if mode.name != NORMAL and mode.signature() != reference.signature():
        raise ValueError(
            f"Mode {mode.name!r} must set the same paint properties and "
            f"visibilities as {NORMAL!r}"
        )
    bad = {v for v in mode.visibility.values() if v not in (VISIBLE, HIDDEN)}
    if bad:
        raise ValueError(f"Mode {mode.name!r} has invalid visibility values: {sorted(bad)}")
    MODES[mode.name] = mode
    log.info(f"Registered visual mode {mode.name!r}")


def get_mode(name: str) -> VisualMode:
    try:
        return MODES[name]
    except KeyError:
        raise KeyError(f"Unknown visual mode {name!r}; known: {sorted(MODES)}") from None


def mode_for(analysis_mode: bool) -> VisualMode:
    return get_mode(ANALYSIS if analysis_mode else NORMAL)
