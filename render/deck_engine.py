"""
pydeck adapter for the map engine interface.

DeckEngine keeps the engine state (style, sources, layers, fog, camera) in
memory with the same rules as Mapbox GL: set_style() wipes custom sources
and layers, sources/layers cannot be added twice or before the style has
loaded, and every notification is delivered asynchronously. render()
turns the current state into a pydeck.Deck for st.pydeck_chart().

Events are pushed through a scheduler callable. The default hands them to
the running asyncio loop with call_soon(); tests inject a list's append
to deliver them by hand.
"""

import asyncio
import copy
import logging
import re
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
import pydeck as pdk

from landvalue.models import CameraPose
from landvalue.theme import hex_to_rgba
from render.engine import (
    EVENT_ERROR,
    EVENT_LOAD,
    EVENT_MOVE,
    EVENT_STYLEDATA,
    HIDDEN,
    EngineError,
    EngineOptions,
    Handler,
    MapEngine,
)
from render.styles import style_url

log = logging.getLogger(__name__)

Scheduler = Callable[[Callable[[], None]], None]

# Base map layers every style is assumed to carry; the building extrusion
# is slotted underneath the first text label.
BASE_STYLE_LAYERS: List[Dict[str, Any]] = [
    {"id": "background", "type": "background"},
    {"id": "water", "type": "fill", "source": "composite", "source-layer": "water"},
    {"id": "road", "type": "line", "source": "composite", "source-layer": "road"},
    {
        "id": "road-label",
        "type": "symbol",
        "source": "composite",
        "source-layer": "road",
        "layout": {"text-field": ["get", "name"]},
    },
    {
        "id": "place-label",
        "type": "symbol",
        "source": "composite",
        "source-layer": "place_label",
        "layout": {"text-field": ["get", "name"]},
    },
]
BASE_SOURCE = "composite"

_RGBA_PATTERN = re.compile(r"rgba?\(([^)]*)\)")


def _call_soon(callback: Callable[[], None]) -> None:
    asyncio.get_running_loop().call_soon(callback)


class DeckEngine(MapEngine):
    """
    In-memory map engine rendered through pydeck.

    Usage:
        engine = DeckEngine(options)          # inside a running event loop
        engine.on("load", handler)
        await engine.wait_idle()              # load fires
        st.pydeck_chart(engine.render())
    """

    def __init__(self, options: EngineOptions, scheduler: Optional[Scheduler] = None):
        if options.container is None:
            raise EngineError("Map container is not available")
        if style_url(options.style).startswith("mapbox://") and not options.access_token:
            raise EngineError("An access token is required to use mapbox:// styles")

        self._options = options
        self._scheduler = scheduler if scheduler is not None else _call_soon
        self._handlers: Dict[str, List[Tuple[Handler, bool]]] = defaultdict(list)
        self._pending = 0
        self._removed = False

        self._style = style_url(options.style)
        self._style_loaded = False
        self._style_generation = 0
        self._sources: Dict[str, Dict[str, Any]] = {}
        self._layers: List[Dict[str, Any]] = []
        self._fog: Optional[Dict[str, Any]] = None

        self._camera = options.pose
        self._flight: Optional[Tuple[CameraPose, int]] = None
        self._flight_token = 0

        self._schedule(self._finish_initial_load)
        log.debug(f"DeckEngine created with style {self._style}")

    @classmethod
    def construct(cls, options: EngineOptions) -> "DeckEngine":
        """EngineFactory entry point."""
        return cls(options)

    # ───────────────────────────────────────────────────────────────────────
    # Events
    # ───────────────────────────────────────────────────────────────────────
    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append((handler, False))

    def once(self, event: str, handler: Handler) -> None:
        self._handlers[event].append((handler, True))

    def off(self, event: str, handler: Handler) -> None:
        self._handlers[event] = [(h, o) for h, o in self._handlers[event] if h is not handler]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def _emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        payload = dict(payload or {}, type=event)
        listeners = list(self._handlers.get(event, []))
        self._handlers[event] = [(h, o) for h, o in listeners if not o]
        for handler, _ in listeners:
            if self._removed:
                break
            handler(payload)

    def _schedule(self, callback: Callable[[], None]) -> None:
        self._pending += 1

        def deliver():
            self._pending -= 1
            if self._removed:
                return
            callback()

        self._scheduler(deliver)

    async def wait_idle(self) -> None:
        """Yield to the loop until every scheduled event has been delivered."""
        while self._pending and not self._removed:
            await asyncio.sleep(0)

    def report_error(self, error: Any) -> None:
        """Deliver an engine `error` event (tile, style or network fault)."""
        self._schedule(lambda: self._emit(EVENT_ERROR, {"error": error}))

    def _finish_initial_load(self) -> None:
        self._style_loaded = True
        self._emit(EVENT_STYLEDATA, {"style": self._style})
        self._emit(EVENT_LOAD)

    def _finish_style(self, generation: int) -> None:
        # A superseded style still reports partial style data, just not loaded
        if generation == self._style_generation:
            self._style_loaded = True
        self._emit(EVENT_STYLEDATA, {"style": self._style})

    # ───────────────────────────────────────────────────────────────────────
    # Sources & layers
    # ───────────────────────────────────────────────────────────────────────
    def _check_usable(self) -> None:
        if self._removed:
            raise EngineError("Map engine has been removed")

    def _check_style(self) -> None:
        self._check_usable()
        if not self._style_loaded:
            raise EngineError("Style is not done loading")

    def add_source(self, source_id: str, source: Dict[str, Any]) -> None:
        self._check_style()
        if source_id in self._sources or source_id == BASE_SOURCE:
            raise EngineError(f"There is already a source with ID {source_id!r}")
        self._sources[source_id] = source

    def get_source(self, source_id: str) -> Optional[Dict[str, Any]]:
        return self._sources.get(source_id)

    def _find_layer(self, layer_id: str) -> Optional[Dict[str, Any]]:
        for layer in self._layers:
            if layer["id"] == layer_id:
                return layer
        return None

    def add_layer(self, layer: Dict[str, Any], before_id: Optional[str] = None) -> None:
        self._check_style()
        layer_id = layer["id"]
        if self.get_layer(layer_id) is not None:
            raise EngineError(f"Layer with id {layer_id!r} already exists on this map")
        source = layer.get("source")
        if source and source != BASE_SOURCE and source not in self._sources:
            raise EngineError(f"Source {source!r} not found for layer {layer_id!r}")

        layer = copy.deepcopy(layer)
        custom_ids = [l["id"] for l in self._layers]
        if before_id in custom_ids:
            self._layers.insert(custom_ids.index(before_id), layer)
        elif before_id is not None and any(l["id"] == before_id for l in BASE_STYLE_LAYERS):
            # Below the base labels means below every custom layer added so far
            self._layers.insert(0, layer)
        else:
            self._layers.append(layer)

    def get_layer(self, layer_id: str) -> Optional[Dict[str, Any]]:
        layer = self._find_layer(layer_id)
        if layer is None:
            layer = next((l for l in BASE_STYLE_LAYERS if l["id"] == layer_id), None)
        return copy.deepcopy(layer) if layer is not None else None

    def layer_ids(self) -> List[str]:
        """Custom layer ids in draw order."""
        return [l["id"] for l in self._layers]

    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None:
        self._check_usable()
        layer = self._find_layer(layer_id)
        if layer is None:
            raise EngineError(f"The layer {layer_id!r} does not exist in the map's style")
        layer.setdefault("layout", {})[name] = copy.deepcopy(value)

    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None:
        self._check_usable()
        layer = self._find_layer(layer_id)
        if layer is None:
            raise EngineError(f"The layer {layer_id!r} does not exist in the map's style")
        layer.setdefault("paint", {})[name] = copy.deepcopy(value)

    # ───────────────────────────────────────────────────────────────────────
    # Style, fog, camera
    # ───────────────────────────────────────────────────────────────────────
    def get_style(self) -> Dict[str, Any]:
        return {
            "name": self._style,
            "layers": copy.deepcopy(BASE_STYLE_LAYERS) + copy.deepcopy(self._layers),
            "fog": copy.deepcopy(self._fog),
        }

    def set_style(self, style) -> None:
        self._check_usable()
        self._style = style_url(style)
        # Custom sources and layers do not survive a style change
        self._sources.clear()
        self._layers = []
        self._fog = None
        self._style_loaded = False
        self._style_generation += 1
        generation = self._style_generation
        self._schedule(lambda: self._finish_style(generation))
        log.debug(f"Style set to {self._style} (generation {generation})")

    def is_style_loaded(self) -> bool:
        return self._style_loaded and not self._removed

    def set_fog(self, fog: Optional[Dict[str, Any]]) -> None:
        self._check_usable()
        self._fog = copy.deepcopy(fog)

    def get_fog(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._fog)

    def fly_to(self, pose: CameraPose, duration_ms: int) -> None:
        self._check_usable()
        self._flight_token += 1
        token = self._flight_token
        self._flight = (pose, duration_ms)
        self._schedule(lambda: self._finish_flight(token))

    def _finish_flight(self, token: int) -> None:
        # Interrupted flights never land
        if token != self._flight_token or self._flight is None:
            return
        self._camera = self._flight[0]
        self._emit(EVENT_MOVE, {"camera": self._camera})

    def get_camera(self) -> CameraPose:
        return self._camera

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._handlers.clear()
        self._sources.clear()
        self._layers = []
        log.debug("DeckEngine removed")

    @property
    def removed(self) -> bool:
        return self._removed

    # ───────────────────────────────────────────────────────────────────────
    # pydeck translation
    # ───────────────────────────────────────────────────────────────────────
    def render(self) -> pdk.Deck:
        """Current state as a pydeck.Deck; hidden layers are kept but not drawn."""
        self._check_usable()
        layers = []
        for spec in self._layers:
            deck_layer = self._to_deck_layer(spec)
            if deck_layer is not None:
                layers.append(deck_layer)

        target, duration = self._flight if self._flight else (self._camera, 0)
        view = pdk.ViewState(
            longitude=target.lng,
            latitude=target.lat,
            zoom=target.zoom,
            pitch=target.pitch,
            bearing=target.bearing,
            min_zoom=self._options.min_zoom,
            transition_duration=duration,
        )

        deck_kwargs = {}
        if self._options.access_token:
            deck_kwargs["api_keys"] = {"mapbox": self._options.access_token}
        return pdk.Deck(
            layers=layers,
            initial_view_state=view,
            map_style=self._style,
            map_provider="mapbox",
            tooltip={"text": "{label}"},
            **deck_kwargs,
        )

    def _to_deck_layer(self, spec: Dict[str, Any]) -> Optional[pdk.Layer]:
        visible = (spec.get("layout") or {}).get("visibility") != HIDDEN
        paint = spec.get("paint") or {}
        zoom = self._camera.zoom
        builder = {
            "heatmap": self._heatmap_layer,
            "symbol": self._text_layer,
            "fill": self._polygon_layer,
            "circle": self._scatter_layer,
            "fill-extrusion": self._extrusion_layer,
        }.get(spec.get("type"))
        if builder is None:
            log.debug(f"No deck.gl equivalent for layer type {spec.get('type')!r}, skipping")
            return None
        return builder(spec, paint, zoom, visible)

    def _features(self, spec: Dict[str, Any]) -> List[Dict[str, Any]]:
        source = self._sources.get(spec.get("source"), {})
        return (source.get("data") or {}).get("features", [])

    def _points_frame(self, spec: Dict[str, Any]) -> pd.DataFrame:
        rows = []
        for feature in self._features(spec):
            lng, lat = feature["geometry"]["coordinates"][:2]
            rows.append(dict(feature.get("properties") or {}, lng=lng, lat=lat))
        return pd.DataFrame(rows)

    def _heatmap_layer(self, spec, paint, zoom, visible):
        return pdk.Layer(
            "HeatmapLayer",
            self._points_frame(spec),
            id=spec["id"],
            get_position=["lng", "lat"],
            get_weight=property_name(paint.get("heatmap-weight")) or 1,
            radius_pixels=int(evaluate(paint.get("heatmap-radius", 30), zoom)),
            intensity=float(evaluate(paint.get("heatmap-intensity", 1), zoom)),
            opacity=float(evaluate(paint.get("heatmap-opacity", 1), zoom)),
            color_range=color_range(paint.get("heatmap-color")),
            visible=visible,
        )

    def _text_layer(self, spec, paint, zoom, visible):
        layout = spec.get("layout") or {}
        frame = self._points_frame(spec)
        text_prop = property_name(layout.get("text-field"))
        if text_prop and not frame.empty:
            frame["label"] = frame[text_prop]
        return pdk.Layer(
            "TextLayer",
            frame,
            id=spec["id"],
            get_position=["lng", "lat"],
            get_text="label",
            get_size=float(evaluate(layout.get("text-size", 12), zoom)),
            get_color=parse_color(paint.get("text-color", "#ffffff")),
            visible=visible and zoom >= spec.get("minzoom", 0),
        )

    def _polygon_layer(self, spec, paint, zoom, visible):
        opacity = float(evaluate(paint.get("fill-opacity", 1), zoom))
        rows = []
        for feature in self._features(spec):
            props = feature.get("properties") or {}
            fill = resolve_color(paint.get("fill-color", "#000000"), props, opacity)
            outline = resolve_color(paint.get("fill-outline-color", paint.get("fill-color", "#000000")), props)
            rows.append(dict(
                props,
                polygon=feature["geometry"]["coordinates"][0],
                fill_rgba=fill,
                line_rgba=outline,
            ))
        return pdk.Layer(
            "PolygonLayer",
            pd.DataFrame(rows),
            id=spec["id"],
            get_polygon="polygon",
            get_fill_color="fill_rgba",
            get_line_color="line_rgba",
            stroked=True,
            filled=True,
            line_width_min_pixels=1,
            pickable=True,
            visible=visible,
        )

    def _scatter_layer(self, spec, paint, zoom, visible):
        frame = self._points_frame(spec)
        if not frame.empty:
            frame["fill_rgba"] = [
                resolve_color(paint.get("circle-color", "#ffffff"), row)
                for row in frame.to_dict("records")
            ]
        radius = float(evaluate(paint.get("circle-radius", 5), zoom))
        return pdk.Layer(
            "ScatterplotLayer",
            frame,
            id=spec["id"],
            get_position=["lng", "lat"],
            get_fill_color="fill_rgba",
            get_line_color=parse_color(paint.get("circle-stroke-color", "#ffffff")),
            get_radius=60,
            radius_min_pixels=radius,
            radius_max_pixels=radius * 2,
            line_width_min_pixels=float(evaluate(paint.get("circle-stroke-width", 0), zoom)),
            stroked=True,
            pickable=True,
            visible=visible,
        )

    def _extrusion_layer(self, spec, paint, zoom, visible):
        if spec.get("source") != BASE_SOURCE or not self._options.buildings_tile_url:
            log.debug(f"Extrusion layer {spec['id']!r} has no vector tiles to draw from")
            return None
        url = self._options.buildings_tile_url
        if self._options.access_token:
            url = f"{url}?access_token={self._options.access_token}"
        opacity = float(evaluate(paint.get("fill-extrusion-opacity", 1), zoom))
        return pdk.Layer(
            "MVTLayer",
            url,
            id=spec["id"],
            min_zoom=spec.get("minzoom", 0),
            extruded=True,
            get_elevation=elevation_js(paint.get("fill-extrusion-height")),
            get_fill_color=color_ramp_js(paint.get("fill-extrusion-color"), opacity),
            opacity=opacity,
            visible=visible and zoom >= spec.get("minzoom", 0),
        )


# ═══════════════════════════════════════════════════════════════════════════
# EXPRESSION HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def property_name(value: Any) -> Optional[str]:
    """['get', 'x'] -> 'x'."""
    if isinstance(value, list) and len(value) == 2 and value[0] == "get":
        return value[1]
    return None


def evaluate(value: Any, zoom: float) -> Any:
    """Resolve a constant or a linear zoom interpolation to a number."""
    if not (isinstance(value, list) and value and value[0] == "interpolate"):
        return value
    if value[2] != ["zoom"]:
        raise ValueError(f"Only zoom interpolation can be evaluated, got {value[2]!r}")
    stops = list(zip(value[3::2], value[4::2]))
    if zoom <= stops[0][0]:
        return stops[0][1]
    for (z0, v0), (z1, v1) in zip(stops, stops[1:]):
        if zoom <= z1:
            return v0 + (v1 - v0) * (zoom - z0) / (z1 - z0)
    return stops[-1][1]


def parse_color(color: str, opacity: float = 1.0) -> List[int]:
    """Hex or rgb()/rgba() CSS color to an [r, g, b, a] list."""
    match = _RGBA_PATTERN.fullmatch(color.strip())
    if match:
        parts = [p.strip() for p in match.group(1).split(",")]
        alpha = float(parts[3]) if len(parts) > 3 else 1.0
        return [int(float(p)) for p in parts[:3]] + [int(round(alpha * opacity * 255))]
    return hex_to_rgba(color, opacity)


def resolve_color(value: Any, properties: Dict[str, Any], opacity: float = 1.0) -> List[int]:
    """Constant color or ['get', prop] looked up on a feature's properties."""
    prop = property_name(value)
    if prop is not None:
        value = properties.get(prop, "#000000")
    return parse_color(value, opacity)


def color_range(value: Any) -> List[List[int]]:
    """Heatmap density ramp to deck.gl's colorRange (fully transparent stops dropped)."""
    if not (isinstance(value, list) and value and value[0] == "interpolate"):
        return [parse_color("#2563eb")[:3], parse_color("#dc2626")[:3]]
    colors = [parse_color(c) for c in value[4::2]]
    return [c[:3] for c in colors if c[3] > 0]


def color_ramp_js(value: Any, opacity: float = 1.0) -> str:
    """
    Height color ramp as a deck.gl accessor expression.

    Linear interpolation between stops is approximated by holding each
    stop's color until the next one.
    """
    if not (isinstance(value, list) and value and value[0] == "interpolate"):
        rgba = parse_color(value if isinstance(value, str) else "#888888", opacity)
        return f"[{', '.join(str(c) for c in rgba)}]"
    prop = property_name(value[2]) or "height"
    stops = list(zip(value[3::2], value[4::2]))
    expr = "[{}]".format(", ".join(str(c) for c in parse_color(stops[0][1], opacity)))
    for threshold, color in stops[1:]:
        rgba = ", ".join(str(c) for c in parse_color(color, opacity))
        expr = f"properties.{prop} >= {threshold} ? [{rgba}] : {expr}"
    return expr


def elevation_js(value: Any) -> str:
    """Final stop of a zoom-gated extrusion ramp as a deck.gl accessor expression."""
    target = value
    if isinstance(value, list) and value and value[0] == "interpolate":
        target = value[-1]
    prop = property_name(target)
    if prop:
        return f"properties.{prop}"
    if isinstance(target, list) and len(target) == 3 and target[0] == "*":
        return f"properties.{property_name(target[1]) or 'height'} * {target[2]}"
    return str(target if target is not None else 0)
