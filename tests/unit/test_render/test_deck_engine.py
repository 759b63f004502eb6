import pydeck as pdk
import pytest
from unittest.mock import MagicMock
from landvalue.models import CameraPose
from render.deck_engine import (
    DeckEngine,
    color_range,
    color_ramp_js,
    elevation_js,
    evaluate,
    parse_color,
    property_name,
)
from render.engine import EngineError, EngineOptions
from render.layers import BUILDINGS_LAYER, HEAT_LAYER, OVERLAY_LAYER_IDS, build_sources, provision
from render.styles import MapStyle


@pytest.fixture
def engine(engine_options, events):
    return DeckEngine(engine_options, scheduler=events)


@pytest.fixture
def loaded_engine(engine, events):
    events.flush()
    return engine


def test_construction_requires_container(engine_options, events):
    engine_options.container = None
    with pytest.raises(EngineError):
        DeckEngine(engine_options, scheduler=events)


def test_mapbox_style_requires_token(engine_options, events):
    """Verify mapbox:// styles cannot be used without an access token."""
    engine_options.access_token = ""
    with pytest.raises(EngineError):
        DeckEngine(engine_options, scheduler=events)

    engine_options.style = "https://example.com/style.json"
    DeckEngine(engine_options, scheduler=events)


def test_load_fires_asynchronously(engine, events):
    """Verify load arrives on the next turn of the loop, not during construction."""
    handler = MagicMock()
    engine.on("load", handler)

    assert not engine.is_style_loaded()
    handler.assert_not_called()

    events.flush()
    handler.assert_called_once()
    assert handler.call_args[0][0]["type"] == "load"
    assert engine.is_style_loaded()


def test_empty_scheduler_is_used(engine_options, events):
    """Verify a scheduler that is falsy while empty still receives the callbacks."""
    assert not events
    engine = DeckEngine(engine_options, scheduler=events)

    assert len(events) == 1
    events.flush()
    assert engine.is_style_loaded()


def test_once_handlers_fire_once(loaded_engine, events):
    handler = MagicMock()
    loaded_engine.once("styledata", handler)

    loaded_engine.set_style(MapStyle.LIGHT)
    events.flush()
    loaded_engine.set_style(MapStyle.STREETS)
    events.flush()

    assert handler.call_count == 1
    assert loaded_engine.listener_count("styledata") == 0


def test_off_removes_handler(loaded_engine, events):
    handler = MagicMock()
    loaded_engine.on("move", handler)
    loaded_engine.off("move", handler)
    loaded_engine.fly_to(CameraPose(120.2, 30.2, 14), 2000)
    events.flush()
    handler.assert_not_called()


def test_sources_and_layers_need_loaded_style(engine):
    with pytest.raises(EngineError):
        engine.add_source("x", {"type": "geojson", "data": {}})


def test_duplicate_ids_raise(loaded_engine):
    """Verify sources and layers cannot be added twice."""
    loaded_engine.add_source("x", {"type": "geojson", "data": {}})
    with pytest.raises(EngineError):
        loaded_engine.add_source("x", {"type": "geojson", "data": {}})

    loaded_engine.add_layer({"id": "x-layer", "type": "circle", "source": "x"})
    with pytest.raises(EngineError):
        loaded_engine.add_layer({"id": "x-layer", "type": "circle", "source": "x"})


def test_layer_requires_source(loaded_engine):
    with pytest.raises(EngineError):
        loaded_engine.add_layer({"id": "orphan", "type": "circle", "source": "missing"})


def test_set_style_drops_custom_content(loaded_engine, events, collection):
    """Verify a style change wipes custom sources, layers and fog."""
    provision(loaded_engine, build_sources(collection))
    loaded_engine.set_fog({"color": "#242b4b"})

    loaded_engine.set_style(MapStyle.SATELLITE)

    assert loaded_engine.layer_ids() == []
    assert loaded_engine.get_source("value-samples") is None
    assert loaded_engine.get_fog() is None
    assert not loaded_engine.is_style_loaded()

    events.flush()
    assert loaded_engine.is_style_loaded()
    assert loaded_engine.get_style()["name"] == MapStyle.SATELLITE.value


def test_superseded_style_reports_not_loaded(loaded_engine, events):
    """Verify styledata for an overtaken style arrives while is_style_loaded() is still False."""
    seen = []
    loaded_engine.on("styledata", lambda event: seen.append(loaded_engine.is_style_loaded()))

    loaded_engine.set_style(MapStyle.SATELLITE)
    loaded_engine.set_style(MapStyle.LIGHT)
    events.flush()

    assert seen == [False, True]


def test_paint_and_layout_on_missing_layer(loaded_engine):
    with pytest.raises(EngineError):
        loaded_engine.set_paint_property("nope", "fill-opacity", 1)
    with pytest.raises(EngineError):
        loaded_engine.set_layout_property("nope", "visibility", "none")


def test_get_layer_returns_copy(loaded_engine, collection):
    provision(loaded_engine, build_sources(collection))
    layer = loaded_engine.get_layer(HEAT_LAYER)
    layer["layout"]["visibility"] = "visible"
    assert loaded_engine.get_layer(HEAT_LAYER)["layout"]["visibility"] == "none"


def test_fly_to_moves_camera(loaded_engine, events):
    """Verify a flight lands and announces the new camera."""
    moves = []
    loaded_engine.on("move", moves.append)
    target = CameraPose(120.2109, 30.2442, 15.5, 65, -20)

    loaded_engine.fly_to(target, 2000)
    assert loaded_engine.get_camera() != target

    events.flush()
    assert loaded_engine.get_camera() == target
    assert moves[0]["camera"] == target


def test_new_flight_interrupts_previous(loaded_engine, events):
    first = CameraPose(120.0, 30.0, 12)
    second = CameraPose(120.3, 30.3, 14)
    loaded_engine.fly_to(first, 2000)
    loaded_engine.fly_to(second, 2000)
    events.flush()
    assert loaded_engine.get_camera() == second


def test_remove_silences_engine(engine, events):
    """Verify nothing is delivered after removal and removal is idempotent."""
    handler = MagicMock()
    engine.on("load", handler)
    engine.remove()
    engine.remove()
    events.flush()

    handler.assert_not_called()
    assert engine.removed
    assert not engine.is_style_loaded()
    with pytest.raises(EngineError):
        engine.set_style(MapStyle.LIGHT)


def test_render_deck(loaded_engine, collection):
    """Verify render() produces a Deck with one deck.gl layer per custom layer."""
    provision(loaded_engine, build_sources(collection))
    deck = loaded_engine.render()

    assert isinstance(deck, pdk.Deck)
    ids = [layer.id for layer in deck.layers]
    assert ids == [BUILDINGS_LAYER] + list(OVERLAY_LAYER_IDS)
    heat = next(layer for layer in deck.layers if layer.id == HEAT_LAYER)
    assert heat.visible is False


def test_render_without_building_tiles(engine_options, events, collection):
    engine_options.buildings_tile_url = None
    engine = DeckEngine(engine_options, scheduler=events)
    events.flush()
    provision(engine, build_sources(collection))

    ids = [layer.id for layer in engine.render().layers]
    assert BUILDINGS_LAYER not in ids


# ═══════════════════════════════════════════════════════════════════════════
# EXPRESSION HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def test_property_name():
    assert property_name(["get", "price"]) == "price"
    assert property_name(0.5) is None


def test_evaluate_zoom_interpolation():
    expr = ["interpolate", ["linear"], ["zoom"], 10, 8, 15, 30]
    assert evaluate(expr, 9) == 8
    assert evaluate(expr, 12.5) == pytest.approx(19)
    assert evaluate(expr, 16) == 30
    assert evaluate(0.75, 12) == 0.75


def test_parse_color():
    assert parse_color("#3b82f6") == [59, 130, 246, 255]
    assert parse_color("rgba(33,102,172,0)") == [33, 102, 172, 0]
    assert parse_color("#ffffff", 0.5) == [255, 255, 255, 128]


def test_color_range_drops_transparent_stops():
    expr = ["interpolate", ["linear"], ["heatmap-density"], 0, "rgba(33,102,172,0)", 0.5, "#2563eb", 1, "#dc2626"]
    assert color_range(expr) == [[37, 99, 235], [220, 38, 38]]


def test_height_expressions():
    ramp = ["interpolate", ["linear"], ["get", "height"], 0, "#2a2a2a", 100, "#5a7a9a"]
    assert color_ramp_js(ramp) == "properties.height >= 100 ? [90, 122, 154, 255] : [42, 42, 42, 255]"
    assert elevation_js(["interpolate", ["linear"], ["zoom"], 13, 0, 13.05, ["get", "height"]]) == "properties.height"
    assert elevation_js(["interpolate", ["linear"], ["zoom"], 13, 0, 13.05, ["*", ["get", "height"], 1.6]]) == "properties.height * 1.6"
