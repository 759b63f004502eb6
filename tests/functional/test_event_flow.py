"""
End-to-end event flows: field synthesis through the controller into a deck.

Engine callbacks run on the manual EventQueue from conftest, so the order
of host events and engine events is fully controlled.
"""

import asyncio

import pytest
from landvalue.config import FieldConfig, RenderConfig
from landvalue.presets import HANGZHOU
from render.controller import ControllerState, RenderController
from render.layers import HEAT_LAYER, LABELS_LAYER, OVERLAY_LAYER_IDS
from render.styles import MAP_STYLES, MapStyle


@pytest.fixture
def session(engines, events):
    """A host session: fresh field, controller and camera log."""
    collection = HANGZHOU.synthesize(FieldConfig(grid_step_km=1.0), seed=2024)
    poses = []
    controller = RenderController(
        collection,
        RenderConfig(access_token="pk.test"),
        engine_factory=engines,
        on_view_state=poses.append,
    )
    asyncio.run(controller.mount("map"))
    return controller, poses


def test_style_a_then_b_before_a_loads(session, engines, events):
    """Verify switching A then B quickly ends on B with one set of layers."""
    controller, _ = session
    events.flush()
    engine = engines.created[0]
    controller.set_analysis_mode(True)

    controller.set_style(MapStyle.SATELLITE)
    events.step()  # nothing pending but A's styledata
    assert not controller.status.pending_style_switch

    controller.set_style(MapStyle.LIGHT)
    controller.set_style(MapStyle.STREETS)
    assert controller.status.pending_style_switch
    events.flush()

    assert engine.get_style()["name"] == MapStyle.STREETS.value
    assert engine.layer_ids().count(HEAT_LAYER) == 1
    assert engine.get_layer(LABELS_LAYER)["layout"]["visibility"] == "visible"
    assert not controller.status.pending_style_switch


def test_cycle_through_every_style(session, engines, events):
    """Verify overlays survive a tour of every base style."""
    controller, _ = session
    events.flush()
    engine = engines.created[0]
    controller.set_analysis_mode(True)

    for option in MAP_STYLES:
        controller.set_style(option.id)
        events.flush()
        assert all(
            engine.get_layer(layer)["layout"]["visibility"] == "visible"
            for layer in OVERLAY_LAYER_IDS
        )

    assert controller.status.current_style == MAP_STYLES[-1].id.value


def test_host_events_before_ready(session, engines, events):
    """Verify style, mode and flight requests made while loading settle correctly."""
    controller, poses = session
    controller.set_analysis_mode(True)
    controller.set_style(MapStyle.LIGHT)
    assert controller.fly_to(HANGZHOU.landmark("cbd")) is False

    events.flush()
    engine = engines.created[0]

    assert controller.status.state == ControllerState.READY
    assert engine.get_style()["name"] == MapStyle.LIGHT.value
    assert engine.get_layer(HEAT_LAYER)["layout"]["visibility"] == "visible"
    assert poses == []


def test_tour_of_landmarks(session, events):
    """Verify each flight interrupts the previous one and only the last lands."""
    controller, poses = session
    events.flush()

    for landmark in HANGZHOU.landmarks:
        assert controller.fly_to(landmark)
    events.flush()

    assert poses == [HANGZHOU.landmarks[-1].pose]


def test_unmount_mid_switch(session, engines, events):
    """Verify disposing while a style loads leaves no work behind."""
    controller, _ = session
    events.flush()
    engine = engines.created[0]

    controller.set_style(MapStyle.SATELLITE)
    controller.dispose()
    events.flush()

    assert engine.removed
    assert controller.status.state == ControllerState.DISPOSED
    assert engine.layer_ids() == []
