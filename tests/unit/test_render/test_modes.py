import pytest
import render.modes as modes
from render.engine import HIDDEN, VISIBLE
from render.layers import BUILDINGS_LAYER, OVERLAY_LAYER_IDS
from render.modes import ANALYSIS, NORMAL, VisualMode, get_mode, mode_for, register_mode


def test_modes_control_the_same_properties():
    """Verify switching between the two modes overwrites every value it set."""
    assert get_mode(NORMAL).signature() == get_mode(ANALYSIS).signature()


def test_mode_visibility():
    assert all(mode_for(False).visibility[layer] == HIDDEN for layer in OVERLAY_LAYER_IDS)
    assert all(mode_for(True).visibility[layer] == VISIBLE for layer in OVERLAY_LAYER_IDS)


def test_analysis_exaggerates_height():
    height = mode_for(True).paint[BUILDINGS_LAYER]["fill-extrusion-height"]
    assert height[-1] == ["*", ["get", "height"], 1.6]


def test_unknown_mode():
    with pytest.raises(KeyError):
        get_mode("thermal")


def test_register_mode(monkeypatch):
    """Verify a mode with the full signature can be added."""
    monkeypatch.setattr(modes, "MODES", dict(modes.MODES))
    base = get_mode(NORMAL)
    night_owl = VisualMode(
        name="night-owl",
        description="Dim buildings, overlays visible",
        paint={BUILDINGS_LAYER: dict(base.paint[BUILDINGS_LAYER], **{"fill-extrusion-opacity": 0.5})},
        visibility={layer: VISIBLE for layer in OVERLAY_LAYER_IDS},
    )
    register_mode(night_owl)
    assert get_mode("night-owl") is night_owl


def test_register_mode_rejects_partial_modes(monkeypatch):
    """Verify a mode that leaves a property unset cannot be registered."""
    monkeypatch.setattr(modes, "MODES", dict(modes.MODES))
    partial = VisualMode(
        name="partial",
        description="Only touches opacity",
        paint={BUILDINGS_LAYER: {"fill-extrusion-opacity": 0.5}},
        visibility={layer: VISIBLE for layer in OVERLAY_LAYER_IDS},
    )
    with pytest.raises(ValueError):
        register_mode(partial)

    bad_visibility = VisualMode(
        name="bad",
        description="Invalid visibility",
        paint=get_mode(NORMAL).paint,
        visibility={layer: "maybe" for layer in OVERLAY_LAYER_IDS},
    )
    with pytest.raises(ValueError):
        register_mode(bad_visibility)
