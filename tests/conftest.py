import pytest
from landvalue.config import DEFAULT_BUILDINGS_TILES, FieldConfig, RenderConfig
from landvalue.models import CameraPose
from landvalue.presets import HANGZHOU
from render.deck_engine import DeckEngine
from render.engine import EngineOptions
from render.styles import MapStyle


class EventQueue:
    """Stand-in for the event loop: collects engine callbacks and runs them on demand."""

    def __init__(self):
        self.callbacks = []

    def __call__(self, callback):
        self.callbacks.append(callback)

    def __len__(self):
        return len(self.callbacks)

    def step(self):
        self.callbacks.pop(0)()

    def flush(self):
        delivered = 0
        while self.callbacks:
            self.step()
            delivered += 1
        return delivered


@pytest.fixture(scope="session")
def collection():
    return HANGZHOU.synthesize(FieldConfig(grid_step_km=1.5), seed=1)


@pytest.fixture
def events():
    return EventQueue()


@pytest.fixture
def engine_options():
    return EngineOptions(
        container="map",
        style=MapStyle.NAVIGATION_NIGHT.value,
        pose=CameraPose(120.19, 30.25, 13, 55, -10),
        access_token="pk.test",
        buildings_tile_url=DEFAULT_BUILDINGS_TILES,
    )


@pytest.fixture
def render_config():
    return RenderConfig(access_token="pk.test")


@pytest.fixture
def engines(events):
    """Engine factory on the manual event queue; keeps every engine it built."""
    created = []

    def factory(options):
        engine = DeckEngine(options, scheduler=events)
        created.append(engine)
        return engine

    factory.created = created
    return factory
