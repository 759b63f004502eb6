"""
Map engine capability interface.

The render controller only ever talks to an engine through this narrow
surface, modelled on the Mapbox GL map object. Adapters (see
render.deck_engine) implement it for a concrete rendering library.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from landvalue.models import CameraPose

# Events an engine must emit
EVENT_LOAD = "load"
EVENT_STYLEDATA = "styledata"
EVENT_MOVE = "move"
EVENT_ERROR = "error"

VISIBLE = "visible"
HIDDEN = "none"

Handler = Callable[..., None]


class EngineError(Exception):
    """Any fault raised by a map engine."""


class EngineUnavailableError(EngineError):
    """The rendering library itself could not be found or loaded."""


class EnvironmentRestrictedError(EngineError):
    """The host context blocks a capability the engine needs (sandboxed frame, storage, workers)."""


class AssetLoadError(EngineError):
    """A runtime asset (worker script, style document) could not be fetched."""


@dataclass
class EngineOptions:
    """Construction parameters for an engine instance."""
    container: Any
    style: str
    pose: CameraPose
    max_bounds: Optional[List[List[float]]] = None
    min_zoom: float = 0.0
    access_token: str = ""
    worker_source: Optional[str] = None
    buildings_tile_url: Optional[str] = None


class MapEngine(ABC):
    """
    Capabilities the render controller consumes.

    Semantics the controller relies on:
    - `load` fires once, after construction, when the first style is ready
    - set_style() drops every custom source and layer, then `styledata`
      fires (possibly several times) until is_style_loaded() is True
    - adding a source or layer whose id already exists raises EngineError
    - fly_to() interrupts any camera animation already running
    """

    @abstractmethod
    def on(self, event: str, handler: Handler) -> None: ...

    @abstractmethod
    def once(self, event: str, handler: Handler) -> None: ...

    @abstractmethod
    def off(self, event: str, handler: Handler) -> None: ...

    @abstractmethod
    def add_source(self, source_id: str, source: Dict[str, Any]) -> None: ...

    @abstractmethod
    def get_source(self, source_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def add_layer(self, layer: Dict[str, Any], before_id: Optional[str] = None) -> None: ...

    @abstractmethod
    def get_layer(self, layer_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def set_layout_property(self, layer_id: str, name: str, value: Any) -> None: ...

    @abstractmethod
    def set_paint_property(self, layer_id: str, name: str, value: Any) -> None: ...

    @abstractmethod
    def get_style(self) -> Dict[str, Any]: ...

    @abstractmethod
    def set_style(self, style: str) -> None: ...

    @abstractmethod
    def is_style_loaded(self) -> bool: ...

    @abstractmethod
    def set_fog(self, fog: Optional[Dict[str, Any]]) -> None: ...

    @abstractmethod
    def fly_to(self, pose: CameraPose, duration_ms: int) -> None: ...

    @abstractmethod
    def get_camera(self) -> CameraPose: ...

    @abstractmethod
    def remove(self) -> None: ...

    async def wait_idle(self) -> None:
        """Resolve once every queued engine event has been delivered."""
        return None

    def render(self) -> Any:
        """Something the host can display. Adapters decide what."""
        return None


EngineFactory = Callable[[EngineOptions], MapEngine]
