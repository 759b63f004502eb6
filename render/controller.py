"""
Render Controller: owns the map engine and everything drawn on it.

Lifecycle:

    UNINITIALIZED --mount()--> INITIALIZING --load--> READY --dispose()--> DISPOSED
                                    |                   |
                                    +----> ERRORED <----+

On top of the lifecycle sit two independent settings, the analysis-mode
flag and the base map style. Hosts drive everything through named events
(mount, set_style, set_analysis_mode, fly_to, dispose); the engine answers
through its own events (load, styledata, move, error).

Rules the controller keeps:
- The engine is constructed at most once per controller and never handed out.
- After any operation completes, overlay visibility matches analysis_mode.
- A style switch only re-provisions for the latest switch (generation token).
- Every engine callback checks that the controller is still alive first.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from landvalue.config import RenderConfig
from landvalue.models import CameraPose, FieldCollection, Landmark
from render.deck_engine import DeckEngine
from render.engine import (
    EVENT_ERROR,
    EVENT_LOAD,
    EVENT_MOVE,
    EVENT_STYLEDATA,
    AssetLoadError,
    EngineError,
    EngineFactory,
    EngineOptions,
    MapEngine,
)
from render.errors import (
    ErrorKind,
    RenderError,
    classify_construction_error,
    is_benign_engine_error,
    load_failure,
)
from render.layers import build_sources, provision
from render.modes import mode_for
from render.styles import fog_for_style, style_url

if TYPE_CHECKING:
    from loaders.assets import EngineAssetLoader

log = logging.getLogger(__name__)


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    ERRORED = "errored"
    DISPOSED = "disposed"


@dataclass
class RenderState:
    """Mutable state owned by one RenderController."""
    current_style: str
    lifecycle: ControllerState = ControllerState.UNINITIALIZED
    loaded: bool = False
    analysis_mode: bool = False
    pending_style_switch: bool = False
    style_generation: int = 0
    error: Optional[RenderError] = None


@dataclass(frozen=True)
class ControllerStatus:
    """Read-only snapshot handed to the host."""
    state: ControllerState
    loaded: bool
    analysis_mode: bool
    current_style: str
    pending_style_switch: bool
    error: Optional[RenderError] = None

    @property
    def is_loading(self) -> bool:
        return self.state == ControllerState.INITIALIZING

    @property
    def is_ready(self) -> bool:
        return self.state == ControllerState.READY


class RenderController:
    """
    State machine around a single map engine instance.

    Usage:
        controller = RenderController(collection, config.render, on_view_state=cb)
        await controller.mount(container)
        controller.set_analysis_mode(True)
        controller.set_style(MapStyle.SATELLITE)
        await controller.settle()
        st.pydeck_chart(controller.render())
        controller.dispose()
    """

    def __init__(
        self,
        collection: FieldCollection,
        config: Optional[RenderConfig] = None,
        engine_factory: Optional[EngineFactory] = None,
        asset_loader: Optional["EngineAssetLoader"] = None,
        on_view_state: Optional[Callable[[CameraPose], None]] = None,
        on_status: Optional[Callable[[ControllerStatus], None]] = None,
    ):
        self._config = config or RenderConfig()
        self._engine_factory = engine_factory if engine_factory is not None else DeckEngine.construct
        self._asset_loader = asset_loader
        self._on_view_state = on_view_state
        self._on_status = on_status

        self._sources = build_sources(collection)
        self._state = RenderState(current_style=style_url(self._config.initial_style))
        self._engine: Optional[MapEngine] = None
        self._engine_style: Optional[str] = None
        self._view_state: CameraPose = self._config.default_view

    # ───────────────────────────────────────────────────────────────────────
    # Introspection
    # ───────────────────────────────────────────────────────────────────────
    @property
    def status(self) -> ControllerStatus:
        return ControllerStatus(
            state=self._state.lifecycle,
            loaded=self._state.loaded,
            analysis_mode=self._state.analysis_mode,
            current_style=self._state.current_style,
            pending_style_switch=self._state.pending_style_switch,
            error=self._state.error,
        )

    @property
    def view_state(self) -> CameraPose:
        """Last camera pose reported by the engine."""
        return self._view_state

    def _alive(self) -> bool:
        return self._state.lifecycle != ControllerState.DISPOSED

    def _transition(self, new_state: ControllerState) -> None:
        old_state = self._state.lifecycle
        self._state.lifecycle = new_state
        log.info(f"Render controller {old_state.value} -> {new_state.value}")
        self._notify()

    def _notify(self) -> None:
        if self._on_status is not None:
            self._on_status(self.status)

    def _fail(self, error: RenderError) -> None:
        self._state.error = error
        self._transition(ControllerState.ERRORED)

    # ───────────────────────────────────────────────────────────────────────
    # Mount
    # ───────────────────────────────────────────────────────────────────────
    async def mount(self, container: Any) -> ControllerStatus:
        """
        Build the engine inside `container`.

        Runs at most once: calls while initializing, ready, errored or
        disposed are ignored, and so is a call without a container.
        Never raises for engine faults; they end in the ERRORED state.
        """
        if self._state.lifecycle != ControllerState.UNINITIALIZED:
            log.debug(f"mount() ignored in state {self._state.lifecycle.value}")
            return self.status
        if container is None:
            log.debug("mount() without a container, waiting for one")
            return self.status

        self._transition(ControllerState.INITIALIZING)

        worker_source, error = await self._fetch_worker_asset()
        if not self._alive():
            return self.status
        if error is not None:
            self._fail(error)
            return self.status

        engine, error = self._construct(container, worker_source)
        if error is not None:
            self._fail(error)
            return self.status

        self._engine = engine
        self._engine_style = self._state.current_style
        engine.on(EVENT_LOAD, self._on_load)
        engine.on(EVENT_ERROR, self._on_engine_error)
        engine.on(EVENT_MOVE, self._on_move)
        log.info(f"Map engine constructed with style {self._engine_style}")
        return self.status

    async def _fetch_worker_asset(self):
        """Returns (worker_source, error). A missing optional asset is only a warning."""
        url = self._config.worker_url
        if not url:
            return None, None

        from loaders.assets import get_asset_loader

        loader = self._asset_loader if self._asset_loader is not None else get_asset_loader()
        try:
            source = await asyncio.to_thread(loader.fetch_text, url)
            return source, None
        except Exception as e:
            if self._config.worker_required:
                log.error(f"Required engine worker could not be loaded: {e}")
                if not isinstance(e, AssetLoadError):
                    e = AssetLoadError(f"{type(e).__name__}: {e}")
                return None, classify_construction_error(e)
            log.warning(f"Failed to fetch engine worker, using engine default: {e}")
            return None, None

    def _construct(self, container: Any, worker_source: Optional[str]):
        """Returns (engine, error); exactly one of them is None."""
        options = EngineOptions(
            container=container,
            style=self._state.current_style,
            pose=self._config.default_view,
            max_bounds=self._config.max_bounds.to_corners(),
            min_zoom=self._config.min_zoom,
            access_token=self._config.access_token,
            worker_source=worker_source,
            buildings_tile_url=self._config.buildings_tile_url,
        )
        try:
            return self._engine_factory(options), None
        except Exception as e:
            error = classify_construction_error(e)
            if error.kind == ErrorKind.ENVIRONMENT:
                log.warning(f"Caught map construction security error: {e}")
            else:
                log.error(f"Unknown map construction error: {e}")
            return None, error

    # ───────────────────────────────────────────────────────────────────────
    # Engine events
    # ───────────────────────────────────────────────────────────────────────
    def _on_load(self, event: Optional[Dict] = None) -> None:
        if not self._alive() or self._engine is None:
            return
        if self._state.lifecycle != ControllerState.INITIALIZING:
            return

        self._state.loaded = True
        self._transition(ControllerState.READY)
        try:
            self._provision_and_apply()
        except Exception as e:
            log.error(f"Failed to prepare map layers: {e}")
            self._fail(RenderError(ErrorKind.RUNTIME, f"Failed to prepare map layers: {e}", detail=str(e)))
            return

        # Style picked while the engine was still loading
        if self._state.current_style != self._engine_style:
            self._begin_style_switch(self._state.current_style)

    def _on_engine_error(self, event: Optional[Dict] = None) -> None:
        if not self._alive():
            return
        if is_benign_engine_error(event):
            log.warning(f"Suppressing sandbox security error from map engine: {event}")
            return

        log.error(f"Map engine error: {event}")
        # Once loaded the engine recovers from most faults by itself
        if not self._state.loaded and self._state.lifecycle == ControllerState.INITIALIZING:
            self._fail(load_failure(event))

    def _on_move(self, event: Optional[Dict] = None) -> None:
        if not self._alive() or self._engine is None:
            return
        if self._state.lifecycle != ControllerState.READY:
            return
        self._view_state = self._engine.get_camera()
        if self._on_view_state is not None:
            self._on_view_state(self._view_state)

    # ───────────────────────────────────────────────────────────────────────
    # Provisioning
    # ───────────────────────────────────────────────────────────────────────
    def _provision_and_apply(self) -> None:
        provision(self._engine, self._sources)
        self._apply_mode()
        self._apply_fog()

    def _apply_mode(self) -> None:
        mode = mode_for(self._state.analysis_mode)
        for layer_id, props in mode.paint.items():
            if self._engine.get_layer(layer_id) is None:
                log.debug(f"Layer {layer_id!r} missing, paint for {mode.name!r} skipped")
                continue
            for name, value in props.items():
                self._engine.set_paint_property(layer_id, name, value)
        for layer_id, visibility in mode.visibility.items():
            if self._engine.get_layer(layer_id) is None:
                continue
            self._engine.set_layout_property(layer_id, "visibility", visibility)
        log.debug(f"Applied visual mode {mode.name!r}")

    def _apply_fog(self) -> None:
        try:
            self._engine.set_fog(fog_for_style(self._state.current_style))
        except EngineError as e:
            log.info(f"Fog update skipped: {e}")

    # ───────────────────────────────────────────────────────────────────────
    # Host events
    # ───────────────────────────────────────────────────────────────────────
    def set_style(self, style) -> None:
        """
        Switch the base map style.

        Before READY the style is only recorded and applied once the engine
        has loaded. In READY the engine drops every custom layer, so the
        switch completes asynchronously: sources, layers, mode and fog are
        restored when the new style reports loaded.
        """
        url = style_url(style)
        lifecycle = self._state.lifecycle
        if lifecycle in (ControllerState.DISPOSED, ControllerState.ERRORED):
            log.debug(f"set_style() ignored in state {lifecycle.value}")
            return

        if url != self._state.current_style:
            self._state.current_style = url
            self._notify()

        if lifecycle != ControllerState.READY:
            log.debug(f"Style {url} recorded, applied when the engine is ready")
            return
        if url == self._engine_style:
            return
        self._begin_style_switch(url)

    def _begin_style_switch(self, url: str) -> None:
        try:
            self._engine.set_style(url)
        except Exception as e:
            log.warning(f"Failed to set style {url}: {e}")
            self._state.current_style = self._engine_style
            self._notify()
            return

        self._engine_style = url
        self._state.style_generation += 1
        self._state.pending_style_switch = True
        self._arm_style_listener(self._state.style_generation)
        log.info(f"Switching style to {url} (generation {self._state.style_generation})")

    def _arm_style_listener(self, token: int) -> None:
        def handler(event: Optional[Dict] = None) -> None:
            self._on_style_data(token)

        self._engine.once(EVENT_STYLEDATA, handler)

    def _on_style_data(self, token: int) -> None:
        if not self._alive() or self._engine is None:
            return
        if token != self._state.style_generation:
            log.debug(f"Ignoring style data for superseded switch {token}")
            return
        if not self._engine.is_style_loaded():
            self._arm_style_listener(token)
            return

        try:
            self._provision_and_apply()
        except Exception as e:
            log.warning(f"Style update error: {e}")
        finally:
            self._state.pending_style_switch = False
            self._notify()

    def set_analysis_mode(self, enabled: bool) -> None:
        """
        Show or hide the value overlays.

        The flag is always remembered. Engine layers are only touched in
        READY with no style switch pending; otherwise the flag is applied by
        the next provisioning pass.
        """
        enabled = bool(enabled)
        if not self._alive():
            return

        changed = enabled != self._state.analysis_mode
        self._state.analysis_mode = enabled

        if self._state.lifecycle != ControllerState.READY or self._engine is None:
            log.debug(f"Analysis mode {enabled} recorded before engine is ready")
        elif self._state.pending_style_switch:
            log.debug(f"Analysis mode {enabled} deferred until the new style loads")
        else:
            try:
                self._apply_mode()
            except Exception as e:
                log.warning(f"Failed to apply visual mode: {e}")

        if changed:
            self._notify()

    def fly_to(self, target: Union[Landmark, CameraPose]) -> bool:
        """
        Animate the camera to a landmark or pose.

        A new flight replaces one in progress. Returns False when the
        engine is not ready or refused the request.
        """
        pose = target.pose if isinstance(target, Landmark) else target
        if self._state.lifecycle != ControllerState.READY or self._engine is None:
            log.debug("fly_to() ignored, engine not ready")
            return False
        try:
            self._engine.fly_to(pose, self._config.fly_duration_ms)
            return True
        except Exception as e:
            log.warning(f"FlyTo failed: {e}")
            return False

    async def settle(self) -> None:
        """Wait until the engine has delivered everything it queued."""
        if self._engine is not None and self._alive():
            await self._engine.wait_idle()

    def render(self) -> Any:
        """The engine's renderable (a pydeck.Deck for DeckEngine), or None."""
        if self._engine is None or self._state.lifecycle in (
            ControllerState.DISPOSED,
            ControllerState.ERRORED,
        ):
            return None
        try:
            return self._engine.render()
        except EngineError as e:
            log.warning(f"Render skipped: {e}")
            return None

    def dispose(self) -> None:
        """Release the engine exactly once. Faults during release are logged, never raised."""
        if not self._alive():
            return
        self._state.loaded = False
        self._state.pending_style_switch = False
        self._transition(ControllerState.DISPOSED)

        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            engine.remove()
        except Exception as e:
            log.debug(f"Ignoring map cleanup error: {e}")
