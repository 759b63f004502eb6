"""
Error taxonomy for the render controller.

Every failure crossing an async boundary of the controller is turned into a
single RenderError value. The kind decides the remedy offered to the user:
environment restrictions can only be fixed by reopening the page outside
the restricted context, everything else by retrying.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from render.engine import AssetLoadError, EnvironmentRestrictedError

# Message fragments produced by sandboxed frames blocking the engine
SECURITY_PATTERNS = ("Blocked a frame", "Location", "SecurityError")


class ErrorKind(Enum):
    ENVIRONMENT = "environment"   # Host context blocks required capabilities
    ASSET = "asset"               # Network / asset fetch failure, transient
    RUNTIME = "runtime"           # Anything else the engine threw


class Remedy(Enum):
    REOPEN = "reopen"   # Open the page directly, outside the restricted frame
    RETRY = "retry"     # Reload and try again


@dataclass(frozen=True)
class RenderError:
    """User-facing description of a controller failure."""
    kind: ErrorKind
    message: str
    detail: str = ""

    @property
    def remedy(self) -> Remedy:
        return Remedy.REOPEN if self.kind == ErrorKind.ENVIRONMENT else Remedy.RETRY

    @property
    def hint(self) -> str:
        if self.remedy == Remedy.REOPEN:
            return "Common fix: open the page in a new tab or run it locally without frame restrictions."
        return "Check your connection, then retry loading."

    @property
    def action_label(self) -> str:
        """Caption for the button that carries out the remedy."""
        if self.remedy == Remedy.REOPEN:
            return "🔗 Open Map in New Tab"
        return "🔄 Retry"


def _message_of(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, dict):
        inner = error.get("error")
        if isinstance(inner, BaseException):
            return str(inner)
        if isinstance(inner, dict):
            return str(inner.get("message", ""))
        return str(error.get("message", inner or ""))
    return str(error or "")


def is_security_message(message: str) -> bool:
    return any(pattern in message for pattern in SECURITY_PATTERNS)


def is_benign_engine_error(event: Any) -> bool:
    """Engine `error` events that are just sandbox security noise."""
    return is_security_message(_message_of(event))


def classify_construction_error(error: BaseException) -> RenderError:
    """Map an exception raised while building the engine to a RenderError."""
    msg = _message_of(error)
    if isinstance(error, EnvironmentRestrictedError) or is_security_message(msg):
        return RenderError(
            ErrorKind.ENVIRONMENT,
            "The map engine cannot load in this secure preview frame. "
            "Please try opening the page directly.",
            detail=msg,
        )
    if isinstance(error, AssetLoadError):
        return RenderError(ErrorKind.ASSET, f"Failed to load map engine assets: {msg}", detail=msg)
    return RenderError(ErrorKind.RUNTIME, f"Failed to initialize map engine: {msg}", detail=msg)


def load_failure(event: Optional[Any] = None) -> RenderError:
    """Engine reported an error before becoming ready."""
    return RenderError(
        ErrorKind.ASSET,
        "Failed to load map data. Check connection.",
        detail=_message_of(event),
    )
