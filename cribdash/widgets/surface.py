"""
Rendering surface and viewport state shared by all widgets.

The surface does not draw anything itself: it keeps the latest frame,
label text and status of every render target and publishes each change
as a declarative draw command (JSON-ready dict) to connected clients.
"""

import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, Optional

from cribdash.models.entities import Frame

logger = logging.getLogger("cribdash.surface")

Publisher = Callable[[Dict[str, Any]], Awaitable[None]]


class RenderSurface:
    """Latest visual state per render target, with change publishing."""

    def __init__(self, publish: Optional[Publisher] = None):
        self._publish = publish
        self.frames: Dict[str, Frame] = {}
        self.labels: Dict[str, str] = {}
        self.statuses: Dict[str, str] = {}

    async def replace(self, target: str, frame: Frame):
        """Replace the whole content of a target. Never additive."""
        self.frames[target] = frame
        await self._emit({"type": "frame", "target": target, "frame": asdict(frame)})

    async def set_text(self, target: str, text: str):
        """Set the text content of a label target."""
        self.labels[target] = text
        await self._emit({"type": "label", "target": target, "text": text})

    async def set_status(self, target: str, status: str, detail: Optional[str] = None):
        """Mark a target ok or stale without touching its frame."""
        if self.statuses.get(target) == status and detail is None:
            return
        self.statuses[target] = status
        message = {"type": "status", "target": target, "status": status}
        if detail:
            message["detail"] = detail
        await self._emit(message)

    def snapshot(self) -> Dict[str, Any]:
        """Full current state, sent to a client when it connects."""
        return {
            "type": "snapshot",
            "frames": {t: asdict(f) for t, f in self.frames.items()},
            "labels": dict(self.labels),
            "statuses": dict(self.statuses),
        }

    async def _emit(self, message: Dict[str, Any]):
        if self._publish is None:
            return
        await self._publish(message)


class Viewport:
    """
    Layout widths of render targets as last reported by clients.

    Targets nobody reported yet use the configured default width.
    """

    def __init__(self, default_width: float = 960):
        self.default_width = default_width
        self._widths: Dict[str, float] = {}

    def width_of(self, target: str) -> float:
        return self._widths.get(target, self.default_width)

    def update(self, widths: Dict[str, Any]) -> bool:
        """Record reported widths. Returns True when any width changed."""
        changed = False
        for target, width in widths.items():
            try:
                width = float(width)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric width %r for %s", width, target)
                continue
            if self._widths.get(target) != width:
                self._widths[target] = width
                changed = True
        return changed
