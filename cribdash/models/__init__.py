"""Models package - widget, data and draw-primitive entities."""

from .entities import (
    WIDGET_KINDS,
    Sample,
    SeriesSummary,
    WidgetSpec,
    Rect,
    Tick,
    Axis,
    Frame,
)

__all__ = [
    "WIDGET_KINDS",
    "Sample",
    "SeriesSummary",
    "WidgetSpec",
    "Rect",
    "Tick",
    "Axis",
    "Frame",
]
