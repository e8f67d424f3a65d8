"""Wires configured widgets to the data source, surface and scheduler."""

import logging
from typing import List

from cribdash.models.entities import WidgetSpec
from cribdash.server.scheduler import RefreshScheduler
from cribdash.widgets.refresh import WIDGET_TYPES, Widget
from cribdash.widgets.source import DataSource
from cribdash.widgets.surface import RenderSurface, Viewport

logger = logging.getLogger("cribdash.orchestrator")


def build_widgets(
    specs: List[WidgetSpec],
    source: DataSource,
    surface: RenderSurface,
    viewport: Viewport,
) -> List[Widget]:
    """Create one widget per spec. Raises ValueError on an unknown kind."""
    widgets = []
    for spec in specs:
        widget_type = WIDGET_TYPES.get(spec.kind)
        if widget_type is None:
            raise ValueError(f"unknown widget kind '{spec.kind}' for {spec.name}")
        widgets.append(widget_type(spec, source, surface, viewport))
    return widgets


def start_dashboard(scheduler: RefreshScheduler, widgets: List[Widget], interval_ms: float):
    """Register every widget's refresh with the scheduler."""
    for widget in widgets:
        scheduler.register(widget.refresh, interval_ms)
        logger.info("Registered %s widget %s -> #%s every %sms",
                    widget.kind, widget.name, widget.target, interval_ms)
