"""
Widget objects: one per render target, each with a refresh() task.

A refresh performs exactly one fetch, then transforms and renders. Every
refresh takes a new generation number; when a fetch resolves after a
newer refresh of the same widget has started, its result is dropped so
an out-of-order response cannot overwrite fresher output.
"""

import logging
import math
from typing import Any, Callable, List, Optional

from cribdash.models.entities import Sample, WidgetSpec
from cribdash.widgets.errors import FetchFailure, MissingDataError
from cribdash.widgets.heatmap import build_grid, parse_samples, render_heatmap
from cribdash.widgets.sparkline import build_sparkline, render_empty_sparkline, render_sparkline
from cribdash.widgets.source import DataSource
from cribdash.widgets.surface import RenderSurface, Viewport

logger = logging.getLogger("cribdash.widgets")

STATUS_PENDING = "pending"
STATUS_OK = "ok"
STATUS_STALE = "stale"


class Widget:
    """Base widget: fetch, generation guard and stale handling."""

    kind = ""

    def __init__(self, spec: WidgetSpec, source: DataSource, surface: RenderSurface, viewport: Viewport):
        self.spec = spec
        self.source = source
        self.surface = surface
        self.viewport = viewport
        self.generation = 0
        self.status = STATUS_PENDING
        self.last_error: Optional[str] = None
        self.last_data: Any = None

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def target(self) -> str:
        return self.spec.target

    async def refresh(self):
        """Fetch once and redraw, or mark stale on fetch failure."""
        self.generation += 1
        generation = self.generation

        try:
            data = await self.fetch()
        except FetchFailure as e:
            if generation != self.generation:
                return
            await self._mark_stale(e)
            return

        if generation != self.generation:
            logger.debug("Dropping superseded response for %s (generation %d < %d)",
                         self.name, generation, self.generation)
            return

        self.last_data = data
        await self.render(data, lambda: generation == self.generation)
        if generation != self.generation:
            logger.debug("Render of %s superseded mid-write (generation %d < %d)",
                         self.name, generation, self.generation)
            return
        self.status = STATUS_OK
        self.last_error = None
        await self.surface.set_status(self.target, STATUS_OK)

    async def _mark_stale(self, error: FetchFailure):
        logger.warning("Widget %s is stale: %s", self.name, error)
        self.status = STATUS_STALE
        self.last_error = str(error)
        await self.surface.set_status(self.target, STATUS_STALE, detail=error.reason)

    async def fetch(self) -> Any:
        raise NotImplementedError

    async def render(self, data: Any, is_current: Callable[[], bool]):
        """Draw data. Writes stop once is_current() turns False."""
        raise NotImplementedError


class HeatmapWidget(Widget):
    """Categorical grid fed by a CSV endpoint."""

    kind = "heatmap"

    @property
    def count_target(self) -> str:
        return self.target + "_count"

    async def fetch(self) -> List[Sample]:
        rows = await self.source.fetch_rows(self.spec.endpoint)
        return parse_samples(rows)

    async def render(self, samples: List[Sample], is_current: Callable[[], bool]):
        # width may have changed since the last refresh
        width = self.viewport.width_of(self.target)
        grid = build_grid(samples, width)
        await render_heatmap(self.surface, self.target, self.count_target, grid, is_current)


class SparklineWidget(Widget):
    """Bar sparkline plus p99/last/max labels fed by a JSON endpoint."""

    kind = "spark"

    async def fetch(self) -> List[float]:
        url = self.spec.endpoint
        values = await self.source.fetch_series(url)
        try:
            series = [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise FetchFailure(url, f"non-numeric series value: {e}") from e
        for value in series:
            if not math.isfinite(value):
                raise FetchFailure(url, f"non-finite series value: {value}")
        return series

    async def render(self, values: List[float], is_current: Callable[[], bool]):
        try:
            sparkline = build_sparkline(values)
        except MissingDataError:
            logger.info("Widget %s has no samples, rendering empty state", self.name)
            await render_empty_sparkline(self.surface, self.target, is_current)
            return
        await render_sparkline(self.surface, self.target, sparkline, is_current)


WIDGET_TYPES = {
    HeatmapWidget.kind: HeatmapWidget,
    SparklineWidget.kind: SparklineWidget,
}
