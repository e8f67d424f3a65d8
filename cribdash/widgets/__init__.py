"""
Widgets package - data-to-visual transforms and per-widget refresh objects.

build_grid() and build_sparkline() are pure transforms; HeatmapWidget and
SparklineWidget wrap them with a fetch and a render target.
"""

from .errors import FetchFailure, MissingDataError, MalformedSampleError
from .heatmap import build_grid, parse_samples, render_heatmap
from .sparkline import build_sparkline, summarize, render_sparkline
from .surface import RenderSurface, Viewport
from .source import DataSource
from .refresh import Widget, HeatmapWidget, SparklineWidget, WIDGET_TYPES

__all__ = [
    "FetchFailure",
    "MissingDataError",
    "MalformedSampleError",
    "build_grid",
    "parse_samples",
    "render_heatmap",
    "build_sparkline",
    "summarize",
    "render_sparkline",
    "RenderSurface",
    "Viewport",
    "DataSource",
    "Widget",
    "HeatmapWidget",
    "SparklineWidget",
    "WIDGET_TYPES",
]
