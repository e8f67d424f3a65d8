"""
Data structures (entities) for cribdash.

Uses dataclasses for clean, typed data structures.
Named 'entities' instead of 'dataclasses' to avoid stdlib import confusion.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple

WIDGET_KINDS = ("heatmap", "spark")


@dataclass
class Sample:
    """One (group, variable, value) row of a heatmap dataset."""
    group: str
    variable: str
    value: Optional[float] = None  # None when the raw value did not parse


@dataclass
class SeriesSummary:
    """Rounded display summaries of a time series."""
    p99: int
    last: int
    max: int


@dataclass
class WidgetSpec:
    """Configuration entry binding a data endpoint to a render target."""
    name: str
    kind: str  # 'heatmap' or 'spark'
    endpoint_template: str
    target: str
    metric: str = ""
    entity: str = ""

    @property
    def endpoint(self) -> str:
        """Endpoint with metric and entity substituted."""
        return self.endpoint_template.format(metric=self.metric, entity=self.entity)


# ---------------------------------------------------------------------------
# Draw primitives understood by the rendering surface
# ---------------------------------------------------------------------------

@dataclass
class Rect:
    """A positioned, sized, optionally filled rectangle."""
    x: float
    y: float
    width: float
    height: float
    fill: Optional[str] = None


@dataclass
class Tick:
    """Axis tick: label and its position along the axis."""
    label: str
    position: float


@dataclass
class Axis:
    """An axis with tick labels, drawn at an offset inside the frame."""
    orient: str  # 'bottom' or 'left'
    ticks: List[Tick] = field(default_factory=list)
    translate: Tuple[float, float] = (0.0, 0.0)
    rotate: float = 0.0


@dataclass
class Frame:
    """
    Full content of one render target.

    A new Frame always replaces the previous one for the same target.
    """
    width: float
    height: float
    translate: Tuple[float, float] = (0.0, 0.0)
    rects: List[Rect] = field(default_factory=list)
    axes: List[Axis] = field(default_factory=list)
