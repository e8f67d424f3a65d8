"""
Heatmap transform: (group, variable, value) samples to a colored grid.

Groups run along the x axis and variables along the y axis, both in the
order they first appear in the data. Cell color encodes the value on a
white -> #eee -> #990000 scale whose top anchor is the dataset total.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from cribdash.models.entities import Axis, Frame, Rect, Sample, Tick
from cribdash.widgets.errors import MalformedSampleError
from cribdash.widgets.scales import BandScale, ColorScale

logger = logging.getLogger("cribdash.widgets.heatmap")

MARGIN_TOP = 5
MARGIN_RIGHT = 30
MARGIN_BOTTOM = 55
MARGIN_LEFT = 35
OUTER_HEIGHT = 150
BAND_PADDING = 0.01

LOW_COLOR = "white"
MID_COLOR = "#eee"
HIGH_COLOR = "#990000"

X_TICK_EVERY = 2
Y_TICK_EVERY = 5
X_LABEL_ROTATION = -65


@dataclass
class HeatmapGrid:
    """Everything needed to draw one heatmap."""
    groups: List[str]
    variables: List[str]
    total: int
    width: float
    height: float
    x: BandScale
    y: BandScale
    color: ColorScale
    cells: List[Rect] = field(default_factory=list)


def parse_value(raw: Any) -> float:
    """Parse a sample value. Raises MalformedSampleError."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
    else:
        try:
            value = float(str(raw).strip())
        except (TypeError, ValueError):
            raise MalformedSampleError(raw)
    # nan, inf and overflowing literals like 1e999
    if not math.isfinite(value):
        raise MalformedSampleError(raw)
    return value


def parse_samples(rows: Iterable[Dict[str, Any]]) -> List[Sample]:
    """
    Convert CSV dict rows into Samples.

    Malformed values are logged and kept as value=None so the cell is
    still drawn, uncolored, and counts as zero in the total.
    """
    samples = []
    for row in rows:
        raw = row.get("value")
        try:
            value: Optional[float] = parse_value(raw)
        except MalformedSampleError as e:
            logger.warning("Malformed sample %s/%s: %s", row.get("group"), row.get("variable"), e)
            value = None
        samples.append(Sample(group=str(row.get("group", "")), variable=str(row.get("variable", "")), value=value))
    return samples


def unique_in_order(values: Iterable[str]) -> List[str]:
    seen = {}
    for v in values:
        seen.setdefault(v, True)
    return list(seen)


def positional_total(samples: List[Sample], variable_count: int) -> int:
    """
    Sum of the integer part of the first `variable_count` sample values.

    Only the leading rows count, not a column or grand total; dashboards
    built on this number depend on it staying that way.
    """
    total = 0
    for sample in samples[:variable_count]:
        if sample.value is not None:
            total += int(sample.value)
    return total


def color_scale_for(total: int) -> ColorScale:
    """Three anchors [0, 1, total], or two when total is exactly 1."""
    if total == 1:
        return ColorScale([0, 1], [LOW_COLOR, HIGH_COLOR])
    return ColorScale([0, 1, total], [LOW_COLOR, MID_COLOR, HIGH_COLOR])


def build_grid(samples: List[Sample], available_width: float) -> HeatmapGrid:
    """Lay out one cell per sample on the band scales and color it."""
    groups = unique_in_order(s.group for s in samples)
    variables = unique_in_order(s.variable for s in samples)
    total = positional_total(samples, len(variables))

    width = max(0.0, available_width - MARGIN_LEFT - MARGIN_RIGHT)
    height = OUTER_HEIGHT - MARGIN_TOP - MARGIN_BOTTOM

    x = BandScale(groups, (0, width), padding=BAND_PADDING)
    y = BandScale(variables, (height, 0), padding=BAND_PADDING)
    color = color_scale_for(total)

    cells = []
    for sample in samples:
        fill = color(sample.value) if sample.value is not None else None
        cells.append(Rect(
            x=x(sample.group),
            y=y(sample.variable),
            width=x.bandwidth,
            height=y.bandwidth,
            fill=fill,
        ))

    return HeatmapGrid(
        groups=groups,
        variables=variables,
        total=total,
        width=width,
        height=height,
        x=x,
        y=y,
        color=color,
        cells=cells,
    )


def _axes(grid: HeatmapGrid) -> List[Axis]:
    x_ticks = [
        Tick(label=g, position=grid.x.center(g))
        for i, g in enumerate(grid.groups) if i % X_TICK_EVERY == 0
    ]
    y_ticks = [
        Tick(label=v, position=grid.y.center(v))
        for i, v in enumerate(grid.variables) if i % Y_TICK_EVERY == 0
    ]
    return [
        Axis(orient="bottom", ticks=x_ticks, translate=(0.0, float(grid.height)), rotate=X_LABEL_ROTATION),
        Axis(orient="left", ticks=y_ticks),
    ]


def to_frame(grid: HeatmapGrid) -> Frame:
    return Frame(
        width=grid.width + MARGIN_LEFT + MARGIN_RIGHT,
        height=OUTER_HEIGHT,
        translate=(float(MARGIN_LEFT), float(MARGIN_TOP)),
        rects=list(grid.cells),
        axes=_axes(grid),
    )


async def render_heatmap(surface, target: str, count_target: str, grid: HeatmapGrid,
                         is_current: Optional[Callable[[], bool]] = None):
    """
    Write the total and replace the target's frame with the grid.

    When is_current is given it is checked before each write, and the
    remaining writes are skipped once it returns False.
    """
    frame = to_frame(grid)
    if is_current is not None and not is_current():
        return
    await surface.set_text(count_target, str(grid.total))
    if is_current is not None and not is_current():
        return
    await surface.replace(target, frame)
