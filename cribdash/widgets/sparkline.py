"""Sparkline transform: a numeric series to bar geometry plus p99/last/max."""

from dataclasses import dataclass, field
from statistics import quantiles
from typing import Callable, List, Optional, Sequence

from cribdash.models.entities import Frame, Rect, SeriesSummary
from cribdash.widgets.errors import MissingDataError
from cribdash.widgets.scales import LinearScale, round_half_up

WIDTH = 180
HEIGHT = 20
BAR_FILL = "#ccc"
EMPTY_LABEL = "-"


@dataclass
class Sparkline:
    summary: SeriesSummary
    bar_width: float
    bars: List[Rect] = field(default_factory=list)


def quantile(values: Sequence[float], p: float) -> float:
    """Inclusive (linear interpolation) quantile at a whole percentile p."""
    if not values:
        raise MissingDataError("quantile of an empty series")
    if len(values) == 1:
        return float(values[0])
    cut = round(p * 100)
    if cut <= 0:
        return float(min(values))
    if cut >= 100:
        return float(max(values))
    return quantiles(values, n=100, method="inclusive")[cut - 1]


def summarize(values: Sequence[float]) -> SeriesSummary:
    if not values:
        raise MissingDataError("series has no values")
    return SeriesSummary(
        p99=round_half_up(quantile(values, 0.99)),
        last=round_half_up(values[-1]),
        max=round_half_up(max(values)),
    )


def build_sparkline(values: Sequence[float]) -> Sparkline:
    """
    Bars for every value in a fixed 180x20 box, anchored to the bottom.

    Each bar gives up one unit of width as gutter, so
    bar_width * count + count == WIDTH.
    """
    if not values:
        raise MissingDataError("series has no values")

    count = len(values)
    bar_width = (WIDTH - count) / count
    peak = max(values)

    x = LinearScale([0, count], [0, WIDTH])
    # all-zero series would have a degenerate [0, 0] domain
    y = LinearScale([0, peak if peak > 0 else 1], [HEIGHT, 0])

    bars = []
    for i, value in enumerate(values):
        top = y(value)
        bars.append(Rect(
            x=x(i),
            y=top,
            width=bar_width,
            height=max(0.0, HEIGHT - top),
            fill=BAR_FILL,
        ))

    return Sparkline(summary=summarize(values), bar_width=bar_width, bars=bars)


def _labels(target: str):
    return target + "99", target + "Last", target + "Max"


async def render_sparkline(surface, target: str, sparkline: Sparkline,
                           is_current: Optional[Callable[[], bool]] = None):
    summary = sparkline.summary
    texts = zip(_labels(target), (summary.p99, summary.last, summary.max))
    frame = Frame(width=WIDTH, height=HEIGHT, rects=list(sparkline.bars))
    await _write(surface, target, texts, frame, is_current)


async def render_empty_sparkline(surface, target: str,
                                 is_current: Optional[Callable[[], bool]] = None):
    """Flat state for a series with no samples."""
    texts = [(label, EMPTY_LABEL) for label in _labels(target)]
    await _write(surface, target, texts, Frame(width=WIDTH, height=HEIGHT), is_current)


async def _write(surface, target, texts, frame, is_current):
    # a newer refresh may take over while any of these writes is in flight
    for label, text in texts:
        if is_current is not None and not is_current():
            return
        await surface.set_text(label, str(text))
    if is_current is not None and not is_current():
        return
    await surface.replace(target, frame)
