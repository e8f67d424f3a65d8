"""
Band, linear and color scales used by the widget transforms.

The semantics follow the d3 scales the dashboard was first drawn with:
band scales split a range into equal padded bands, linear scales are
piecewise over as many anchors as the domain has, and are not clamped.
"""

import math
from bisect import bisect_right
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple

Range = Tuple[float, float]

_NAMED_COLORS = {
    "white": (255, 255, 255),
    "black": (0, 0, 0),
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity."""
    return int(math.floor(value + 0.5))


def parse_color(color: str) -> Tuple[int, int, int]:
    """Parse a named, #rgb or #rrggbb color into an RGB triple."""
    if color in _NAMED_COLORS:
        return _NAMED_COLORS[color]
    if color.startswith("#"):
        digits = color[1:]
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        if len(digits) == 6:
            return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    raise ValueError(f"unsupported color {color!r}")


def format_rgb(rgb: Sequence[float]) -> str:
    channels = [max(0, min(255, round_half_up(c))) for c in rgb]
    return "rgb({}, {}, {})".format(*channels)


def interpolate_number(a: float, b: float, t: float) -> float:
    return a * (1 - t) + b * t


def interpolate_rgb(a: str, b: str, t: float) -> str:
    """Linear RGB interpolation between two colors."""
    ca, cb = parse_color(a), parse_color(b)
    return format_rgb([interpolate_number(x, y, t) for x, y in zip(ca, cb)])


def _normalize(a: float, b: float, x: float) -> float:
    span = b - a
    if span:
        return (x - a) / span
    return 0.5


class BandScale:
    """
    Maps an ordered set of category labels to equal-size bands of a range.

    Padding applies both between bands and at the outer edges, as a
    fraction of the step. Unknown labels map to None.
    """

    def __init__(self, domain: Sequence[Hashable], range_: Range, padding: float = 0.0, align: float = 0.5):
        self.domain = list(domain)
        self.range = range_
        self.padding = padding

        r0, r1 = range_
        reverse = r1 < r0
        start, stop = (r1, r0) if reverse else (r0, r1)
        n = len(self.domain)

        self.step = (stop - start) / max(1, n - padding + padding * 2)
        start += (stop - start - self.step * (n - padding)) * align
        self.bandwidth = self.step * (1 - padding)

        positions = [start + self.step * i for i in range(n)]
        if reverse:
            positions.reverse()
        self._positions: Dict[Hashable, float] = dict(zip(self.domain, positions))

    def __call__(self, value: Hashable) -> Optional[float]:
        return self._positions.get(value)

    def center(self, value: Hashable) -> Optional[float]:
        """Position of the middle of a band, where its axis tick goes."""
        position = self(value)
        if position is None:
            return None
        return position + self.bandwidth / 2


class LinearScale:
    """
    Piecewise-linear mapping from a numeric domain to a range.

    With more than two anchors the segment is chosen by bisecting the
    inner domain anchors. Degenerate segments map to their midpoint.
    """

    def __init__(self, domain: Sequence[float], range_: Sequence, interpolate: Callable = interpolate_number):
        if len(domain) < 2 or len(range_) < 2:
            raise ValueError("a linear scale needs at least two anchors")
        self.domain = list(domain)
        self.range = list(range_)
        self._interpolate = interpolate

        self._segments = min(len(self.domain), len(self.range)) - 1
        if self._segments > 1 and self.domain[self._segments] < self.domain[0]:
            self.domain = self.domain[self._segments::-1]
            self.range = self.range[self._segments::-1]

    def __call__(self, value: float):
        d = self.domain
        if self._segments == 1:
            i = 0
        else:
            i = bisect_right(d, value, 1, self._segments) - 1
        t = _normalize(d[i], d[i + 1], value)
        return self._interpolate(self.range[i], self.range[i + 1], t)


class ColorScale(LinearScale):
    """Linear scale whose range is a list of colors."""

    def __init__(self, domain: Sequence[float], colors: List[str]):
        super().__init__(domain, colors, interpolate=interpolate_rgb)

    @property
    def anchors(self) -> List[Tuple[float, str]]:
        return list(zip(self.domain, self.range))
