"""Tests for widget refresh: fetch, stale handling and out-of-order responses.

Widgets run against a fake data source so each fetch can be held open
or made to fail on demand.
"""

import asyncio

import httpx
import pytest

from cribdash.models.entities import WidgetSpec
from cribdash.widgets.errors import FetchFailure
from cribdash.widgets.refresh import HeatmapWidget, SparklineWidget
from cribdash.widgets.source import DataSource
from cribdash.widgets.surface import RenderSurface, Viewport

HEATMAP_SPEC = WidgetSpec(
    name="cpu_sys",
    kind="heatmap",
    endpoint_template="/heatmap_data?metric={metric}&entity={entity}",
    target="g_cpu_sys",
    metric="cpu.sys",
    entity="host",
)
SPARK_SPEC = WidgetSpec(
    name="filler_spark",
    kind="spark",
    endpoint_template="/ts_sum?entity={entity}&metric={metric}",
    target="sparkFiller",
    metric="count",
    entity="filler",
)

ROWS_A = [
    {"group": "00:00:01", "variable": "0%", "value": "2"},
    {"group": "00:00:02", "variable": "0%", "value": "3"},
]
ROWS_B = [
    {"group": "00:00:01", "variable": "0%", "value": "7"},
    {"group": "00:00:01", "variable": "5%", "value": "1"},
]


class FakeSource:
    """Hands out queued responses; an asyncio.Event entry holds the fetch open."""

    def __init__(self):
        self.responses = []
        self.urls = []

    async def _next(self, url):
        self.urls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, tuple):
            gate, response = response
            await gate.wait()
        if isinstance(response, Exception):
            raise response
        return response

    async def fetch_rows(self, url):
        return await self._next(url)

    async def fetch_series(self, url):
        return await self._next(url)


@pytest.fixture
def surface():
    messages = []

    async def publish(message):
        messages.append(message)

    surface = RenderSurface(publish=publish)
    surface.messages = messages
    return surface


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def viewport():
    return Viewport(default_width=465)


@pytest.mark.asyncio
class TestHeatmapWidget:

    async def test_refresh_renders_count_and_frame(self, source, surface, viewport):
        source.responses = [ROWS_A]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()

        assert source.urls == ["/heatmap_data?metric=cpu.sys&entity=host"]
        assert surface.labels["g_cpu_sys_count"] == "2"
        assert len(surface.frames["g_cpu_sys"].rects) == 2
        assert widget.status == "ok"
        assert surface.statuses["g_cpu_sys"] == "ok"

    async def test_fetch_failure_marks_stale_and_keeps_frame(self, source, surface, viewport):
        source.responses = [ROWS_A, FetchFailure("/heatmap_data", "HTTP 500: boom")]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()
        frame = surface.frames["g_cpu_sys"]

        await widget.refresh()

        assert surface.frames["g_cpu_sys"] is frame
        assert surface.labels["g_cpu_sys_count"] == "2"
        assert widget.status == "stale"
        assert "HTTP 500" in widget.last_error
        assert surface.messages[-1] == {
            "type": "status",
            "target": "g_cpu_sys",
            "status": "stale",
            "detail": "HTTP 500: boom",
        }

    async def test_recovers_after_stale(self, source, surface, viewport):
        source.responses = [FetchFailure("/heatmap_data", "timeout"), ROWS_B]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()
        assert "g_cpu_sys" not in surface.frames

        await widget.refresh()
        assert widget.status == "ok"
        assert widget.last_error is None
        assert surface.labels["g_cpu_sys_count"] == "8"

    async def test_out_of_order_response_is_dropped(self, source, surface, viewport):
        gate = asyncio.Event()
        source.responses = [(gate, ROWS_A), ROWS_B]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)

        slow = asyncio.create_task(widget.refresh())
        await asyncio.sleep(0)
        await widget.refresh()
        gate.set()
        await slow

        # ROWS_B total is 7 + 1; ROWS_A would have written 2
        assert surface.labels["g_cpu_sys_count"] == "8"
        assert widget.last_data[0].value == 7

    async def test_superseded_failure_does_not_mark_stale(self, source, surface, viewport):
        gate = asyncio.Event()
        source.responses = [(gate, FetchFailure("/heatmap_data", "late")), ROWS_B]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)

        slow = asyncio.create_task(widget.refresh())
        await asyncio.sleep(0)
        await widget.refresh()
        gate.set()
        await slow

        assert widget.status == "ok"

    async def test_uses_current_viewport_width(self, source, surface, viewport):
        source.responses = [ROWS_A, ROWS_A]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()
        assert surface.frames["g_cpu_sys"].width == 465

        viewport.update({"g_cpu_sys": 765})
        await widget.refresh()
        assert surface.frames["g_cpu_sys"].width == 765

    async def test_malformed_values_still_render(self, source, surface, viewport):
        source.responses = [[
            {"group": "00:00:01", "variable": "0%", "value": "oops"},
            {"group": "00:00:02", "variable": "0%", "value": "4"},
        ]]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()

        rects = surface.frames["g_cpu_sys"].rects
        assert len(rects) == 2
        assert rects[0].fill is None
        assert widget.status == "ok"

    async def test_infinite_value_renders_as_malformed(self, source, surface, viewport):
        source.responses = [[
            {"group": "00:00:01", "variable": "0%", "value": "1e999"},
            {"group": "00:00:02", "variable": "0%", "value": "4"},
        ]]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)
        await widget.refresh()

        assert widget.status == "ok"
        assert surface.labels["g_cpu_sys_count"] == "0"
        assert surface.frames["g_cpu_sys"].rects[0].fill is None

    async def test_superseded_render_stops_mid_write(self, source, viewport):
        gate = asyncio.Event()
        published = []

        async def publish(message):
            published.append(message)
            # hold the first write of the older refresh in flight
            if len(published) == 1:
                await gate.wait()

        surface = RenderSurface(publish=publish)
        source.responses = [ROWS_A, ROWS_B]
        widget = HeatmapWidget(HEATMAP_SPEC, source, surface, viewport)

        slow = asyncio.create_task(widget.refresh())
        await asyncio.sleep(0)
        await widget.refresh()
        newer_frame = surface.frames["g_cpu_sys"]
        gate.set()
        await slow

        assert surface.labels["g_cpu_sys_count"] == "8"
        assert surface.frames["g_cpu_sys"] is newer_frame
        assert [m["type"] for m in published].count("frame") == 1
        assert widget.last_data[0].value == 7
        assert widget.status == "ok"


@pytest.mark.asyncio
class TestSparklineWidget:

    async def test_refresh_renders_labels(self, source, surface, viewport):
        source.responses = [[1, 2, 3, 4, 5]]
        widget = SparklineWidget(SPARK_SPEC, source, surface, viewport)
        await widget.refresh()

        assert source.urls == ["/ts_sum?entity=filler&metric=count"]
        assert surface.labels["sparkFiller99"] == "5"
        assert surface.labels["sparkFillerLast"] == "5"
        assert surface.labels["sparkFillerMax"] == "5"
        assert len(surface.frames["sparkFiller"].rects) == 5

    async def test_empty_series_renders_empty_state(self, source, surface, viewport):
        source.responses = [[]]
        widget = SparklineWidget(SPARK_SPEC, source, surface, viewport)
        await widget.refresh()

        assert surface.labels["sparkFillerMax"] == "-"
        assert surface.frames["sparkFiller"].rects == []
        assert widget.status == "ok"

    async def test_non_numeric_values_mark_stale(self, source, surface, viewport):
        source.responses = [[1, "lots"]]
        widget = SparklineWidget(SPARK_SPEC, source, surface, viewport)
        await widget.refresh()

        assert widget.status == "stale"
        assert "sparkFiller" not in surface.frames

    async def test_non_finite_values_mark_stale(self, source, surface, viewport):
        source.responses = [[1, float("nan")], [float("inf")]]
        widget = SparklineWidget(SPARK_SPEC, source, surface, viewport)

        await widget.refresh()
        assert widget.status == "stale"
        assert "non-finite" in widget.last_error

        await widget.refresh()
        assert widget.status == "stale"
        assert "sparkFiller" not in surface.frames
        assert "sparkFillerMax" not in surface.labels

    async def test_superseded_render_stops_mid_write(self, source, viewport):
        gate = asyncio.Event()
        published = []

        async def publish(message):
            published.append(message)
            if len(published) == 1:
                await gate.wait()

        surface = RenderSurface(publish=publish)
        source.responses = [[1, 2, 3], [10, 20]]
        widget = SparklineWidget(SPARK_SPEC, source, surface, viewport)

        slow = asyncio.create_task(widget.refresh())
        await asyncio.sleep(0)
        await widget.refresh()
        gate.set()
        await slow

        assert surface.labels["sparkFiller99"] == "20"
        assert surface.labels["sparkFillerLast"] == "20"
        assert surface.labels["sparkFillerMax"] == "20"
        assert len(surface.frames["sparkFiller"].rects) == 2
        assert [m["type"] for m in published].count("frame") == 1


@pytest.mark.asyncio
class TestDataSource:
    """DataSource against httpx.MockTransport."""

    @staticmethod
    def make_source(handler):
        return DataSource(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test"))

    async def test_fetch_rows_parses_csv(self):
        def handler(request):
            return httpx.Response(200, text="group,variable,value\nA,x,2\nB,x,3\n")

        source = self.make_source(handler)
        rows = await source.fetch_rows("/heatmap_data")
        await source.aclose()

        assert rows == [
            {"group": "A", "variable": "x", "value": "2"},
            {"group": "B", "variable": "x", "value": "3"},
        ]

    async def test_fetch_series_reads_values(self):
        source = self.make_source(lambda request: httpx.Response(200, json={"values": [1.5, 2]}))
        assert await source.fetch_series("/ts_sum") == [1.5, 2]
        await source.aclose()

    async def test_null_values_is_empty_series(self):
        source = self.make_source(lambda request: httpx.Response(200, json={"values": None}))
        assert await source.fetch_series("/ts_sum") == []
        await source.aclose()

    async def test_http_error_status_raises_fetch_failure(self):
        source = self.make_source(lambda request: httpx.Response(400, text="invalid metric name"))
        with pytest.raises(FetchFailure) as excinfo:
            await source.fetch_rows("/heatmap_data")
        await source.aclose()

        assert excinfo.value.reason == "HTTP 400: invalid metric name"

    async def test_transport_error_raises_fetch_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = self.make_source(handler)
        with pytest.raises(FetchFailure):
            await source.fetch_series("/ts_sum")
        await source.aclose()

    async def test_invalid_json_raises_fetch_failure(self):
        source = self.make_source(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(FetchFailure):
            await source.fetch_series("/ts_sum")
        await source.aclose()

    async def test_non_object_json_raises_fetch_failure(self):
        source = self.make_source(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(FetchFailure):
            await source.fetch_series("/ts_sum")
        await source.aclose()
