"""
FastAPI application factory for the cribdash live dashboard.

Creates the app with the data routes, the live WebSocket, and lifespan
management of the metrics poller and the widget refresh scheduler.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from cribdash.config.loader import load_config, get_widget_specs
from cribdash.metrics.instana import InfraQueryClient, parse_duration, rollup_for_window
from cribdash.metrics.store import MetricStore
from cribdash.server.orchestrator import build_widgets, start_dashboard
from cribdash.server.scheduler import RefreshScheduler
from cribdash.server.websocket import ConnectionManager
from cribdash.widgets.source import DataSource
from cribdash.widgets.surface import RenderSurface, Viewport

logger = logging.getLogger("cribdash.server")


def _data_client(app: FastAPI, config: dict) -> httpx.AsyncClient:
    """HTTP client for widget fetches: remote backend or this app in-process."""
    if config.get("metrics_url"):
        return httpx.AsyncClient(base_url=config["metrics_url"])
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://cribdash")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the poller and widgets; stop them on shutdown."""
    config = app.state.config if hasattr(app.state, "config") else load_config()
    app.state.config = config

    if not hasattr(app.state, "store"):
        app.state.store = MetricStore()

    manager = ConnectionManager()
    app.state.ws_manager = manager
    surface = RenderSurface(publish=manager.broadcast)
    app.state.surface = surface
    viewport = Viewport(default_width=config.get("default_width", 960))
    app.state.viewport = viewport

    # Metrics poller background task
    stop_event = asyncio.Event()
    infra_client = None
    poller_task = None
    if config.get("instana_url") and config.get("instana_token"):
        window_size = parse_duration(config["window"])
        rollup = rollup_for_window(window_size)
        infra_client = InfraQueryClient(config["instana_url"], config["instana_token"])
        poller_task = asyncio.create_task(_run_poller_safe(
            infra_client, app.state.store, config, rollup, window_size, stop_event
        ))
    else:
        logger.warning("Instana URL/token not configured; metrics polling disabled")

    # Widgets
    source = DataSource(_data_client(app, config))
    scheduler = RefreshScheduler()
    app.state.scheduler = scheduler
    widgets = build_widgets(get_widget_specs(config), source, surface, viewport)
    app.state.widgets = widgets
    start_dashboard(scheduler, widgets, config.get("refresh_interval_ms", 250))

    yield

    # Shutdown
    await scheduler.stop()
    stop_event.set()
    if poller_task is not None:
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            pass
    await source.aclose()
    if infra_client is not None:
        await infra_client.aclose()


async def _run_poller_safe(client, store, config, rollup, window_size, stop_event):
    """Wrapper that runs the metrics poller, logging if it dies."""
    try:
        from cribdash.server.poller import run_metrics_poller
        await run_metrics_poller(
            client,
            store,
            config.get("metric_queries", []),
            rollup,
            window_size,
            interval=config.get("poll_interval_seconds", 1),
            stop_event=stop_event,
        )
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Metrics poller stopped")


def handle_client_message(state, data: str) -> bool:
    """
    Apply a JSON message from a viewer.

    {"type": "resize", "widths": {target: px}} records the new widths and
    fires the resize signal. Returns True when the message was a resize.
    """
    try:
        message = json.loads(data)
    except ValueError:
        logger.debug("Ignoring non-JSON client message %r", data[:80])
        return False

    if not isinstance(message, dict) or message.get("type") != "resize":
        return False

    widths = message.get("widths")
    if isinstance(widths, dict):
        state.viewport.update(widths)
    state.scheduler.resize_signal.fire()
    return True


def create_app(config: dict = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="cribdash",
        description="Live infrastructure heatmaps and sparklines",
        version="0.3.0",
        lifespan=lifespan,
    )

    if config:
        app.state.config = config

    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)},
        )

    # WebSocket endpoint: draw commands out, pings and resizes in
    @app.websocket("/ws/live")
    async def websocket_live(websocket: WebSocket):
        state = websocket.app.state
        manager = state.ws_manager
        await manager.connect(websocket, greeting=state.surface.snapshot())
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type":"pong"}')
                    continue
                handle_client_message(state, data)
        except WebSocketDisconnect:
            await manager.disconnect(websocket)
        except Exception:
            await manager.disconnect(websocket)

    from cribdash.server.routes.health import router as health_router
    from cribdash.server.routes.metrics import router as metrics_router

    app.include_router(health_router)
    app.include_router(metrics_router)

    return app
