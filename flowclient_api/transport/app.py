"""
FlowClient API Application

FastAPI application exposing the presence service over HTTP.
This is the main entry point for running the API.

Endpoints:
- POST /ping: Report a heartbeat ({uuid, username, client?, version?})
- GET /online: List online players
- GET /stats: Player count per client version, uptime and memory
- GET /: Service health and endpoint index

Configuration is read from environment variables (see flowclient_api.config).
Serve with:
    uvicorn --factory flowclient_api.transport.app:create_app
"""

import json
import logging
import time
from contextlib import asynccontextmanager

import psutil
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from flowclient_api import __version__
from flowclient_api.config import Settings
from flowclient_api.presence import PresenceReaper, PresenceRegistry
from flowclient_api.transport.middleware import add_rate_limiting, add_security_headers
from flowclient_api.transport.rate_limit import FixedWindowRateLimiter
from flowclient_api.validation import HeartbeatValidator

logger = logging.getLogger(__name__)

SERVICE_NAME = "FlowClient API"

ENDPOINTS = {
    "ping": "POST /ping",
    "online": "GET /online",
    "stats": "GET /stats",
}

INTERNAL_ERROR = {"error": "Internal server error"}

# HEAD is answered wherever GET is
READ_METHODS = ["GET", "HEAD"]


def _internal_error(route: str) -> JSONResponse:
    logger.error(f"[Error] {route}", exc_info=True)
    return JSONResponse(status_code=500, content=INTERNAL_ERROR)


def _is_json(request: Request) -> bool:
    # Bodies sent with any other media type are ignored, as if empty
    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    return media_type == "application/json"


def _uptime_seconds(process: psutil.Process) -> float:
    return max(0.0, time.time() - process.create_time())


def _log_banner(settings: Settings) -> None:
    logger.info("=" * 40)
    logger.info(f"{SERVICE_NAME.upper()} - IN MEMORY")
    logger.info("=" * 40)
    logger.info(f"[Server] Running on port {settings.port}")
    logger.info("[Mode] Temporary in-memory storage")
    logger.info(f"[Timeout] {settings.presence_timeout_seconds:g}s inactivity")
    logger.info(f"[Cleanup] Every {settings.cleanup_interval_seconds:g}s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Starts the reaper on startup; on shutdown stops it and clears
    all presence data (nothing is persisted).
    """
    state = app.state
    await state.reaper.start()
    _log_banner(state.settings)

    yield

    logger.info("[Shutdown] Shutdown requested. Clearing data...")
    await state.reaper.stop()
    removed = await state.registry.clear()
    await state.rate_limiter.reset()
    logger.info(f"[Shutdown] Cleared {removed} presence records")


def create_app(
    settings: Settings | None = None,
    registry: PresenceRegistry | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Runtime settings; read from the environment when omitted
        registry: Registry to serve; a fresh one when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings.from_env()
    registry = registry or PresenceRegistry()

    app = FastAPI(
        title=SERVICE_NAME,
        description="In-memory presence tracking for FlowClient players",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.reaper = PresenceReaper(
        registry,
        timeout_seconds=settings.presence_timeout_seconds,
        interval_seconds=settings.cleanup_interval_seconds,
    )
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.validator = HeartbeatValidator()
    app.state.process = psutil.Process()

    # Middleware added last runs first: CORS, then headers, then limiter
    add_rate_limiting(app, app.state.rate_limiter)
    add_security_headers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods are both "not found"
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.post("/ping")
    @app.post("/ping/", include_in_schema=False)
    async def ping(request: Request):
        """
        Record a heartbeat.

        Body: {uuid, username, client?, version?}
        """
        try:
            raw = await request.body() if _is_json(request) else b""
            try:
                payload = json.loads(raw) if raw.strip() else {}
            except (json.JSONDecodeError, UnicodeDecodeError):
                return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

            result = request.app.state.validator.validate(payload)
            if not result.is_valid:
                return JSONResponse(status_code=400, content={"error": result.error})

            heartbeat = result.heartbeat
            upserted = await request.app.state.registry.upsert(
                heartbeat.client_id,
                heartbeat.display_name,
                client_tag=heartbeat.client_tag,
                client_version=heartbeat.client_version,
            )
            return {"success": True, "online": upserted.total}

        except Exception:
            return _internal_error("/ping")

    @app.api_route("/online", methods=READ_METHODS)
    @app.api_route("/online/", methods=READ_METHODS, include_in_schema=False)
    async def online(request: Request):
        """List online players."""
        try:
            records = await request.app.state.registry.snapshot()
            return {
                "count": len(records),
                "players": [record.to_public_dict() for record in records],
            }
        except Exception:
            return _internal_error("/online")

    @app.api_route("/stats", methods=READ_METHODS)
    @app.api_route("/stats/", methods=READ_METHODS, include_in_schema=False)
    async def stats(request: Request):
        """Player count per client version, process uptime and memory."""
        try:
            versions = await request.app.state.registry.version_counts()
            process = request.app.state.process
            memory = process.memory_info()
            return {
                "count": sum(versions.values()),
                "versions": versions,
                "uptime": _uptime_seconds(process),
                "memory": {"rss": memory.rss, "vms": memory.vms},
            }
        except Exception:
            return _internal_error("/stats")

    @app.api_route("/", methods=READ_METHODS)
    async def root(request: Request):
        """Health check."""
        return {
            "name": SERVICE_NAME,
            "version": __version__,
            "status": "online",
            "players": request.app.state.registry.count,
            "uptime": int(_uptime_seconds(request.app.state.process)),
            "endpoints": ENDPOINTS,
        }

    return app
