"""FastAPI entrypoint for EdgePulse."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from time import monotonic
from typing import Any

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from edgepulse.analytics import AnalyticsRecordManager
from edgepulse.config import get_settings
from edgepulse.interceptor import build_request_entry, record_request_safely, simulate_work
from edgepulse.store import StoreBackendError, create_record_store

PACKAGE_DIR = Path(__file__).resolve().parent
TRACKED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
# Reserved paths answer every method; only /api/clear is gated to POST.
RESERVED_METHODS = TRACKED_METHODS
TRACKED_MESSAGE = "Request tracked successfully!"
TRACKED_STATUS = status.HTTP_200_OK

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
app = FastAPI(title=settings.app_name, version=settings.app_version)
app.mount("/static", StaticFiles(directory=PACKAGE_DIR / "static"), name="static")
started_at_monotonic = monotonic()
store_logger = logging.getLogger("edgepulse.store")
request_logger = logging.getLogger("edgepulse.request")
record_store, record_store_is_shared = create_record_store(
    backend=settings.store_backend,
    redis_url=settings.redis_url,
    prefix=settings.store_prefix,
    logger=store_logger,
)
if settings.environment.lower() not in {"development", "test"} and not record_store_is_shared:
    raise RuntimeError(
        "A shared record store is required outside development/test. "
        "Configure REDIS_URL or STORE_BACKEND=redis."
    )
analytics_manager = AnalyticsRecordManager(
    record_store,
    key=settings.analytics_key,
    limit=settings.retention_limit,
)
templates = Jinja2Templates(directory=PACKAGE_DIR / "templates")


def _cors_headers() -> dict[str, str]:
    return {"Access-Control-Allow-Origin": settings.cors_allow_origin}


def _metric_route_label(request: Request) -> str:
    route = request.scope.get("route")
    if isinstance(route, APIRoute):
        return route.path
    return "_unmatched"


def _iso_timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next: Any) -> Response:
    started = monotonic()
    path = request.url.path
    method = request.method.upper()
    try:
        response = await call_next(request)
    except Exception:
        latency_ms = int((monotonic() - started) * 1000)
        request_logger.exception(
            "request method=%s path=%s route=%s status=%s latency_ms=%s",
            method,
            path,
            _metric_route_label(request),
            500,
            latency_ms,
        )
        raise

    latency_ms = int((monotonic() - started) * 1000)
    request_logger.info(
        "request method=%s path=%s route=%s status=%s latency_ms=%s",
        method,
        path,
        _metric_route_label(request),
        response.status_code,
        latency_ms,
    )
    return response


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await record_store.close()


@app.api_route("/", methods=RESERVED_METHODS, response_class=HTMLResponse, include_in_schema=False)
@app.api_route(
    "/dashboard",
    methods=RESERVED_METHODS,
    response_class=HTMLResponse,
    include_in_schema=False,
)
async def dashboard_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "app_name": settings.app_name,
            "app_version": settings.app_version,
            "analytics_url": "/api/analytics",
            "clear_url": "/api/clear",
            "poll_interval_ms": max(settings.dashboard_poll_seconds, 1) * 1000,
        },
    )


@app.api_route("/api/analytics", methods=RESERVED_METHODS, tags=["analytics"])
async def get_analytics() -> JSONResponse:
    record = await analytics_manager.load()
    return JSONResponse(content=record.to_payload(), headers=_cors_headers())


@app.post("/api/clear", tags=["analytics"])
async def clear_analytics() -> JSONResponse:
    try:
        await analytics_manager.clear()
    except StoreBackendError as exc:
        store_logger.error("analytics_clear_failed error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Record store unavailable",
            headers=_cors_headers(),
        ) from exc
    store_logger.info("analytics_cleared key=%s", analytics_manager.key)
    return JSONResponse(content={"success": True}, headers=_cors_headers())


@app.api_route("/api/health", methods=RESERVED_METHODS, tags=["health"])
async def basic_health() -> dict[str, int | str]:
    try:
        await analytics_manager.store.get(analytics_manager.key)
    except StoreBackendError:
        return {
            "status": "unhealthy",
            "version": settings.app_version,
            "store": "unavailable",
            "uptime_seconds": int(monotonic() - started_at_monotonic),
        }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "store": "redis" if record_store_is_shared else "memory",
        "uptime_seconds": int(monotonic() - started_at_monotonic),
    }


@app.api_route("/{full_path:path}", methods=TRACKED_METHODS, include_in_schema=False)
async def tracked_request(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    response_time_ms = await simulate_work(settings.synthetic_delay_max_ms)
    entry = build_request_entry(
        request,
        response_time_ms=response_time_ms,
        status_code=TRACKED_STATUS,
        client_ip_header=settings.client_ip_header,
        country_header=settings.country_header,
    )
    background_tasks.add_task(record_request_safely, analytics_manager, entry)

    return JSONResponse(
        status_code=TRACKED_STATUS,
        content={
            "message": TRACKED_MESSAGE,
            "timestamp": _iso_timestamp(datetime.now(tz=timezone.utc)),
            "path": request.url.path,
            "method": request.method,
        },
    )
