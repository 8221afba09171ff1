"""Request metadata capture for tracked (non-reserved) paths."""

from __future__ import annotations

import asyncio
import logging
import random
from time import monotonic

from starlette.requests import Request

from edgepulse.analytics import AnalyticsRecordManager
from edgepulse.models import UNKNOWN, RequestEntry, now_ms

logger = logging.getLogger("edgepulse.interceptor")


def _header_or_unknown(request: Request, name: str) -> str:
    value = request.headers.get(name)
    if value is None or not value.strip():
        return UNKNOWN
    return value.strip()


def build_request_entry(
    request: Request,
    *,
    response_time_ms: int,
    status_code: int,
    client_ip_header: str,
    country_header: str,
    timestamp_ms: int | None = None,
) -> RequestEntry:
    """Snapshot the inbound request; the logged URL is the path without query."""

    return RequestEntry(
        timestamp=timestamp_ms if timestamp_ms is not None else now_ms(),
        method=request.method.upper(),
        url=request.url.path,
        user_agent=_header_or_unknown(request, "user-agent"),
        ip=_header_or_unknown(request, client_ip_header),
        country=_header_or_unknown(request, country_header),
        response_time=max(0, int(response_time_ms)),
        status=status_code,
    )


async def simulate_work(max_delay_ms: int) -> int:
    """Sleep for a random 0..max_delay_ms and return the measured elapsed ms."""

    started = monotonic()
    await asyncio.sleep(random.uniform(0, max(0, max_delay_ms)) / 1000)
    return int((monotonic() - started) * 1000)


async def record_request_safely(manager: AnalyticsRecordManager, entry: RequestEntry) -> None:
    """Background append; nobody awaits the outcome, so failures end here."""

    try:
        await manager.append(entry)
    except Exception as exc:
        logger.exception(
            "analytics_append_dropped method=%s path=%s error=%s",
            entry.method,
            entry.url,
            exc,
        )
