from __future__ import annotations

import logging

from starlette.requests import Request

import edgepulse.interceptor as interceptor_module
from edgepulse.analytics import AnalyticsRecordManager
from edgepulse.interceptor import build_request_entry, record_request_safely, simulate_work
from edgepulse.models import RequestEntry
from edgepulse.store import InMemoryRecordStore, StoreBackendError


def make_request(
    *,
    method: str = "GET",
    path: str = "/api/users",
    query: bytes = b"",
    headers: dict[str, str] | None = None,
) -> Request:
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or {}).items()
    ]
    return Request(
        {
            "type": "http",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "path": path,
            "query_string": query,
            "headers": raw_headers,
        }
    )


class FailingAppendManager(AnalyticsRecordManager):
    async def append(self, entry: RequestEntry):
        raise StoreBackendError("Record store unavailable")


def test_build_request_entry_reads_platform_headers() -> None:
    request = make_request(
        method="post",
        path="/api/orders",
        query=b"page=2&sort=desc",
        headers={
            "User-Agent": "Mozilla/5.0",
            "CF-Connecting-IP": "198.51.100.23",
            "CF-IPCountry": "VN",
        },
    )

    entry = build_request_entry(
        request,
        response_time_ms=17,
        status_code=200,
        client_ip_header="CF-Connecting-IP",
        country_header="CF-IPCountry",
        timestamp_ms=1_700_000_000_000,
    )

    assert entry == RequestEntry(
        timestamp=1_700_000_000_000,
        method="POST",
        url="/api/orders",
        user_agent="Mozilla/5.0",
        ip="198.51.100.23",
        country="VN",
        response_time=17,
        status=200,
    )


def test_build_request_entry_defaults_missing_headers_to_unknown() -> None:
    request = make_request(headers={"CF-IPCountry": "  "})

    entry = build_request_entry(
        request,
        response_time_ms=-3,
        status_code=200,
        client_ip_header="CF-Connecting-IP",
        country_header="CF-IPCountry",
    )

    assert entry.user_agent == "Unknown"
    assert entry.ip == "Unknown"
    assert entry.country == "Unknown"
    assert entry.response_time == 0
    assert entry.timestamp > 0


def test_build_request_entry_honours_custom_header_names() -> None:
    request = make_request(headers={"X-Real-IP": "192.0.2.9", "X-Geo-Country": "JP"})

    entry = build_request_entry(
        request,
        response_time_ms=5,
        status_code=200,
        client_ip_header="X-Real-IP",
        country_header="X-Geo-Country",
    )

    assert entry.ip == "192.0.2.9"
    assert entry.country == "JP"


async def test_simulate_work_measures_requested_delay(monkeypatch) -> None:
    requested: list[float] = []

    def _uniform(low: float, high: float) -> float:
        requested.append(high)
        return 0.0

    monkeypatch.setattr(interceptor_module.random, "uniform", _uniform)

    elapsed = await simulate_work(50)

    assert requested == [50]
    assert elapsed >= 0


async def test_simulate_work_with_zero_budget_returns_quickly() -> None:
    assert 0 <= await simulate_work(0) < 50


async def test_record_request_safely_appends_entry() -> None:
    manager = AnalyticsRecordManager(InMemoryRecordStore())
    entry = RequestEntry(timestamp=1, method="GET", url="/ok")

    await record_request_safely(manager, entry)

    record = await manager.load()
    assert record.requests == [entry]


async def test_record_request_safely_drops_failures(caplog) -> None:
    manager = FailingAppendManager(InMemoryRecordStore())
    entry = RequestEntry(timestamp=1, method="DELETE", url="/gone")

    with caplog.at_level(logging.ERROR, logger="edgepulse.interceptor"):
        await record_request_safely(manager, entry)

    assert "analytics_append_dropped method=DELETE path=/gone" in caplog.text
