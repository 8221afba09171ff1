from __future__ import annotations

import httpx
import pytest_asyncio

import edgepulse.main as main_module
from edgepulse.analytics import AnalyticsRecordManager
from edgepulse.main import app
from edgepulse.store import InMemoryRecordStore


@pytest_asyncio.fixture(autouse=True)
async def clean_state(monkeypatch) -> None:
    store = InMemoryRecordStore()
    monkeypatch.setattr(
        main_module,
        "analytics_manager",
        AnalyticsRecordManager(
            store,
            key=main_module.settings.analytics_key,
            limit=main_module.settings.retention_limit,
        ),
    )
    monkeypatch.setattr(main_module.settings, "synthetic_delay_max_ms", 0)
    yield
    await store.reset()


@pytest_asyncio.fixture
async def client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
