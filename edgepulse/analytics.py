"""Rolling analytics record: retention policy and store read/write cycle."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from edgepulse.models import AnalyticsRecord, RequestEntry, now_ms
from edgepulse.store import RecordStore, StoreBackendError

RETENTION_LIMIT = 100
ANALYTICS_KEY = "analytics"

logger = logging.getLogger("edgepulse.analytics")


def apply_append(
    record: AnalyticsRecord,
    entry: RequestEntry,
    *,
    at: int,
    limit: int = RETENTION_LIMIT,
) -> AnalyticsRecord:
    """
    Return a copy of ``record`` with ``entry`` logged.

    The entry is prepended (newest first) and the oldest entries beyond
    ``limit`` are dropped. ``total_requests`` keeps counting past the
    retained window and never falls below the number of retained entries.
    """

    if limit < 1:
        raise ValueError("limit must be >= 1")

    requests = [entry, *record.requests][:limit]
    return AnalyticsRecord(
        requests=requests,
        total_requests=max(record.total_requests + 1, len(requests)),
        last_updated=at,
    )


class AnalyticsRecordManager:
    """
    Load, append to and clear the analytics record kept under one store key.

    No state is held between calls; every operation starts from the store.
    ``append`` is a plain read-then-write with no locking or compare-and-swap,
    so overlapping appends are last-write-wins and may drop entries.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        key: str = ANALYTICS_KEY,
        limit: int = RETENTION_LIMIT,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._store = store
        self._key = key
        self._limit = limit

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def key(self) -> str:
        return self._key

    def _decode(self, raw: str | None) -> AnalyticsRecord:
        if raw is None:
            return AnalyticsRecord.empty()
        try:
            return AnalyticsRecord.from_json(raw)
        except ValidationError as exc:
            logger.warning(
                "analytics_record_unparsable key=%s errors=%s",
                self._key,
                exc.error_count(),
            )
            return AnalyticsRecord.empty()

    async def load(self) -> AnalyticsRecord:
        """Fetch the record, substituting an empty one when absent or unreadable."""

        try:
            raw = await self._store.get(self._key)
        except StoreBackendError as exc:
            logger.warning("analytics_load_failed key=%s error=%s", self._key, exc)
            return AnalyticsRecord.empty()
        return self._decode(raw)

    async def append(self, entry: RequestEntry) -> AnalyticsRecord:
        # A backend read failure propagates so the write below cannot replace
        # retained history with an empty record.
        current = self._decode(await self._store.get(self._key))
        updated = apply_append(current, entry, at=now_ms(), limit=self._limit)
        await self._store.put(self._key, updated.to_json())
        return updated

    async def clear(self) -> None:
        await self._store.delete(self._key)
