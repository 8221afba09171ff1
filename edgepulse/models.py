"""Pydantic models for the persisted analytics record."""

from __future__ import annotations

from time import time

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "Unknown"


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""

    return int(time() * 1000)


class RequestEntry(BaseModel):
    """Metadata snapshot of one tracked request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int
    method: str
    url: str
    user_agent: str = Field(default=UNKNOWN, alias="userAgent")
    ip: str = UNKNOWN
    country: str = UNKNOWN
    response_time: int = Field(default=0, ge=0, alias="responseTime")
    status: int = 200


class AnalyticsRecord(BaseModel):
    """Rolling request log stored under a single key, newest entry first."""

    model_config = ConfigDict(populate_by_name=True)

    requests: list[RequestEntry] = Field(default_factory=list)
    total_requests: int = Field(default=0, ge=0, alias="totalRequests")
    last_updated: int = Field(default_factory=now_ms, alias="lastUpdated")

    @classmethod
    def empty(cls, at: int | None = None) -> AnalyticsRecord:
        return cls(requests=[], total_requests=0, last_updated=at if at is not None else now_ms())

    @classmethod
    def from_json(cls, raw: str | bytes) -> AnalyticsRecord:
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
