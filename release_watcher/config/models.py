"""Pydantic models describing tracked sources, settings and the persisted store."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MIN_AUTO_POLL_MINUTES = 5
MAX_AUTO_POLL_MINUTES = 24 * 60
DEFAULT_AUTO_POLL_MINUTES = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_finite_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def clamp_auto_poll_minutes(value: Any) -> int:
    numeric = _as_finite_number(value)
    if numeric is None:
        return DEFAULT_AUTO_POLL_MINUTES
    return max(MIN_AUTO_POLL_MINUTES, min(MAX_AUTO_POLL_MINUTES, math.floor(numeric + 0.5)))


def clamp_schema_version(value: Any) -> int:
    numeric = _as_finite_number(value)
    if numeric is None:
        return 1
    return max(1, math.floor(numeric))


def clamp_unseen_update_count(value: Any) -> int:
    numeric = _as_finite_number(value)
    if numeric is None:
        return 0
    return max(0, math.floor(numeric))


class SourceType(str, Enum):
    """How a response body is interpreted."""

    JSON = "json"
    HTML = "html"


class ChangeType(str, Enum):
    """Kind of the last recorded change; ``None`` on a record means no change yet."""

    BASELINE = "baseline"
    UPDATE = "update"


class SourceStatus(str, Enum):
    """Outcome of the last poll cycle."""

    NEVER = "never"
    OK = "ok"
    ERROR = "error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Fields whose change makes a stored fingerprint incomparable.
EXTRACTION_FIELDS = ("url", "type", "output_selector", "selector", "attribute", "regex")

RUNTIME_FIELDS = (
    "last_value",
    "last_fingerprint",
    "last_polled_at",
    "last_change_at",
    "last_change_type",
    "last_status",
    "last_error",
)


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


class SourceRecord(_CamelModel):
    """A tracked monitoring target plus its last-known run state."""

    id: str
    name: str
    url: str
    type: SourceType
    output_selector: str = ""
    request_headers: str = ""
    selector: str = ""
    attribute: str = ""
    regex: str = ""
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_value: str | None = None
    last_fingerprint: str | None = None
    last_polled_at: datetime | None = None
    last_change_at: datetime | None = None
    last_change_type: ChangeType | None = None
    last_status: SourceStatus = SourceStatus.NEVER
    last_error: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("id cannot be empty")
        return str(value)

    @field_validator(
        "name", "url", "output_selector", "request_headers", "selector", "attribute", "regex", "notes",
        mode="before",
    )
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("expected a string")
        return value.strip()

    @field_validator("last_value", mode="before")
    @classmethod
    def _coerce_last_value(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @field_validator("created_at", "updated_at", "last_polled_at", "last_change_at", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("last_status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return SourceStatus.NEVER if value in (None, "") else value

    @model_validator(mode="after")
    def _validate_record(self) -> "SourceRecord":
        if not self.name:
            raise ValueError("name cannot be empty")
        if not self.url:
            raise ValueError("url cannot be empty")
        if not is_valid_url(self.url):
            raise ValueError(f"url is not a valid absolute URL: {self.url}")
        if self.type is SourceType.JSON:
            self.selector = ""
            self.attribute = ""
        else:
            self.output_selector = ""
        return self

    def extraction_config(self) -> tuple[Any, ...]:
        return tuple(getattr(self, name) for name in EXTRACTION_FIELDS)


class SourceView(SourceRecord):
    """Source record enriched with derived, non-persisted flags."""

    is_new: bool = False


class SourceInput(_CamelModel):
    """Untrusted create/update payload; unset fields are left to the stored record."""

    id: str | None = None
    name: str | None = None
    url: str | None = None
    type: str | None = None
    output_selector: str | None = None
    request_headers: str | None = None
    selector: str | None = None
    attribute: str | None = None
    regex: str | None = None
    notes: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"id"})


class AppSettings(_CamelModel):
    """Process-wide configuration persisted alongside the sources."""

    schema_version: int = 1
    auto_poll_enabled: bool = True
    auto_poll_minutes: int = DEFAULT_AUTO_POLL_MINUTES
    unseen_update_count: int = 0

    @field_validator("schema_version", mode="before")
    @classmethod
    def _coerce_schema_version(cls, value: Any) -> int:
        return clamp_schema_version(value)

    @field_validator("auto_poll_enabled", mode="before")
    @classmethod
    def _coerce_auto_poll_enabled(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else True

    @field_validator("auto_poll_minutes", mode="before")
    @classmethod
    def _coerce_auto_poll_minutes(cls, value: Any) -> int:
        return clamp_auto_poll_minutes(value)

    @field_validator("unseen_update_count", mode="before")
    @classmethod
    def _coerce_unseen(cls, value: Any) -> int:
        return clamp_unseen_update_count(value)


class SettingsUpdate(_CamelModel):
    """Partial settings change; only auto-poll options are caller-editable."""

    auto_poll_enabled: bool | None = None
    auto_poll_minutes: Any = None


class StoreData(_CamelModel):
    """Settings plus the ordered list of tracked sources."""

    settings: AppSettings = Field(default_factory=AppSettings)
    sources: list[SourceRecord] = Field(default_factory=list)

    def find(self, source_id: str) -> SourceRecord | None:
        return next((source for source in self.sources if source.id == source_id), None)

    def index_of(self, source_id: str) -> int:
        for index, source in enumerate(self.sources):
            if source.id == source_id:
                return index
        return -1

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "AppSettings",
    "ChangeType",
    "DEFAULT_AUTO_POLL_MINUTES",
    "EXTRACTION_FIELDS",
    "MAX_AUTO_POLL_MINUTES",
    "MIN_AUTO_POLL_MINUTES",
    "RUNTIME_FIELDS",
    "SettingsUpdate",
    "SourceInput",
    "SourceRecord",
    "SourceStatus",
    "SourceType",
    "SourceView",
    "StoreData",
    "clamp_auto_poll_minutes",
    "clamp_schema_version",
    "clamp_unseen_update_count",
    "is_valid_url",
    "utcnow",
]
