"""Built-in sources and settings used on first run and by migrations."""

from __future__ import annotations

import uuid
from datetime import datetime

from .models import AppSettings, SourceRecord, SourceType, StoreData, utcnow

CURRENT_SCHEMA_VERSION = 4

WINDSURF_URL = "https://windsurf.com/changelog"
CODEX_URL = "https://developers.openai.com/codex/changelog/"
XCODE_URL = "https://xcodereleases.com/data.json"

SEMVER_REGEX = r"([0-9]+\.[0-9]+\.[0-9]+)"
WINDSURF_NOTES = "Extracts the first semantic version found in the changelog."


def new_source_id() -> str:
    return str(uuid.uuid4())


def windsurf_source(now: datetime) -> SourceRecord:
    return SourceRecord(
        id=new_source_id(),
        name="Windsurf Changelog",
        url=WINDSURF_URL,
        type=SourceType.HTML,
        selector="body",
        regex=SEMVER_REGEX,
        notes=WINDSURF_NOTES,
        created_at=now,
        updated_at=now,
    )


def codex_source(now: datetime) -> SourceRecord:
    return SourceRecord(
        id=new_source_id(),
        name="OpenAI Codex Changelog",
        url=CODEX_URL,
        type=SourceType.HTML,
        selector="body",
        regex=r"Codex CLI\s+([0-9]+\.[0-9]+\.[0-9]+)",
        notes="Extracts the first Codex CLI version listed on the changelog page.",
        created_at=now,
        updated_at=now,
    )


def xcode_source(now: datetime) -> SourceRecord:
    return SourceRecord(
        id=new_source_id(),
        name="Xcode Releases JSON",
        url=XCODE_URL,
        type=SourceType.JSON,
        output_selector="0.name",
        notes="Adjust output selector if you want a different field.",
        created_at=now,
        updated_at=now,
    )


def default_sources(now: datetime | None = None) -> list[SourceRecord]:
    now = now or utcnow()
    return [windsurf_source(now), codex_source(now), xcode_source(now)]


def default_store(now: datetime | None = None) -> StoreData:
    return StoreData(
        settings=AppSettings(schema_version=CURRENT_SCHEMA_VERSION),
        sources=default_sources(now),
    )


__all__ = [
    "CODEX_URL",
    "CURRENT_SCHEMA_VERSION",
    "SEMVER_REGEX",
    "WINDSURF_NOTES",
    "WINDSURF_URL",
    "XCODE_URL",
    "codex_source",
    "default_sources",
    "default_store",
    "new_source_id",
    "windsurf_source",
    "xcode_source",
]
