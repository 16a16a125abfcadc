"""Forward-only schema migrations applied once per store load."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import structlog

from .defaults import (
    CODEX_URL,
    CURRENT_SCHEMA_VERSION,
    SEMVER_REGEX,
    WINDSURF_NOTES,
    WINDSURF_URL,
    codex_source,
)
from .models import StoreData, clamp_schema_version, clamp_unseen_update_count, utcnow

LEGACY_WINDSURF_REGEX = r"latest\s+version\s*([0-9][0-9.]+)"

logger = structlog.get_logger("release_watcher.migrations")


@dataclass(frozen=True, slots=True)
class MigrationGate:
    """Transformation applied when the stored version is below ``version``."""

    version: int
    name: str
    apply: Callable[[StoreData, datetime], bool]


def _add_codex_and_fix_windsurf(store: StoreData, now: datetime) -> bool:
    changed = False
    if not any(source.url == CODEX_URL for source in store.sources):
        store.sources.append(codex_source(now))
        changed = True

    windsurf = next((source for source in store.sources if source.url == WINDSURF_URL), None)
    if windsurf is not None and windsurf.regex == LEGACY_WINDSURF_REGEX:
        windsurf.regex = SEMVER_REGEX
        windsurf.notes = WINDSURF_NOTES
        windsurf.updated_at = now
        changed = True
    return changed


def _clamp_unseen_counter(store: StoreData, now: datetime) -> bool:
    before = store.settings.unseen_update_count
    store.settings.unseen_update_count = clamp_unseen_update_count(before)
    return store.settings.unseen_update_count != before


def _backfill_fingerprints(store: StoreData, now: datetime) -> bool:
    changed = False
    for source in store.sources:
        if source.last_value is not None and source.last_fingerprint is None:
            source.last_fingerprint = f"str:{source.last_value}"
            changed = True
    return changed


GATES: tuple[MigrationGate, ...] = (
    MigrationGate(2, "add_codex_fix_windsurf", _add_codex_and_fix_windsurf),
    MigrationGate(3, "clamp_unseen_counter", _clamp_unseen_counter),
    MigrationGate(4, "backfill_fingerprints", _backfill_fingerprints),
)


def migrate(store: StoreData, now: datetime | None = None) -> bool:
    """Migrate ``store`` in place; return ``True`` when anything changed.

    Every gate whose version is above the stored version runs exactly once,
    in order, and the version is then stamped to
    :data:`~release_watcher.config.defaults.CURRENT_SCHEMA_VERSION`. Running
    it again on the result is a no-op.
    """

    now = now or utcnow()
    stored_version = clamp_schema_version(store.settings.schema_version)
    changed = False
    for gate in GATES:
        if stored_version < gate.version and gate.apply(store, now):
            logger.info("migration_applied", gate=gate.name, version=gate.version)
            changed = True

    if store.settings.schema_version != CURRENT_SCHEMA_VERSION:
        store.settings.schema_version = CURRENT_SCHEMA_VERSION
        changed = True
    return changed


__all__ = ["GATES", "LEGACY_WINDSURF_REGEX", "MigrationGate", "migrate"]
