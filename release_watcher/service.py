"""Command surface consumed by schedulers, the CLI and other front ends."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping

import structlog
from pydantic import ValidationError as PydanticValidationError

from .config.loader import StoreRepository
from .config.models import AppSettings, SettingsUpdate, SourceInput, SourceRecord, SourceView, utcnow
from .config.sanitize import (
    apply_settings_update,
    describe_validation_error,
    merge_source_input,
    sanitize_source,
    with_computed_flags,
)
from .engine import Fetcher, SerialExecutor
from .errors import NotFoundError, ValidationError
from .poller import Poller, WatcherHooks


def _as_source_input(payload: SourceInput | Mapping[str, Any]) -> SourceInput:
    if isinstance(payload, SourceInput):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("Source payload must be a mapping")
    try:
        return SourceInput.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc)) from exc


class ReleaseWatcher:
    """Facade owning the store, the poller and the serial lock they share.

    Every operation that mutates the store runs on the same
    :class:`SerialExecutor` as polling, so edits never interleave with a
    running poll cycle.
    """

    def __init__(
        self,
        repository: StoreRepository | None = None,
        fetcher: Fetcher | None = None,
        hooks: WatcherHooks | None = None,
        is_attended: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] = utcnow,
        poller: Poller | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository or StoreRepository()
        self.hooks = hooks or (poller.hooks if poller else WatcherHooks())
        self.poller = poller or Poller(
            self.repository,
            fetcher=fetcher,
            hooks=self.hooks,
            is_attended=is_attended,
            clock=clock,
        )
        self.serial: SerialExecutor = self.poller.serial
        self.logger = logger or structlog.get_logger("release_watcher.service").bind(component="service")

    def close(self) -> None:
        self.serial.shutdown()
        self.poller.fetcher.close()

    def _view(self, record: SourceRecord) -> SourceView:
        return with_computed_flags(record, self.poller.clock())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_sources(self) -> list[SourceView]:
        store = self.repository.load()
        return [self._view(source) for source in store.sources]

    def get_source(self, source_id: str) -> SourceView:
        source = self.repository.load().find(source_id)
        if source is None:
            raise NotFoundError(f"Source not found: {source_id}")
        return self._view(source)

    def get_settings(self) -> AppSettings:
        return self.repository.load().settings.model_copy()

    # ------------------------------------------------------------------
    # Source CRUD
    # ------------------------------------------------------------------
    def save_source(self, payload: SourceInput | Mapping[str, Any]) -> SourceView:
        """Create a source, or edit the one whose id matches ``payload.id``."""

        source_input = _as_source_input(payload)
        return self.serial.run(self._save_locked, source_input)

    def _save_locked(self, source_input: SourceInput) -> SourceView:
        store = self.repository.load()
        index = store.index_of(source_input.id) if source_input.id else -1
        if index >= 0:
            record = merge_source_input(store.sources[index], source_input)
            store.sources[index] = record
            self.logger.info("source_updated", source_id=record.id, name=record.name)
        else:
            record = sanitize_source(source_input.changes(), is_new=True)
            store.sources.append(record)
            self.logger.info("source_created", source_id=record.id, name=record.name)
        self.repository.persist()
        self.hooks.store_mutated()
        return self._view(record)

    def delete_source(self, source_id: str) -> None:
        self.serial.run(self._delete_locked, source_id)

    def _delete_locked(self, source_id: str) -> None:
        store = self.repository.load()
        index = store.index_of(source_id)
        if index < 0:
            raise NotFoundError(f"Source not found: {source_id}")
        removed: SourceRecord = store.sources.pop(index)
        self.repository.persist()
        self.logger.info("source_deleted", source_id=removed.id, name=removed.name)
        self.hooks.store_mutated()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def poll_source(self, source_id: str) -> SourceView:
        return self._view(self.poller.poll_one(source_id))

    def poll_all(self) -> list[SourceView]:
        return [self._view(source) for source in self.poller.poll_all()]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def update_settings(self, update: SettingsUpdate | Mapping[str, Any]) -> AppSettings:
        settings = self.serial.run(self._update_settings_locked, update)
        self.hooks.settings_changed(settings)
        return settings

    def _update_settings_locked(self, update: SettingsUpdate | Mapping[str, Any]) -> AppSettings:
        store = self.repository.load()
        apply_settings_update(store.settings, update)
        self.repository.persist()
        self.hooks.store_mutated()
        self.logger.info(
            "settings_updated",
            auto_poll_enabled=store.settings.auto_poll_enabled,
            auto_poll_minutes=store.settings.auto_poll_minutes,
        )
        return store.settings.model_copy()

    def clear_unseen(self) -> int:
        """Reset the unseen-update counter; return the count that was cleared."""

        return self.serial.run(self._clear_unseen_locked)

    def _clear_unseen_locked(self) -> int:
        store = self.repository.load()
        count = store.settings.unseen_update_count
        if count == 0:
            return 0
        store.settings.unseen_update_count = 0
        self.hooks.store_mutated()
        self.repository.persist()
        return count


__all__ = ["ReleaseWatcher"]
