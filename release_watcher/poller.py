"""Poll orchestration: fetch → extract → fingerprint → compare → update → persist."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

import structlog

from .config.loader import StoreRepository
from .config.models import AppSettings, ChangeType, SourceRecord, SourceStatus, StoreData, utcnow
from .engine import Extractor, Fetcher, SerialExecutor, fingerprint, parse_request_headers
from .errors import NotFoundError


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Outward notification for a tracked value that changed after its baseline."""

    source_id: str
    source_name: str
    previous_value: str | None
    current_value: str
    changed_at: datetime

    @property
    def title(self) -> str:
        return f"{self.source_name} updated"

    @property
    def body(self) -> str:
        detail = f" (was {self.previous_value})" if self.previous_value else ""
        return f"New value: {self.current_value}{detail}"


@dataclass
class WatcherHooks:
    """Outward side-effect hooks; a failing hook is logged and never propagates."""

    on_store_mutated: list[Callable[[], Any]] = field(default_factory=list)
    on_change: list[Callable[[ChangeEvent], Any]] = field(default_factory=list)
    on_settings_changed: list[Callable[[AppSettings], Any]] = field(default_factory=list)
    logger: structlog.BoundLogger = field(
        default_factory=lambda: structlog.get_logger("release_watcher.hooks"), repr=False
    )

    def store_mutated(self) -> None:
        self._call(self.on_store_mutated)

    def change_detected(self, event: ChangeEvent) -> None:
        self._call(self.on_change, event)

    def settings_changed(self, settings: AppSettings) -> None:
        self._call(self.on_settings_changed, settings)

    def _call(self, callbacks: list[Callable[..., Any]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning(
                    "hook_failed",
                    hook=getattr(callback, "__name__", repr(callback)),
                    error=str(exc),
                )


class Poller:
    """Runs poll cycles against the shared store, one at a time."""

    def __init__(
        self,
        repository: StoreRepository,
        fetcher: Fetcher | None = None,
        extractor: Extractor | None = None,
        serial: SerialExecutor | None = None,
        hooks: WatcherHooks | None = None,
        is_attended: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] = utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.repository = repository
        self.fetcher = fetcher or Fetcher()
        self.extractor = extractor or Extractor()
        self.serial = serial or SerialExecutor()
        self.hooks = hooks or WatcherHooks()
        self.is_attended = is_attended or (lambda: False)
        self.clock = clock
        self.logger = logger or structlog.get_logger("release_watcher.poller").bind(component="poller")

    # ------------------------------------------------------------------
    # Serialized entry points
    # ------------------------------------------------------------------
    def poll_one(self, source_id: str) -> SourceRecord:
        """Poll a single source and persist; raises :class:`NotFoundError` for unknown ids."""

        return self.serial.run(self._poll_one_locked, source_id)

    def poll_all(self) -> list[SourceRecord]:
        """Poll every source sequentially, then persist once."""

        return self.serial.run(self._poll_all_locked)

    def _poll_one_locked(self, source_id: str) -> SourceRecord:
        store = self.repository.load()
        source = self._resolve(store, source_id)
        self.poll_cycle(store, source)
        self.repository.persist()
        return source

    def _poll_all_locked(self) -> list[SourceRecord]:
        store = self.repository.load()
        started = self.clock()
        for source_id in [source.id for source in store.sources]:
            source = store.find(source_id)
            if source is not None:
                self.poll_cycle(store, source)
        self.repository.persist()
        failed = sum(1 for source in store.sources if source.last_status is SourceStatus.ERROR)
        self.logger.info(
            "poll_all_finished",
            sources=len(store.sources),
            failed=failed,
            elapsed=(self.clock() - started).total_seconds(),
        )
        return list(store.sources)

    @staticmethod
    def _resolve(store: StoreData, source_id: str) -> SourceRecord:
        source = store.find(source_id)
        if source is None:
            raise NotFoundError(f"Source not found: {source_id}")
        return source

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------
    def poll_cycle(self, store: StoreData, source: SourceRecord) -> bool:
        """Run one cycle for ``source`` in place; return ``True`` when a change was detected.

        Never raises: fetch, header, extraction and fingerprint failures are
        recorded on the record, which keeps its last good value.
        """

        log = self.logger.bind(source=source.name, source_id=source.id)
        now = self.clock()
        try:
            headers = parse_request_headers(source.request_headers)
            response = self.fetcher.fetch(source.url, headers)
            extracted = self.extractor.extract(response.text, source)
            result = fingerprint(extracted)
        except Exception as exc:  # noqa: BLE001
            source.last_polled_at = now
            source.last_status = SourceStatus.ERROR
            source.last_error = str(exc) or exc.__class__.__name__
            log.warning("poll_failed", error=source.last_error, error_type=exc.__class__.__name__)
            self.hooks.store_mutated()
            return False

        previous_value = source.last_value
        is_baseline = source.last_fingerprint is None
        changed = not is_baseline and result.key != source.last_fingerprint

        source.last_polled_at = now
        source.last_status = SourceStatus.OK
        source.last_error = None
        if is_baseline or changed:
            source.last_value = result.display
            source.last_fingerprint = result.key
            source.last_change_at = now
            source.last_change_type = ChangeType.BASELINE if is_baseline else ChangeType.UPDATE

        if is_baseline:
            log.info("baseline_recorded", value=result.display)
        elif changed:
            log.info("change_detected", previous=previous_value, current=result.display)
            self.hooks.change_detected(
                ChangeEvent(
                    source_id=source.id,
                    source_name=source.name,
                    previous_value=previous_value,
                    current_value=result.display,
                    changed_at=now,
                )
            )
            if not self._attended():
                store.settings.unseen_update_count += 1
        else:
            log.debug("poll_unchanged", value=result.display)

        self.hooks.store_mutated()
        return changed

    def _attended(self) -> bool:
        try:
            return bool(self.is_attended())
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("attended_check_failed", error=str(exc))
            return False


__all__ = ["ChangeEvent", "Poller", "WatcherHooks"]
