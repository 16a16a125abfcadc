"""Canonical construction of sources and settings from untrusted input."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

import structlog
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..engine.patterns import compile_regex
from ..errors import InvalidRegexError, ValidationError
from .defaults import default_sources, default_store, new_source_id
from .models import (
    RUNTIME_FIELDS,
    AppSettings,
    ChangeType,
    SettingsUpdate,
    SourceInput,
    SourceRecord,
    SourceStatus,
    SourceView,
    StoreData,
    clamp_auto_poll_minutes,
    utcnow,
)

RECENT_CHANGE_WINDOW = timedelta(hours=2)

_FIELD_BY_ALIAS = {to_camel(name): name for name in SourceRecord.model_fields}
# Older store files named the JSON path field differently.
_LEGACY_ALIASES = {"jsonPath": "output_selector"}

logger = structlog.get_logger("release_watcher.store")


def describe_validation_error(exc: PydanticValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid source data"


def _field_names(payload: Mapping[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    legacy: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _LEGACY_ALIASES:
            legacy[_LEGACY_ALIASES[key]] = value
        else:
            data[_FIELD_BY_ALIAS.get(key, key)] = value
    for name, value in legacy.items():
        if not data.get(name):
            data[name] = value
    return data


def sanitize_source(
    payload: Mapping[str, Any],
    *,
    is_new: bool,
    now: datetime | None = None,
    check_regex: bool = True,
) -> SourceRecord:
    """Build a valid :class:`SourceRecord` or raise :class:`ValidationError`.

    New records get a fresh id, creation timestamps and "never polled" run
    state. Existing records keep whatever id, timestamps and run state the
    payload carries.
    """

    if not isinstance(payload, Mapping):
        raise ValidationError("Source payload must be a mapping")
    now = now or utcnow()
    data = _field_names(payload)

    if is_new:
        data["id"] = new_source_id()
        data["created_at"] = now
        data["updated_at"] = now
        for name in RUNTIME_FIELDS:
            data.pop(name, None)
    else:
        if not data.get("id"):
            data["id"] = new_source_id()
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)

    try:
        record = SourceRecord.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc)) from exc

    if check_regex and record.regex:
        try:
            compile_regex(record.regex)
        except InvalidRegexError as exc:
            raise ValidationError(str(exc)) from exc
    return record


def reset_runtime_fields(record: SourceRecord) -> SourceRecord:
    return record.model_copy(
        update={
            "last_value": None,
            "last_fingerprint": None,
            "last_polled_at": None,
            "last_change_at": None,
            "last_change_type": None,
            "last_status": SourceStatus.NEVER,
            "last_error": None,
        }
    )


def merge_source_input(
    existing: SourceRecord,
    source_input: SourceInput | Mapping[str, Any],
    now: datetime | None = None,
) -> SourceRecord:
    """Apply an edit over the stored record, resetting run state on extraction changes."""

    now = now or utcnow()
    if isinstance(source_input, SourceInput):
        changes = source_input.changes()
    else:
        changes = {k: v for k, v in _field_names(source_input).items() if k != "id"}

    merged = existing.model_dump()
    merged.update(changes)
    merged["id"] = existing.id
    merged["created_at"] = existing.created_at
    merged["updated_at"] = now

    record = sanitize_source(merged, is_new=False, now=now, check_regex=False)
    # Stored records may carry a regex that no longer compiles; only a new one is checked.
    if record.regex and record.regex != existing.regex:
        try:
            compile_regex(record.regex)
        except InvalidRegexError as exc:
            raise ValidationError(str(exc)) from exc
    if record.extraction_config() != existing.extraction_config():
        return reset_runtime_fields(record)
    return record


def sanitize_settings(payload: Any) -> AppSettings:
    if not isinstance(payload, Mapping):
        return AppSettings()
    try:
        return AppSettings.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc)) from exc


def apply_settings_update(settings: AppSettings, update: SettingsUpdate | Mapping[str, Any]) -> None:
    """Mutate ``settings`` in place with the caller-editable options."""

    if not isinstance(update, SettingsUpdate):
        try:
            update = SettingsUpdate.model_validate(update)
        except PydanticValidationError as exc:
            raise ValidationError(describe_validation_error(exc)) from exc
    if isinstance(update.auto_poll_enabled, bool):
        settings.auto_poll_enabled = update.auto_poll_enabled
    if update.auto_poll_minutes is not None:
        settings.auto_poll_minutes = clamp_auto_poll_minutes(update.auto_poll_minutes)


def sanitize_store(payload: Any) -> StoreData:
    """Turn a parsed store document into a :class:`StoreData`, dropping invalid sources."""

    if not isinstance(payload, Mapping):
        return default_store()

    settings = sanitize_settings(payload.get("settings"))
    raw_sources = payload.get("sources")
    if not isinstance(raw_sources, list):
        return StoreData(settings=settings, sources=default_sources())

    sources: list[SourceRecord] = []
    for position, item in enumerate(raw_sources):
        try:
            sources.append(sanitize_source(item, is_new=False, check_regex=False))
        except ValidationError as exc:
            logger.warning("source_dropped", position=position, error=str(exc))
    return StoreData(settings=settings, sources=sources or default_sources())


def with_computed_flags(record: SourceRecord, now: datetime | None = None) -> SourceView:
    now = now or utcnow()
    is_new = (
        record.last_change_type is ChangeType.UPDATE
        and record.last_change_at is not None
        and now - record.last_change_at <= RECENT_CHANGE_WINDOW
    )
    return SourceView.model_validate({**record.model_dump(), "is_new": is_new})


__all__ = [
    "RECENT_CHANGE_WINDOW",
    "apply_settings_update",
    "describe_validation_error",
    "merge_source_input",
    "reset_runtime_fields",
    "sanitize_settings",
    "sanitize_source",
    "sanitize_store",
    "with_computed_flags",
]
