"""Configuration package exports: models, sanitization, migrations and the store."""

from .models import (
    AppSettings,
    ChangeType,
    SettingsUpdate,
    SourceInput,
    SourceRecord,
    SourceStatus,
    SourceType,
    SourceView,
    StoreData,
)
from .defaults import CURRENT_SCHEMA_VERSION, default_sources, default_store
from .sanitize import (
    apply_settings_update,
    merge_source_input,
    reset_runtime_fields,
    sanitize_settings,
    sanitize_source,
    sanitize_store,
    with_computed_flags,
)
from .migrations import migrate
from .loader import StoreLocator, StoreRepository

__all__ = [
    "AppSettings",
    "CURRENT_SCHEMA_VERSION",
    "ChangeType",
    "SettingsUpdate",
    "SourceInput",
    "SourceRecord",
    "SourceStatus",
    "SourceType",
    "SourceView",
    "StoreData",
    "StoreLocator",
    "StoreRepository",
    "apply_settings_update",
    "default_sources",
    "default_store",
    "merge_source_input",
    "migrate",
    "reset_runtime_fields",
    "sanitize_settings",
    "sanitize_source",
    "sanitize_store",
    "with_computed_flags",
]
