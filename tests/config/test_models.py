from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from release_watcher.config import AppSettings, SourceRecord, SourceStatus, SourceType, StoreData
from release_watcher.config.models import (
    clamp_auto_poll_minutes,
    clamp_schema_version,
    clamp_unseen_update_count,
    is_valid_url,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (30, 30),
        (1, 5),
        (0, 5),
        (-10, 5),
        (10_000, 1440),
        (7.5, 8),
        (7.4, 7),
        ("15", 15),
        ("abc", 30),
        (None, 30),
        (True, 30),
        (math.nan, 30),
        (math.inf, 30),
    ],
)
def test_clamp_auto_poll_minutes(value, expected: int) -> None:
    assert clamp_auto_poll_minutes(value) == expected


def test_clamp_counters() -> None:
    assert clamp_unseen_update_count(-3) == 0
    assert clamp_unseen_update_count(4.9) == 4
    assert clamp_unseen_update_count("x") == 0
    assert clamp_schema_version(0) == 1
    assert clamp_schema_version(None) == 1
    assert clamp_schema_version(3.7) == 3


def test_settings_coerce_garbage_to_defaults() -> None:
    settings = AppSettings.model_validate(
        {"schemaVersion": "nope", "autoPollEnabled": "yes", "autoPollMinutes": 2, "unseenUpdateCount": -1}
    )
    assert settings.schema_version == 1
    assert settings.auto_poll_enabled is True
    assert settings.auto_poll_minutes == 5
    assert settings.unseen_update_count == 0


def test_settings_keep_explicit_false() -> None:
    assert AppSettings.model_validate({"autoPollEnabled": False}).auto_poll_enabled is False


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://example.com/x", True),
        ("http://localhost:8080", True),
        ("example.com", False),
        ("https://", False),
        ("", False),
    ],
)
def test_is_valid_url(url: str, valid: bool) -> None:
    assert is_valid_url(url) is valid


def test_source_record_strips_text_and_clears_other_type_fields() -> None:
    record = SourceRecord(
        id="a",
        name="  Name ",
        url=" https://example.com ",
        type=SourceType.JSON,
        output_selector=" data.version ",
        selector="h1",
        attribute="href",
    )
    assert record.name == "Name"
    assert record.url == "https://example.com"
    assert record.output_selector == "data.version"
    assert record.selector == ""
    assert record.attribute == ""
    assert record.last_status is SourceStatus.NEVER

    html = SourceRecord(id="b", name="n", url="https://example.com", type="html", output_selector="x", selector="h1")
    assert html.output_selector == ""
    assert html.selector == "h1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "   "},
        {"url": "not a url"},
        {"type": "xml"},
        {"id": ""},
        {"regex": 5},
    ],
)
def test_source_record_rejects_invalid(overrides: dict) -> None:
    data = {"id": "a", "name": "n", "url": "https://example.com", "type": "html"}
    data.update(overrides)
    with pytest.raises(PydanticValidationError):
        SourceRecord.model_validate(data)


def test_naive_datetimes_are_treated_as_utc() -> None:
    record = SourceRecord.model_validate(
        {
            "id": "a",
            "name": "n",
            "url": "https://example.com",
            "type": "html",
            "createdAt": "2025-05-01T10:00:00",
        }
    )
    assert record.created_at == datetime(2025, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_non_string_last_value_becomes_canonical_json() -> None:
    record = SourceRecord.model_validate(
        {"id": "a", "name": "n", "url": "https://example.com", "type": "json", "lastValue": {"b": 1, "a": 2}}
    )
    assert record.last_value == '{"a":2,"b":1}'


def test_store_payload_uses_camel_case(sample_source) -> None:
    store = StoreData(sources=[sample_source(output_selector="", regex="v(\\d+)")])
    payload = store.to_payload()
    assert set(payload) == {"settings", "sources"}
    assert payload["settings"]["autoPollMinutes"] == 30
    source = payload["sources"][0]
    assert source["lastStatus"] == "never"
    assert source["createdAt"].startswith("2026-01-01T12:00:00")
    assert "outputSelector" in source and "output_selector" not in source


def test_store_lookup(sample_source) -> None:
    store = StoreData(sources=[sample_source(id="a"), sample_source(id="b")])
    assert store.find("b").id == "b"
    assert store.find("zzz") is None
    assert store.index_of("b") == 1
    assert store.index_of("zzz") == -1
