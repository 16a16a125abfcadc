from __future__ import annotations

import pytest
import yaml

from release_watcher import ReleaseWatcher, WatcherHooks
from release_watcher.config import ChangeType, SourceInput, SourceStatus, StoreRepository
from release_watcher.errors import NotFoundError, ValidationError

URL = "https://example.com/releases"


@pytest.fixture
def hooks() -> WatcherHooks:
    return WatcherHooks()


@pytest.fixture
def watcher(repository, stub_fetcher, hooks, clock):
    instance = ReleaseWatcher(repository=repository, fetcher=stub_fetcher, hooks=hooks, clock=clock)
    yield instance
    instance.close()


def test_list_sources_starts_with_defaults(watcher) -> None:
    names = [source.name for source in watcher.list_sources()]
    assert names == ["Windsurf Changelog", "OpenAI Codex Changelog", "Xcode Releases JSON"]
    assert all(source.is_new is False for source in watcher.list_sources())


def test_create_source_assigns_id_and_persists(watcher, locator, hooks) -> None:
    mutations: list[bool] = []
    hooks.on_store_mutated.append(lambda: mutations.append(True))

    created = watcher.save_source(
        {"name": "Demo", "url": "https://demo.example.com", "type": "json", "outputSelector": "tag_name"}
    )

    assert created.id
    assert created.last_status is SourceStatus.NEVER
    assert mutations == [True]
    written = yaml.safe_load(locator.store_path().read_text(encoding="utf-8"))
    assert written["sources"][-1]["id"] == created.id
    assert written["sources"][-1]["outputSelector"] == "tag_name"


def test_unknown_id_on_save_creates_new_source(watcher) -> None:
    created = watcher.save_source(SourceInput(id="not-there", name="Demo", url="https://demo.example.com", type="html"))
    assert created.id != "not-there"
    assert watcher.get_source(created.id).name == "Demo"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Demo", "url": "not-a-url", "type": "html"},
        {"name": "", "url": "https://demo.example.com", "type": "html"},
        {"name": "Demo", "url": "https://demo.example.com", "type": "feed"},
        {"name": "Demo", "url": "https://demo.example.com", "type": "html", "regex": "(unclosed"},
        {"name": ["Demo"], "url": "https://demo.example.com", "type": "html"},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_payload_is_rejected_and_store_unchanged(watcher, payload) -> None:
    before = len(watcher.list_sources())
    with pytest.raises(ValidationError):
        watcher.save_source(payload)
    assert len(watcher.list_sources()) == before


def test_edit_of_extraction_field_resets_run_state(watcher, seed, sample_source, stub_fetcher) -> None:
    seed(sample_source())
    stub_fetcher.queue(URL, "<h1>1.0</h1>")
    watcher.poll_source("src-1")

    edited = watcher.save_source({"id": "src-1", "selector": "h2"})

    assert edited.selector == "h2"
    assert edited.last_value is None
    assert edited.last_fingerprint is None
    assert edited.last_status is SourceStatus.NEVER


def test_edit_of_notes_keeps_run_state(watcher, seed, sample_source, stub_fetcher) -> None:
    seed(sample_source())
    stub_fetcher.queue(URL, "<h1>1.0</h1>")
    watcher.poll_source("src-1")

    edited = watcher.save_source({"id": "src-1", "notes": "watch closely", "name": "Renamed"})

    assert edited.notes == "watch closely"
    assert edited.name == "Renamed"
    assert edited.last_value == "1.0"
    assert edited.last_change_type is ChangeType.BASELINE


def test_invalid_edit_leaves_record_untouched(watcher, seed, sample_source) -> None:
    seed(sample_source())
    with pytest.raises(ValidationError):
        watcher.save_source({"id": "src-1", "url": "nope"})
    assert watcher.get_source("src-1").url == URL


def test_delete_source(watcher, seed, sample_source) -> None:
    seed(sample_source(id="a"), sample_source(id="b"))
    watcher.delete_source("a")
    assert [source.id for source in watcher.list_sources()] == ["b"]
    with pytest.raises(NotFoundError):
        watcher.delete_source("a")
    with pytest.raises(NotFoundError):
        watcher.get_source("a")


def test_poll_source_reports_is_new(watcher, seed, sample_source, stub_fetcher) -> None:
    seed(sample_source(last_value="1.0", last_fingerprint="str:1.0"))
    stub_fetcher.queue(URL, "<h1>2.0</h1>")
    polled = watcher.poll_source("src-1")
    assert polled.last_change_type is ChangeType.UPDATE
    assert polled.is_new is True


def test_update_settings_clamps_and_notifies(watcher, hooks, locator) -> None:
    seen = []
    hooks.on_settings_changed.append(seen.append)

    settings = watcher.update_settings({"auto_poll_enabled": False, "auto_poll_minutes": 3})

    assert settings.auto_poll_enabled is False
    assert settings.auto_poll_minutes == 5
    assert [item.auto_poll_minutes for item in seen] == [5]
    written = yaml.safe_load(locator.store_path().read_text(encoding="utf-8"))
    assert written["settings"]["autoPollEnabled"] is False
    assert written["settings"]["autoPollMinutes"] == 5

    assert watcher.update_settings({"autoPollMinutes": 5000}).auto_poll_minutes == 1440


def test_get_settings_returns_copy(watcher) -> None:
    settings = watcher.get_settings()
    settings.auto_poll_minutes = 999
    assert watcher.get_settings().auto_poll_minutes == 30


def test_clear_unseen(watcher, repository) -> None:
    assert watcher.clear_unseen() == 0
    repository.update(lambda store: setattr(store.settings, "unseen_update_count", 3))
    assert watcher.clear_unseen() == 3
    assert watcher.get_settings().unseen_update_count == 0


def test_saved_source_survives_reload(watcher, locator) -> None:
    created = watcher.save_source(
        {
            "name": "Demo",
            "url": "https://demo.example.com",
            "type": "html",
            "selector": "meta[name=version]",
            "attribute": "content",
            "regex": "/v(\\d+)/i",
            "requestHeaders": "Accept: text/html",
        }
    )
    reloaded = StoreRepository(locator).load().find(created.id)
    assert reloaded is not None
    assert reloaded.model_dump() == watcher.repository.load().find(created.id).model_dump()
