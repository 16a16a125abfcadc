"""Pytest configuration providing an isolated watcher home and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from release_watcher.config import SourceRecord, SourceType, StoreRepository
from release_watcher.config.loader import HOME_ENV_VAR, StoreLocator
from release_watcher.engine.fetcher import FetchResponse
from release_watcher.errors import HttpError


class StubFetcher:
    """Fetcher double returning queued bodies (or raising queued errors) per URL."""

    def __init__(self) -> None:
        self.responses: dict[str, list[Any]] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.closed = False

    def queue(self, url: str, *bodies: Any) -> None:
        self.responses.setdefault(url, []).extend(bodies)

    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse:
        self.calls.append((url, dict(headers or {})))
        queued = self.responses.get(url)
        if not queued:
            raise HttpError("HTTP 404 Not Found")
        body = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(body, Exception):
            raise body
        return FetchResponse(url=url, status_code=200, text=body, headers={})

    def close(self) -> None:
        self.closed = True


class SteppingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(minutes=1)
        return self.current


@pytest.fixture(autouse=True)
def watcher_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv(HOME_ENV_VAR, str(home))
    return home


@pytest.fixture
def locator(watcher_home: Path) -> StoreLocator:
    return StoreLocator(home=watcher_home)


@pytest.fixture
def repository(locator: StoreLocator) -> StoreRepository:
    return StoreRepository(locator)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now: datetime) -> SteppingClock:
    return SteppingClock(fixed_now)


@pytest.fixture
def stub_fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def sample_source(fixed_now: datetime) -> Callable[..., SourceRecord]:
    def _builder(**overrides: Any) -> SourceRecord:
        base: dict[str, Any] = {
            "id": "src-1",
            "name": "Example",
            "url": "https://example.com/releases",
            "type": SourceType.HTML,
            "selector": "h1",
            "created_at": fixed_now,
            "updated_at": fixed_now,
        }
        base.update(overrides)
        return SourceRecord(**base)

    return _builder


@pytest.fixture
def seed(repository: StoreRepository) -> Callable[..., StoreRepository]:
    """Replace the default sources of a freshly loaded store with the given ones."""

    def _seed(*sources: SourceRecord) -> StoreRepository:
        store = repository.load()
        store.sources[:] = list(sources)
        repository.persist()
        return repository

    return _seed
