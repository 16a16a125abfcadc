"""Store location, loader strategies and atomic persistence."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

import structlog
import yaml

from ..errors import StoreLoadError
from .defaults import default_store
from .migrations import migrate
from .models import StoreData
from .sanitize import sanitize_store

HOME_ENV_VAR = "RELEASE_WATCHER_HOME"
STORE_FILENAME = "sources.yaml"
LEGACY_STORE_FILENAME = "store.json"

ORIGIN_PRIMARY = "primary"
ORIGIN_LEGACY = "legacy"
ORIGIN_DEFAULTS = "defaults"


def _read_mapping(path: Path, parse: Callable[[str], Any]) -> dict:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreLoadError(f"Cannot read store file {path}: {exc}") from exc
    try:
        data = parse(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise StoreLoadError(f"Store file is corrupt: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise StoreLoadError(f"Store file must contain a mapping: {path}")
    return data


def dump_store(store: StoreData) -> str:
    return yaml.safe_dump(store.to_payload(), allow_unicode=True, sort_keys=False)


@dataclass(slots=True)
class StoreLocator:
    """Resolve the store, legacy store and log paths from the watcher home."""

    home: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_home = os.environ.get(HOME_ENV_VAR)
        if self.home is not None:
            root = Path(self.home)
        elif env_home:
            root = Path(env_home)
        else:
            root = Path.home() / ".release-watcher"
        self.home = root.expanduser().resolve()
        self.logs_dir = (self.home / "logs").resolve()

    def ensure_directories(self) -> None:
        for directory in (self.home, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def store_path(self) -> Path:
        return self.home / STORE_FILENAME

    def legacy_store_path(self) -> Path:
        return self.home / LEGACY_STORE_FILENAME


@dataclass(slots=True)
class LoadedStore:
    store: StoreData
    raw: dict
    origin: str


class StoreLoader(Protocol):
    origin: str

    def load(self) -> LoadedStore:
        """Return a sanitized store or raise :class:`StoreLoadError`."""


@dataclass(slots=True)
class YamlStoreLoader:
    """Primary format: the YAML document written by :meth:`StoreRepository.persist`."""

    path: Path
    origin: str = ORIGIN_PRIMARY

    def load(self) -> LoadedStore:
        raw = _read_mapping(self.path, yaml.safe_load)
        return LoadedStore(store=sanitize_store(raw), raw=raw, origin=self.origin)


@dataclass(slots=True)
class LegacyJsonStoreLoader:
    """Read-only fallback for the older JSON store; never written again."""

    path: Path
    origin: str = ORIGIN_LEGACY

    def load(self) -> LoadedStore:
        raw = _read_mapping(self.path, json.loads)
        return LoadedStore(store=sanitize_store(raw), raw=raw, origin=self.origin)


class StoreRepository:
    """Process-wide owner of the in-memory store and its durable copy."""

    def __init__(
        self,
        locator: StoreLocator | None = None,
        loaders: Sequence[StoreLoader] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.locator = locator or StoreLocator()
        self.loaders: list[StoreLoader] = list(
            loaders
            if loaders is not None
            else (
                YamlStoreLoader(self.locator.store_path()),
                LegacyJsonStoreLoader(self.locator.legacy_store_path()),
            )
        )
        self.logger = logger or structlog.get_logger("release_watcher.store")
        self._store: StoreData | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _load_first(self) -> LoadedStore | None:
        for loader in self.loaders:
            try:
                loaded = loader.load()
            except StoreLoadError as exc:
                self.logger.info("store_loader_failed", origin=loader.origin, error=str(exc))
                continue
            self.logger.info("store_loaded", origin=loaded.origin, sources=len(loaded.store.sources))
            return loaded
        return None

    def load(self) -> StoreData:
        """Load, migrate and cache the store; later calls return the cached aggregate."""

        with self._lock:
            if self._store is not None:
                return self._store

            loaded = self._load_first()
            if loaded is None:
                self.logger.info("store_defaults_created")
                loaded = LoadedStore(store=default_store(), raw={}, origin=ORIGIN_DEFAULTS)

            store = loaded.store
            migrated = migrate(store)
            self._store = store
            if loaded.origin != ORIGIN_PRIMARY or migrated or store.to_payload() != loaded.raw:
                self.persist()
            return store

    def snapshot(self) -> StoreData:
        if self._store is None:
            raise RuntimeError("Store is not loaded.")
        return self._store

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def persist(self) -> None:
        """Write the store to a temporary file and rename it over the canonical path."""

        store = self.snapshot()
        path = self.locator.store_path()
        tmp_path = path.with_name(f"{path.name}.tmp")
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                tmp_path.write_text(dump_store(store), encoding="utf-8")
                os.replace(tmp_path, path)
            except OSError:
                tmp_path.unlink(missing_ok=True)
                raise
        self.logger.debug("store_persisted", path=str(path), sources=len(store.sources))

    def update(self, mutator: Callable[[StoreData], None]) -> StoreData:
        store = self.load()
        mutator(store)
        self.persist()
        return store


__all__ = [
    "HOME_ENV_VAR",
    "LEGACY_STORE_FILENAME",
    "LegacyJsonStoreLoader",
    "LoadedStore",
    "STORE_FILENAME",
    "StoreLoader",
    "StoreLocator",
    "StoreRepository",
    "YamlStoreLoader",
    "dump_store",
]
