"""Response caches for expensive read endpoints.

Cached values are fully serialized response bodies (bytes) so a hit can be
returned verbatim without touching the database.

Implementations:
- FileResponseCache: one JSON file per key in a directory (default backend)
- MemoryResponseCache: process-local dict
- NullResponseCache: never caches

All of them coalesce concurrent misses for the same key: the first caller
computes while the others wait on a per-key lock and then read its result.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

ComputeFn = Callable[[], bytes]


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def get_or_compute(self, key: str, compute_fn: ComputeFn) -> bytes:
        ...

    def invalidate(self, key: str) -> bool:
        ...

    def clear(self) -> int:
        ...


@dataclass
class _KeyLocks:
    """Lazily created lock per cache key."""

    _locks: Dict[str, threading.Lock] = field(default_factory=dict)
    _guard: threading.Lock = field(default_factory=threading.Lock)

    def for_key(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def known(self) -> list[str]:
        with self._guard:
            return list(self._locks)


@dataclass
class FileResponseCache:
    """Stores each key as `<directory>/<key>.json`.

    Writes land in a temp file in the same directory and are moved into place
    with os.replace, so readers (and other processes) never see a partial file.
    There is no expiry: entries live until `invalidate` or `clear`.
    """

    directory: Path
    name: str = "file"

    _key_locks: _KeyLocks = field(default_factory=_KeyLocks, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.directory = Path(self.directory)
        self._logger = logging.getLogger(f"cache.{self.name}")

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self._logger.info("Wrote cache file %s (%d bytes)", path, len(value))

    def get_or_compute(self, key: str, compute_fn: ComputeFn) -> bytes:
        cached = self.get(key)
        if cached is not None:
            self._logger.info("Serving %s from cache file %s", key, self.path_for(key))
            return cached

        with self._key_locks.for_key(key):
            # Another request may have filled it while we waited.
            cached = self.get(key)
            if cached is not None:
                self._logger.debug("Cache filled while waiting", extra={"key": key})
                return cached
            self._logger.debug("Cache miss, computing", extra={"key": key})
            value = compute_fn()
            self.set(key, value)
            return value

    def invalidate(self, key: str) -> bool:
        with self._key_locks.for_key(key):
            path = self.path_for(key)
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        self._logger.info("Invalidated cache file %s", path)
        return True

    def clear(self) -> int:
        count = 0
        for key in self.keys():
            if self.invalidate(key):
                count += 1
        return count

    def keys(self) -> list[str]:
        # Only keys this process has touched; the directory may hold unrelated JSON.
        return [k for k in self._key_locks.known() if self.path_for(k).exists()]


@dataclass
class MemoryResponseCache:
    name: str = "memory"

    _store: Dict[str, bytes] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _key_locks: _KeyLocks = field(default_factory=_KeyLocks, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(f"cache.{self.name}")

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._store[key] = value

    def get_or_compute(self, key: str, compute_fn: ComputeFn) -> bytes:
        cached = self.get(key)
        if cached is not None:
            self._logger.debug("Cache hit", extra={"key": key})
            return cached
        with self._key_locks.for_key(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            value = compute_fn()
            self.set(key, value)
            return value

    def invalidate(self, key: str) -> bool:
        # Waits out an in-flight compute so its result cannot outlive the invalidation.
        with self._key_locks.for_key(key), self._lock:
            if key in self._store:
                del self._store[key]
                self._logger.debug("Cache entry invalidated", extra={"key": key})
                return True
            return False

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count


@dataclass
class NullResponseCache:
    name: str = "null"

    def get(self, key: str) -> Optional[bytes]:
        return None

    def get_or_compute(self, key: str, compute_fn: ComputeFn) -> bytes:
        return compute_fn()

    def invalidate(self, key: str) -> bool:
        return False

    def clear(self) -> int:
        return 0


def cache_from_config(config: dict) -> ResponseCache:
    backend = (config.get("TRAVELERS_CACHE_BACKEND") or "file").strip().lower()
    if backend == "none":
        return NullResponseCache(name="travelers")
    if backend == "memory":
        return MemoryResponseCache(name="travelers")
    if backend != "file":
        raise ValueError(f"Unknown TRAVELERS_CACHE_BACKEND: {backend}")
    directory = config.get("TRAVELERS_CACHE_DIR") or os.getcwd()
    return FileResponseCache(directory=Path(directory), name="travelers")
