"""Persistent cache of compiled notes and their local/remote content hashes.

Each vault path has one entry holding two independent sides: what we last
compiled locally and what we last saw on the remote. Every write updates
one side and keeps the other, and every hash is recomputed from the
payload it belongs to, so a hash can never outlive its content.
"""

import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Set

import diskcache

from obsidian_syncer.core.models import CompiledDocument
from obsidian_syncer.utils import blob_hash

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = "1"
KEY_PREFIX = "file:"


class CacheBackend(Protocol):
    """Key/value store the cache persists entries to."""

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...

    def close(self) -> None: ...


class DiskCacheBackend:
    """Adapter for diskcache.Cache to match CacheBackend protocol."""

    def __init__(self, directory: Path, **kwargs: Any) -> None:
        self._cache = diskcache.Cache(str(directory), **kwargs)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._cache.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._cache.set(key, value)

    def delete(self, key: str) -> None:
        with contextlib.suppress(KeyError):
            del self._cache[key]

    def keys(self) -> Iterator[str]:
        return iter(list(self._cache.iterkeys()))

    def close(self) -> None:
        self._cache.close()


class MemoryCacheBackend:
    """In-process backend, for one-off runs and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._data.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def close(self) -> None:
        pass


@dataclass
class CacheEntry:
    """Cached state of one vault path."""
    version: str
    time: float
    local_hash: Optional[str] = None
    remote_hash: Optional[str] = None
    local_data: Optional[CompiledDocument] = None
    remote_data: Optional[CompiledDocument] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'time': self.time,
            'local_hash': self.local_hash,
            'remote_hash': self.remote_hash,
            'local_data': self.local_data.to_dict() if self.local_data else None,
            'remote_data': self.remote_data.to_dict() if self.remote_data else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Load an entry, rederiving both hashes from their payloads."""
        local_data = data.get('local_data')
        remote_data = data.get('remote_data')
        local = CompiledDocument.from_dict(local_data) if local_data else None
        remote = CompiledDocument.from_dict(remote_data) if remote_data else None
        return cls(
            version=data.get('version', ''),
            time=data.get('time', 0),
            local_hash=local.hash if local else None,
            remote_hash=remote.hash if remote else None,
            local_data=local,
            remote_data=remote,
        )


class CompiledFileCache:
    """Compiled-note cache keyed by vault path.

    An entry written under a different schema version is treated as
    outdated, never as an error.
    """

    def __init__(self, backend: CacheBackend, version: str = CACHE_SCHEMA_VERSION):
        self.backend = backend
        self.version = version

    @classmethod
    def open(cls, directory: Path, version: str = CACHE_SCHEMA_VERSION) -> "CompiledFileCache":
        """Open (or create) an on-disk cache in directory."""
        return cls(DiskCacheBackend(Path(directory)), version=version)

    def close(self) -> None:
        self.backend.close()

    @staticmethod
    def _key(path: str) -> str:
        return KEY_PREFIX + path

    def load_entry(self, path: str) -> Optional[CacheEntry]:
        data = self.backend.get(self._key(path))
        if data is None:
            return None
        try:
            return CacheEntry.from_dict(data)
        except (KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry for %s: %s", path, e)
            self.backend.delete(self._key(path))
            return None

    def _store_entry(self, path: str, entry: CacheEntry) -> None:
        self.backend.set(self._key(path), entry.to_dict())

    def _current_or_new(self, path: str, time: float) -> CacheEntry:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return CacheEntry(version=self.version, time=time)
        entry.time = time
        return entry

    def is_local_outdated(self, path: str, mtime: float) -> bool:
        """True if path must be recompiled.

        Args:
            path: Vault path
            mtime: Current modification time of the note in milliseconds
        """
        entry = self.load_entry(path)
        if entry is None or entry.local_data is None:
            return True
        return entry.time < mtime or entry.version != self.version

    def is_remote_outdated(self, path: str, mtime: float) -> bool:
        entry = self.load_entry(path)
        if entry is None or entry.remote_data is None:
            return True
        return entry.time < mtime or entry.version != self.version

    def are_local_and_remote_identical(self, path: str) -> bool:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return False
        if entry.local_data is None or entry.remote_data is None:
            return False
        return entry.local_hash == entry.remote_hash

    def load_local(self, path: str) -> Optional[CompiledDocument]:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return None
        return entry.local_data

    def load_remote(self, path: str) -> Optional[CompiledDocument]:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return None
        return entry.remote_data

    def load_local_hash(self, path: str) -> Optional[str]:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return None
        return entry.local_hash

    def load_remote_hash(self, path: str) -> Optional[str]:
        entry = self.load_entry(path)
        if entry is None or entry.version != self.version:
            return None
        return entry.remote_hash

    def store_local(self, path: str, mtime: float, compiled: CompiledDocument) -> str:
        """Record a fresh local compile, keeping the remote side.

        Returns:
            The blob hash of the compiled text
        """
        entry = self._current_or_new(path, mtime)
        entry.local_data = compiled
        entry.local_hash = blob_hash(compiled.text)
        self._store_entry(path, entry)
        return entry.local_hash

    def store_remote(self, path: str, mtime: float, compiled: CompiledDocument) -> str:
        """Record what the remote holds for path, keeping the local side.

        Returns:
            The blob hash of the remote text
        """
        entry = self._current_or_new(path, mtime)
        entry.remote_data = compiled
        entry.remote_hash = blob_hash(compiled.text)
        self._store_entry(path, entry)
        return entry.remote_hash

    def get_time(self, path: str) -> Optional[float]:
        entry = self.load_entry(path)
        return entry.time if entry else None

    def drop(self, path: str) -> None:
        self.backend.delete(self._key(path))

    def drop_all(self) -> None:
        for path in self.all_paths():
            self.drop(path)

    def all_paths(self) -> List[str]:
        return sorted(
            key[len(KEY_PREFIX):] for key in self.backend.keys() if key.startswith(KEY_PREFIX)
        )

    def synchronize(self, existing_paths: List[str]) -> Set[str]:
        """Remove entries for paths that no longer exist in the vault.

        Args:
            existing_paths: Every path currently in the vault

        Returns:
            The set of removed paths
        """
        existing = set(existing_paths)
        removed = {path for path in self.all_paths() if path not in existing}
        for path in removed:
            self.drop(path)
        if removed:
            logger.info("Dropped %d stale cache entries", len(removed))
        return removed

    def export_json(self) -> str:
        """Serialize every entry, for backing the cache up or moving it."""
        entries = {}
        for path in self.all_paths():
            data = self.backend.get(self._key(path))
            if data is not None:
                entries[path] = data
        return json.dumps(entries, sort_keys=True)

    def import_json(self, payload: str) -> int:
        """Load entries written by export_json, replacing existing ones.

        Entries from another schema version are skipped.

        Returns:
            Number of entries imported
        """
        entries = json.loads(payload)
        imported = 0
        for path, data in entries.items():
            if data.get('version') != self.version:
                continue
            self.backend.set(self._key(path), data)
            imported += 1
        return imported
