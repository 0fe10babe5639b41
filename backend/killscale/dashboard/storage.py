"""
Client-side key/value stores and the TTL envelope the dashboard caches live in.

MemoryStore plays the role of per-tab session storage (UTM status), JsonFileStore
the persistent local store (AI insights). Entries are JSON envelopes carrying a
millisecond timestamp so both caches share one expiry rule.
"""
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class KeyValueStore:
    """Minimal string store interface."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Process-lifetime store, cleared when the dashboard session ends."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Persistent store backed by a single JSON file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class TTLCache:
    """
    Timestamped JSON envelopes on top of a KeyValueStore.

    Reads never raise: a missing, corrupt or expired entry is a miss, and
    expired entries are removed as they are read. Writes that fail (full disk,
    unserializable payload) are logged and dropped.

    Args:
        store: Backing store
        ttl_seconds: Entry lifetime
        payload_key: Envelope field holding the cached value
        clock: Returns the current time in milliseconds
        expire_at_ttl: Treat an entry exactly ttl old as expired
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float,
        payload_key: str = "data",
        clock: Callable[[], int] = now_ms,
        expire_at_ttl: bool = False,
    ):
        self.store = store
        self.ttl_ms = int(ttl_seconds * 1000)
        self.payload_key = payload_key
        self.clock = clock
        self.expire_at_ttl = expire_at_ttl

    def is_expired(self, timestamp: int) -> bool:
        age = self.clock() - timestamp
        if self.expire_at_ttl:
            return age >= self.ttl_ms
        return age > self.ttl_ms

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.store.get(key)
            if raw is None:
                return None
            envelope = json.loads(raw)
            timestamp = int(envelope["timestamp"])
            if self.is_expired(timestamp):
                self.store.remove(key)
                return None
            return envelope[self.payload_key]
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.debug(f"Ignoring unreadable cache entry {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        envelope = {self.payload_key: value, "timestamp": self.clock()}
        try:
            self.store.set(key, json.dumps(envelope))
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write cache entry {key}: {e}")

    def remove(self, key: str) -> None:
        try:
            self.store.remove(key)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not remove cache entry {key}: {e}")
