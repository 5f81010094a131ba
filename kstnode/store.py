"""
Persistent key/value store used for node state

Holds three kinds of values: plain strings (work, mining-enabled, motd) and
one capped list (work-over-time) with the newest entry at index 0.

Backends:
- MemoryStore: process-local, for tests and throwaway nodes
- JsonFileStore: a single JSON file on disk, rewritten on every change
- RedisStore: a Redis server, using a MULTI pipeline for push-and-trim
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Any, List, Optional
from urllib.parse import urlparse

import redis

from . import config

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A read or write against the backing store failed."""

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None,
                 message: Optional[str] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        message = message or f"Store {operation} failed for '{key}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class KeyValueStore:
    """
    Store contract.

    Values are always strings. List ranges are inclusive on both ends, with
    negative indexes counting from the end, as in Redis.
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: Any):
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str):
        raise NotImplementedError

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        raise NotImplementedError

    def push_capped(self, key: str, value: Any, length: int):
        """Push value onto the front of a list and keep the first `length` entries."""
        raise NotImplementedError

    def close(self):
        pass


def _inclusive_slice(items: List[str], start: int, stop: int) -> List[str]:
    if stop == -1:
        return items[start:]
    return items[start:stop + 1]


class MemoryStore(KeyValueStore):
    """In-process store. Safe to share between threads."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._data.get(key)
        if isinstance(value, list):
            raise StoreError("get", key, TypeError("value is a list"))
        return value

    def set(self, key: str, value: Any):
        with self._lock:
            data = dict(self._data)
            data[key] = str(value)
            self._commit(data)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def delete(self, key: str):
        with self._lock:
            if key in self._data:
                data = dict(self._data)
                del data[key]
                self._commit(data)

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        with self._lock:
            items = self._data.get(key, [])
            if not isinstance(items, list):
                raise StoreError("lrange", key, TypeError("value is not a list"))
            return _inclusive_slice(list(items), start, stop)

    def push_capped(self, key: str, value: Any, length: int):
        with self._lock:
            items = self._data.get(key, [])
            if not isinstance(items, list):
                raise StoreError("push", key, TypeError("value is not a list"))
            data = dict(self._data)
            data[key] = [str(value)] + items[:length - 1]
            self._commit(data)

    def _commit(self, data: Dict[str, Any]):
        """Replace the stored data. Called with the lock held."""
        self._save(data)
        self._data = data

    def _save(self, data: Dict[str, Any]):
        """Persist data before it becomes visible. Raises StoreError on failure."""


class JsonFileStore(MemoryStore):
    """
    Store persisted to a JSON file.

    The file is replaced atomically on each write, and the new data only
    becomes visible once the file is in place, so a failed write leaves
    both the file and the readable values unchanged.
    """

    def __init__(self, filepath: str):
        self.filepath = Path(os.path.expanduser(filepath))
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        if not self.filepath.exists():
            return {}
        try:
            with open(self.filepath, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError("load", str(self.filepath), e) from e
        if not isinstance(data, dict):
            raise StoreError("load", str(self.filepath), ValueError("expected a JSON object"))
        return data

    def _save(self, data: Dict[str, Any]):
        tmp_path = self.filepath.with_suffix(self.filepath.suffix + '.tmp')
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.filepath)
        except OSError as e:
            raise StoreError("save", str(self.filepath), e) from e


class RedisStore(KeyValueStore):
    """Store backed by a Redis server."""

    def __init__(self, url: str = "redis://localhost:6379/0",
                 client: Optional[redis.Redis] = None):
        self.url = url
        self._client = client or redis.from_url(url, decode_responses=True)

    @property
    def client(self) -> redis.Redis:
        return self._client

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise StoreError("get", key, e) from e

    def set(self, key: str, value: Any):
        try:
            self._client.set(key, str(value))
        except redis.RedisError as e:
            raise StoreError("set", key, e) from e

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(key))
        except redis.RedisError as e:
            raise StoreError("exists", key, e) from e

    def delete(self, key: str):
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise StoreError("delete", key, e) from e

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        try:
            return list(self._client.lrange(key, start, stop))
        except redis.RedisError as e:
            raise StoreError("lrange", key, e) from e

    def push_capped(self, key: str, value: Any, length: int):
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.lpush(key, str(value))
            pipe.ltrim(key, 0, length - 1)
            pipe.execute()
        except redis.RedisError as e:
            raise StoreError("push", key, e) from e

    def close(self):
        self._client.close()


def open_store(url: Optional[str] = None) -> KeyValueStore:
    """
    Open a store from a URL.

    Supported schemes:
        memory://               MemoryStore
        file:///path/state.json JsonFileStore
        redis://host:port/db    RedisStore (also rediss:// and unix://)
    """
    url = url or config.DEFAULT_STORE_URL
    scheme = urlparse(url).scheme

    if scheme == "memory":
        return MemoryStore()
    if scheme == "file":
        parsed = urlparse(url)
        path = parsed.netloc + parsed.path
        if not path:
            raise ValueError(f"File store URL has no path: {url}")
        return JsonFileStore(path)
    if scheme in ("redis", "rediss", "unix"):
        logger.debug(f"Connecting to Redis at {url}")
        return RedisStore(url)

    raise ValueError(f"Unsupported store URL: {url}")
