from __future__ import annotations

import fnmatch
import time
from typing import Dict, Optional

import pytest
import redis

from config import StoreConfig
from store import NotificationStateStore


class FakeRedis:
    """
    Minimal in-memory stand-in for the redis-py commands the store uses.
    """

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.expires_at: Dict[str, float] = {}
        self.up = True
        self.fail_writes = False
        self.fail_reads = False

    def _check(self) -> None:
        if not self.up:
            raise redis.ConnectionError("Connection refused")

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and time.time() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def ping(self) -> bool:
        self._check()
        return True

    def set(self, key: str, value) -> bool:
        self._check()
        self.data[key] = str(value)
        self.expires_at.pop(key, None)
        return True

    def setex(self, key: str, ttl: int, value) -> bool:
        self._check()
        if self.fail_writes:
            raise redis.ResponseError("READONLY You can't write against a read only replica.")
        if ttl <= 0:
            raise redis.ResponseError("invalid expire time in 'setex' command")
        self.data[key] = str(value)
        self.expires_at[key] = time.time() + ttl
        return True

    def get(self, key: str) -> Optional[str]:
        self._check()
        if self.fail_reads:
            raise redis.ConnectionError("Connection reset by peer")
        self._purge(key)
        return self.data.get(key)

    def exists(self, key: str) -> int:
        self._check()
        self._purge(key)
        return 1 if key in self.data else 0

    def delete(self, key: str) -> int:
        self._check()
        self._purge(key)
        self.expires_at.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    def ttl(self, key: str) -> int:
        self._check()
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expires_at:
            return -1
        return max(int(self.expires_at[key] - time.time() + 0.5), 0)

    def expire(self, key: str, ttl: int) -> bool:
        self._check()
        self._purge(key)
        if key not in self.data:
            return False
        self.expires_at[key] = time.time() + ttl
        return True

    def scan_iter(self, match: str = "*"):
        self._check()
        for key in list(self.data):
            self._purge(key)
            if key in self.data and fnmatch.fnmatchcase(key, match):
                yield key


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def config(tmp_path) -> StoreConfig:
    return StoreConfig(redis_host="redis.test", marker_dir=str(tmp_path))


@pytest.fixture
def store(config, fake_redis) -> NotificationStateStore:
    return NotificationStateStore(config, client=fake_redis)
