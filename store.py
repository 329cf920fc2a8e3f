"""
Notification state tracking backed by Redis, with marker-file fallback.

Scripts that raise alerts use this to remember which
(script, device class, state) notifications were already sent, so the
same alert isn't repeated on every run. Redis is shared between hosts
and expires states on its own; when it can't be reached the store falls
back to local marker files under ``/tmp``.

The composed operations pick a backend by probing Redis on every call
and never consult both. A marker written while Redis was down is
therefore invisible once Redis is back: ``check_notification_state``
reports "not notified" and the alert fires again. Callers that need
stricter behaviour should check the marker themselves.
"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from typing import Iterator, Optional, TextIO

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from config import StoreConfig
from state import marker_exists, marker_path, remove_marker, touch_marker

LOGGER = logging.getLogger(__name__)

# TTL reply for a key that exists but has no expiration.
NO_EXPIRY = -1

CONNECTION_WARNING = "Redis connection failed, falling back to flag files"


@dataclass(frozen=True)
class NotificationKey:
    script_name: str
    device_class: str
    state: str

    def redis_key(self, prefix: str) -> str:
        return f"{prefix}:{self.script_name}:{self.device_class}:{self.state}"


@dataclass(frozen=True)
class NotificationRecord:
    """
    One Redis entry as reported by ``list_states``.

    ``value`` is the Unix timestamp written when the state was set and
    ``ttl`` the remaining lifetime in seconds (-1 without expiration).
    """

    key: str
    value: Optional[str]
    ttl: int


class NotificationStateStore:
    def __init__(self, config: StoreConfig, client: Optional[redis.Redis] = None) -> None:
        self.config = config
        if client is None:
            client = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                socket_timeout=config.redis_timeout,
                socket_connect_timeout=config.redis_timeout,
                # Single attempt per command, no backoff.
                retry=Retry(NoBackoff(), 0),
                decode_responses=True,
            )
        self.client = client

    # =====================
    # HELPERS
    # =====================
    def _key(self, script_name: str, device_class: str, state: str) -> str:
        return NotificationKey(script_name, device_class, state).redis_key(self.config.key_prefix)

    def _marker(self, script_name: str, device_class: str, state: str) -> str:
        return marker_path(
            self.config.marker_dir,
            self.config.marker_prefix,
            script_name,
            device_class,
            state,
        )

    def _pattern(self, script_pattern: str) -> str:
        return f"{self.config.key_prefix}:{script_pattern}:*"

    def probe_connectivity(self) -> bool:
        """
        Ping Redis within the configured timeout. Never raises.
        """
        try:
            return bool(self.client.ping())
        except (redis.RedisError, OSError) as exc:
            LOGGER.debug("Redis ping to %s failed: %s", self.config.address, exc)
            return False

    # =====================
    # REDIS PRIMITIVES
    # =====================
    def set_state(
        self,
        script_name: str,
        device_class: str,
        state: str,
        ttl: Optional[int] = None,
    ) -> bool:
        ttl = self.config.default_ttl if ttl is None else ttl
        key = self._key(script_name, device_class, state)

        if not self.probe_connectivity():
            LOGGER.warning(CONNECTION_WARNING)
            return False

        try:
            self.client.setex(key, ttl, int(time.time()))
        except (redis.RedisError, OSError) as exc:
            LOGGER.warning("Failed to set Redis notification state: %s (%s)", key, exc)
            return False
        return True

    def check_state(self, script_name: str, device_class: str, state: str) -> bool:
        key = self._key(script_name, device_class, state)

        if not self.probe_connectivity():
            LOGGER.warning(CONNECTION_WARNING)
            return False

        try:
            return self.client.exists(key) == 1
        except (redis.RedisError, OSError) as exc:
            LOGGER.warning("Failed to check Redis notification state: %s (%s)", key, exc)
            return False

    def delete_state(self, script_name: str, device_class: str, state: str) -> bool:
        """
        Delete a state. Succeeds whether or not the key existed.
        """
        key = self._key(script_name, device_class, state)

        if not self.probe_connectivity():
            LOGGER.warning(CONNECTION_WARNING)
            return False

        try:
            self.client.delete(key)
        except (redis.RedisError, OSError) as exc:
            LOGGER.warning("Failed to delete Redis notification state: %s (%s)", key, exc)
            return False
        return True

    def list_states(self, script_pattern: str = "*") -> StateListing:
        """
        Lazily list every stored state for scripts matching ``script_pattern``
        (a Redis glob). Each iteration re-queries Redis.
        """
        return StateListing(self, self._pattern(script_pattern))

    def reconcile_missing_ttl(self, script_pattern: str = "*") -> int:
        """
        Give the default TTL to matching keys that have no expiration.

        Returns the number of keys updated; a second run returns 0.
        """
        if not self.probe_connectivity():
            LOGGER.warning("Redis connection failed")
            return 0

        count = 0
        try:
            for key in self.client.scan_iter(match=self._pattern(script_pattern)):
                if self.client.ttl(key) != NO_EXPIRY:
                    continue
                if self.client.expire(key, self.config.default_ttl):
                    count += 1
        except (redis.RedisError, OSError) as exc:
            LOGGER.warning("Reconciling Redis notification TTLs failed: %s", exc)

        if count:
            LOGGER.info("Added TTL to %d Redis keys that were missing expiration", count)
        return count

    # =====================
    # COMPOSED OPERATIONS
    # =====================
    def set_notification_state(
        self,
        script_name: str,
        device_class: str,
        state: str,
        ttl: Optional[int] = None,
    ) -> bool:
        # Redis first, marker file on any failure.
        if self.set_state(script_name, device_class, state, ttl):
            return True
        return touch_marker(self._marker(script_name, device_class, state))

    def check_notification_state(self, script_name: str, device_class: str, state: str) -> bool:
        if self.probe_connectivity():
            return self.check_state(script_name, device_class, state)
        return marker_exists(self._marker(script_name, device_class, state))

    def delete_notification_state(self, script_name: str, device_class: str, state: str) -> bool:
        if self.probe_connectivity():
            return self.delete_state(script_name, device_class, state)
        return remove_marker(self._marker(script_name, device_class, state))

    # =====================
    # DIAGNOSTICS
    # =====================
    def run_self_test(self, out: Optional[TextIO] = None) -> bool:
        """
        Run a set/check/delete cycle against whichever backend is up and
        print the outcome of each step. Returns True if every step passed.
        """
        out = sys.stdout if out is None else out

        def say(line: str) -> None:
            print(line, file=out)

        say("Testing Redis notification system...")
        say(f"Redis server: {self.config.address}")

        if self.probe_connectivity():
            say("✅ Redis connection successful")
            say("Testing notification state operations...")
            suffix = ""
            ttl: Optional[int] = 60
        else:
            say("❌ Redis connection failed - will use flag file fallback")
            say("Testing flag file fallback...")
            suffix = " (flag file)"
            ttl = None

        if not self.set_notification_state("test", "hdd", "paused", ttl):
            say(f"❌ Failed to set test notification state{suffix}")
            return False
        say(f"✅ Successfully set test notification state{suffix}")

        checked = self.check_notification_state("test", "hdd", "paused")
        if checked:
            say(f"✅ Successfully checked test notification state{suffix}")
        else:
            say(f"❌ Failed to check test notification state{suffix}")

        cleaned = self.delete_notification_state("test", "hdd", "paused")
        if cleaned:
            say(f"✅ Cleaned up test notification state{suffix}")
        else:
            say(f"❌ Failed to clean up test notification state{suffix}")

        return checked and cleaned


class StateListing:
    """
    Iterable of ``NotificationRecord`` for one key pattern.

    ``complete`` is True only after an iteration went through the whole
    scan; an unreachable server or an error mid-scan leaves it False.
    """

    def __init__(self, store: NotificationStateStore, pattern: str) -> None:
        self.store = store
        self.pattern = pattern
        self.complete = False

    def __iter__(self) -> Iterator[NotificationRecord]:
        self.complete = False
        client = self.store.client

        if not self.store.probe_connectivity():
            LOGGER.warning("Redis connection failed")
            return

        try:
            for key in client.scan_iter(match=self.pattern):
                value = client.get(key)
                ttl = client.ttl(key)
                yield NotificationRecord(key=key, value=value, ttl=int(ttl))
        except (redis.RedisError, OSError) as exc:
            LOGGER.warning("Listing Redis notification states failed: %s", exc)
            return
        self.complete = True
