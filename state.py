"""
Local marker files used when Redis is unreachable.

A marker carries no content and never expires; its existence is the
whole signal. Markers are a same-host, best-effort fallback.
"""

from __future__ import annotations

import logging
import os

LOGGER = logging.getLogger(__name__)


def marker_path(marker_dir: str, prefix: str, script_name: str, device_class: str, state: str) -> str:
    """
    Build the deterministic marker path for a notification triple.
    """
    filename = f"{prefix}-{script_name}-{device_class}-{state}-notified"
    return os.path.join(marker_dir, filename)


def touch_marker(path: str) -> bool:
    try:
        with open(path, "a", encoding="utf-8"):
            pass
        os.utime(path, None)
    except OSError as exc:
        LOGGER.warning("Failed to create notification flag file %s: %s", path, exc)
        return False
    return True


def marker_exists(path: str) -> bool:
    return os.path.isfile(path)


def remove_marker(path: str) -> bool:
    """
    Remove a marker. A marker that is already gone counts as removed.
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError as exc:
        LOGGER.warning("Failed to remove notification flag file %s: %s", path, exc)
        return False
    return True
