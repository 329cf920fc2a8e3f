"""
Alert delivery utilities (currently Telegram only) and the deduplicated
send pattern built on top of the notification store.
"""

from __future__ import annotations

import logging
from typing import Final, Optional

import requests

from config import AlertConfig
from store import NotificationStateStore

LOGGER = logging.getLogger(__name__)


def send_alert(message: str, config: Optional[AlertConfig] = None) -> bool:
    """
    Send a text message to the configured Telegram chat.

    Returns False when credentials are missing or delivery fails.
    """
    config = AlertConfig.from_env() if config is None else config
    if not config.configured:
        LOGGER.warning("Telegram credentials not configured; skipping alert:\n%s", message)
        return False

    url: Final[str] = f"https://api.telegram.org/bot{config.bot_token}/sendMessage"
    payload = {
        "chat_id": config.chat_id,
        "text": message,
    }

    try:
        response = requests.post(url, data=payload, timeout=10)
        response.raise_for_status()
    except requests.RequestException as exc:
        details = ""
        resp = getattr(exc, "response", None)
        if resp is not None:
            # Telegram typically returns JSON with a helpful "description"
            details = f" status={resp.status_code} body={resp.text!r}"
        LOGGER.error("Failed to send Telegram alert: %s%s", exc, details)
        return False
    return True


def notify_once(
    store: NotificationStateStore,
    script_name: str,
    device_class: str,
    state: str,
    message: str,
    ttl: Optional[int] = None,
    config: Optional[AlertConfig] = None,
) -> bool:
    """
    Send ``message`` unless this (script, device class, state) was already
    notified. The state is only recorded after a successful delivery, so a
    failed send is retried on the next run.

    Returns True if a message went out.
    """
    if store.check_notification_state(script_name, device_class, state):
        LOGGER.info("Already notified for %s/%s/%s; skipping", script_name, device_class, state)
        return False

    if not send_alert(message, config):
        return False

    if not store.set_notification_state(script_name, device_class, state, ttl):
        LOGGER.warning(
            "Alert sent but state %s/%s/%s could not be recorded; it may repeat",
            script_name,
            device_class,
            state,
        )
    return True


def clear_notification(
    store: NotificationStateStore,
    script_name: str,
    device_class: str,
    state: str,
) -> bool:
    """
    Forget a notification once its condition has cleared, so the next
    occurrence alerts again.
    """
    return store.delete_notification_state(script_name, device_class, state)
