"""Notification routing for build results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

import requests
from loguru import logger


TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

ChannelCallback = Callable[[str, str], None]


class NotificationSink(Protocol):
    def send(self, message: str, level: str = "info") -> None:
        """Deliver ``message``; failures must not propagate."""


@dataclass(slots=True)
class NotificationChannel:
    name: str
    callback: ChannelCallback
    level: str = "info"


class NotificationManager:
    """Dispatch build notifications to registered channels, filtered by level."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.channels: List[NotificationChannel] = []
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Channel registration
    # ------------------------------------------------------------------
    def register_channel(self, name: str, callback: ChannelCallback, level: str = "info") -> None:
        self.channels.append(NotificationChannel(name, callback, level))
        logger.debug("Registered notification channel {}", name)

    def register_telegram(self, bot_token: str, chat_id: str, level: str = "info") -> None:
        url = TELEGRAM_API_URL.format(token=bot_token)

        def send_telegram(event_level: str, message: str) -> None:
            payload = {"chat_id": chat_id, "text": message}
            response = requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()

        self.register_channel("telegram", send_telegram, level=level)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def send(self, message: str, level: str = "info") -> None:
        for channel in self.channels:
            if self._level_priority(level) < self._level_priority(channel.level):
                continue
            try:
                channel.callback(level, message)
            except requests.RequestException as exc:
                logger.warning("Notification channel {} failed: {}", channel.name, exc)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Notification channel {} raised: {}", channel.name, exc)

    @staticmethod
    def _level_priority(level: str) -> int:
        mapping = {"info": 1, "success": 1, "warning": 2, "error": 3}
        return mapping.get(level.lower(), 1)


def create_notification_manager(bot_token: str, chat_id: str) -> Optional[NotificationManager]:
    """Build a manager for the configured chat bot, or ``None`` when unset."""

    if not bot_token or not chat_id:
        logger.debug("Telegram notification not configured")
        return None
    manager = NotificationManager()
    manager.register_telegram(bot_token, chat_id)
    return manager


__all__ = [
    "NotificationChannel",
    "NotificationManager",
    "NotificationSink",
    "create_notification_manager",
]
