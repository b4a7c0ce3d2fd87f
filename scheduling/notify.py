# scheduling/notify.py
from __future__ import annotations

import logging
from typing import Optional

import requests

log = logging.getLogger(__name__)


class LogNotifier:
    def send(self, message: str) -> None:
        log.info("notify: %s", message)


class DiscordWebhookNotifier:
    """
    Posts refresh progress to a Discord webhook. Delivery is best effort;
    failures are logged and never raised into the refresh loop.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def send(self, message: str) -> None:
        try:
            resp = requests.post(self.webhook_url, json={"content": message}, timeout=self.timeout)
            if resp.status_code >= 400:
                log.error("Discord webhook answered %s", resp.status_code)
        except requests.RequestException as e:
            log.error("Error sending Discord message: %s", e)


def make_notifier(webhook_url: Optional[str]):
    return DiscordWebhookNotifier(webhook_url) if webhook_url else LogNotifier()
