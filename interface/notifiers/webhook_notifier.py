"""
Webhook Notifier for Momentum.

Posts degraded-mode alerts to an HTTP webhook (Slack, Discord or a plain
JSON endpoint).
"""
from typing import Any, Dict, Optional

import httpx

from core.logger import get_logger
from interface.notifiers.base import BaseNotifier, Notification

logger = get_logger("notify.webhook")


class WebhookNotifier(BaseNotifier):
    """Send notifications via HTTP webhooks."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(config)
        self.webhook_url = self.config.get("webhook_url", "")
        self.webhook_type = self.config.get("type", "generic")  # generic, slack, discord
        self.timeout = float(self.config.get("timeout", 10.0))
        self._transport = transport

    def send(self, notification: Notification) -> bool:
        if not self.is_available():
            return False

        payload = self._build_payload(notification)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery failed: %s", e)
            return False

        if response.status_code >= 400:
            logger.warning("Webhook rejected notification: HTTP %d", response.status_code)
            return False
        return True

    def _build_payload(self, notification: Notification) -> Dict[str, Any]:
        if self.webhook_type == "slack":
            return {"text": f"*{notification.title}*\n{notification.message}"}
        if self.webhook_type == "discord":
            return {"content": f"**{notification.title}**\n{notification.message}"}
        return {
            "title": notification.title,
            "message": notification.message,
            "priority": notification.priority.value,
            "timestamp": notification.created_at,
        }

    def get_name(self) -> str:
        return "webhook"

    def is_available(self) -> bool:
        return bool(self.enabled and self.webhook_url)
