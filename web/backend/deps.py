"""
Process-wide SessionController for the HTTP layer.

Momentum is single-user: one controller lives for the life of the process.
Tests call reset_controller() to start from a clean session.
"""
import os
import threading
from typing import List, Optional

from core.session_controller import SessionController
from interface.notifiers.base import BaseNotifier, LogNotifier
from interface.notifiers.webhook_notifier import WebhookNotifier

_controller: Optional[SessionController] = None
_controller_lock = threading.Lock()


def build_notifiers() -> List[BaseNotifier]:
    """Log notifier always; a webhook too when MOMENTUM_WEBHOOK_URL is set."""
    notifiers: List[BaseNotifier] = [LogNotifier()]
    webhook_url = os.getenv("MOMENTUM_WEBHOOK_URL", "").strip()
    if webhook_url:
        notifiers.append(WebhookNotifier({
            "webhook_url": webhook_url,
            "type": os.getenv("MOMENTUM_WEBHOOK_TYPE", "generic"),
        }))
    return notifiers


def get_controller() -> SessionController:
    global _controller
    with _controller_lock:
        if _controller is None:
            _controller = SessionController(notifiers=build_notifiers())
        return _controller


def reset_controller(controller: Optional[SessionController] = None) -> None:
    """Drop the current session; optionally install a prepared controller."""
    global _controller
    with _controller_lock:
        _controller = controller
