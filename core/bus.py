"""
core/bus.py
In-process event bus shared by the collaborators of one dashctl invocation.

The bus is built once per process (see cli.runner.Runtime.default) and passed
explicitly to whoever needs it; there is no module-level instance.

Events:
  - sqlstore.initialized       store opened and schema bootstrapped
  - user.password_changed      admin password reset
  - datasource.secrets_moved   plaintext secrets moved to secure_json_data

Usage:
    bus = Bus()
    bus.add_event_listener("sqlstore.initialized", on_ready)
    bus.publish("sqlstore.initialized", path="/var/lib/dashd/dashd.db")
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Bus:
    """Synchronous publish/subscribe dispatcher."""

    def __init__(self):
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def add_event_listener(self, event: str, handler: Callable[..., Any]):
        """Register a handler called with the event payload as keyword args."""
        self._listeners[event].append(handler)

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return list(self._listeners.get(event, []))

    def publish(self, event: str, **payload) -> int:
        """Call every handler of *event* in registration order.

        Errors in one handler don't prevent others from running.
        Returns the number of handlers that completed.
        """
        handlers = self._listeners.get(event, [])
        delivered = 0
        for handler in handlers:
            try:
                handler(**payload)
                delivered += 1
            except Exception as e:
                logger.warning("[bus] %s handler error: %s", event, e)
        logger.debug("[bus] %s delivered to %d/%d handlers",
                     event, delivered, len(handlers))
        return delivered
