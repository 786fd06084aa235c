"""Event hook for pushing case lifecycle updates to interested parties.

Handlers are plain async callables registered with :func:`subscribe`. The
WebSocket manager registers itself at startup; tests and embedding callers
can register their own.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from triagedesk.common.logging import get_logger

logger = get_logger("events")

EventHandler = Callable[[str, dict[str, Any]], Awaitable[None]]

_handlers: list[EventHandler] = []


def subscribe(handler: EventHandler) -> None:
    if handler not in _handlers:
        _handlers.append(handler)


def unsubscribe(handler: EventHandler) -> None:
    if handler in _handlers:
        _handlers.remove(handler)


def clear_handlers() -> None:
    _handlers.clear()


async def emit(event: str, data: dict[str, Any]) -> None:
    """Deliver an event to every subscriber.

    A failing subscriber never breaks the caller; the failure is logged and
    the remaining subscribers still receive the event.
    """
    payload = {**data, "emitted_at": datetime.now(timezone.utc).isoformat()}
    for handler in list(_handlers):
        try:
            await handler(event, payload)
        except Exception as e:
            logger.warning("Event handler failed for %s: %s", event, e)
