"""Notifications about got commands and remote operations.

Every event names the got operation it concerns. Hosts subscribe to one
kind of event, or to all of them with ``subscribe_all``.
"""

from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()


class GotEvent(StrEnum):
    COMMAND_FAILED = "command.failed"
    REMOTE_STARTED = "remote.started"
    REMOTE_FINISHED = "remote.finished"
    REMOTE_CANCELLED = "remote.cancelled"


COMMAND_FAILED = GotEvent.COMMAND_FAILED
REMOTE_STARTED = GotEvent.REMOTE_STARTED
REMOTE_FINISHED = GotEvent.REMOTE_FINISHED
REMOTE_CANCELLED = GotEvent.REMOTE_CANCELLED


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: GotEvent
    operation: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[GotEvent, list[EventHandler]] = {}
        self._catch_all: list[EventHandler] = []

    def subscribe(self, event_name: GotEvent, handler: EventHandler) -> None:
        self._handlers.setdefault(GotEvent(event_name), []).append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        """Receive every event, after the handlers subscribed to its name."""
        self._catch_all.append(handler)

    def unsubscribe(self, event_name: GotEvent, handler: EventHandler) -> None:
        handlers = self._handlers.get(GotEvent(event_name), [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: Event) -> None:
        for handler in [*self._handlers.get(event.name, []), *self._catch_all]:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event_handler_error",
                    event_name=str(event.name),
                    operation=event.operation,
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )


async def log_event(event: Event) -> None:
    """Record got activity in the structured log."""
    logger.debug(
        "got_event",
        event_name=str(event.name),
        operation=event.operation,
        **{k: v for k, v in event.data.items() if k not in ("output", "operation")},
    )
