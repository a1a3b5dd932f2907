from __future__ import annotations
from typing import (
    Awaitable,
    Callable,
    Dict,
    List,
    Type,
    TypeVar,
    Optional,
)
import asyncio
import logging
from collections import defaultdict

from typing_extensions import TypeAlias

from Kontour.logger import Logger


class Event:
    """Base class for all events. Keyword arguments become attributes."""

    def __init__(self, **kwargs: object) -> None:
        for key, value in kwargs.items():
            setattr(self, key, value)

    def to_dict(self) -> dict[str, object]:
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"{self.__class__.__name__}({fields})"


E = TypeVar("E", bound=Event)
# An async function that takes an event and returns nothing
EventHandler: TypeAlias = Callable[[E], Awaitable[None]]


class EventBus:
    """
    An asynchronous event bus for dispatching events to registered handlers.
    """

    def __init__(self, logger: Optional[Logger] = None):
        """
        Initializes the EventBus.
        :param logger: An optional logger instance.
        """
        self._handlers: Dict[Type[Event], List[EventHandler]] = defaultdict(list)
        self.logger = logger or logging.getLogger(__name__)

    def subscribe(self, event_type: Type[E], handler: EventHandler[E]) -> None:
        """
        Subscribes a handler to a specific event type.
        :param event_type: The class of the event to subscribe to.
        :param handler: The asynchronous function called when the event is published.
        """
        self.logger.debug(
            "Subscribing handler %s to event %s",
            getattr(handler, "__name__", repr(handler)),
            event_type.__name__,
        )
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[E], handler: EventHandler[E]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: Event) -> None:
        """
        Publishes an event, calling all subscribed handlers for that event type.
        Handlers are called concurrently.
        """
        event_type = type(event)

        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            self.logger.debug(
                "[EVENT_BUS] No handlers registered for event type %s",
                event_type.__name__,
            )
            return

        await asyncio.gather(*(handler(event) for handler in handlers))
        self.logger.debug(
            "[EVENT_BUS] Finished processing all handlers for event %s",
            event_type.__name__,
        )
