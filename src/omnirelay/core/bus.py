"""Event bus for in-process notifications.

Events are defined with a type string and a Pydantic properties model::

    StatusChanged = BusEvent.define("connection.status.changed", StatusChangedProps)

    unsubscribe = bus.subscribe(StatusChanged, on_status_changed)
    await bus.publish(StatusChanged, StatusChangedProps(connected=True))
    unsubscribe()

Each client owns one ``Bus``; there is no process-wide instance.
"""

import traceback
from typing import Any, Awaitable, Callable, Dict, Generic, List, TypeVar, Union

from pydantic import BaseModel

from ..util.log import Log

T = TypeVar('T', bound=BaseModel)

log = Log.create({"service": "bus"})


class BusEvent(Generic[T]):
    """Event definition with type and properties schema."""

    def __init__(self, event_type: str, properties_type: type[T]):
        self.type = event_type
        self.properties_type = properties_type

    @staticmethod
    def define(event_type: str, properties_type: type[T]) -> 'BusEvent[T]':
        """Define and register a new event type."""
        event = BusEvent(event_type, properties_type)
        _registry[event_type] = event
        return event


# Registered event definitions, for introspection
_registry: Dict[str, BusEvent] = {}


def registered_events() -> Dict[str, BusEvent]:
    return dict(_registry)


class EventPayload(BaseModel):
    """Payload delivered to subscribers."""
    type: str
    properties: Dict[str, Any]


SubscriptionCallback = Callable[[EventPayload], Union[None, Awaitable[None]]]


class Bus:
    """Publish/subscribe hub. Callback failures are logged, never propagated."""

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[SubscriptionCallback]] = {}

    async def publish(self, event: BusEvent[T], properties: T | Dict[str, Any]) -> None:
        if not isinstance(properties, event.properties_type):
            if isinstance(properties, dict):
                properties = event.properties_type(**properties)
            else:
                raise TypeError(
                    f"Properties must be instance of {event.properties_type.__name__}"
                )

        payload = EventPayload(type=event.type, properties=properties.model_dump(mode="json"))

        callbacks: List[SubscriptionCallback] = []
        for key in (event.type, "*"):
            callbacks.extend(self._subscriptions.get(key, []))

        for callback in callbacks:
            try:
                result = callback(payload)
                if hasattr(result, '__await__'):
                    await result
            except Exception as e:
                log.error("subscription callback failed", {
                    "error": str(e),
                    "type": event.type,
                    "traceback": traceback.format_exc(),
                })

    def subscribe(self, event: BusEvent[T], callback: SubscriptionCallback) -> Callable[[], None]:
        return self._raw_subscribe(event.type, callback)

    def subscribe_all(self, callback: SubscriptionCallback) -> Callable[[], None]:
        return self._raw_subscribe("*", callback)

    def _raw_subscribe(self, event_type: str, callback: SubscriptionCallback) -> Callable[[], None]:
        self._subscriptions.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            subs = self._subscriptions.get(event_type, [])
            if callback in subs:
                subs.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        self._subscriptions.clear()
