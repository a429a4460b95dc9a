"""
Event bus for run observability.

The loop publishes one event object per lifecycle point (run start, chosen
action, tool call, run end, run error). Observers subscribe by event class
name, or to every event with ``ALL_EVENTS``. Observers never influence the
run: their failures are logged and swallowed.
"""

import inspect
import logging
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"


class EventBus:
    """
    In-process publish/subscribe hub shared by the runs of one executor.

    Listeners may be plain callables or coroutine functions. A listener that
    fails ``max_listener_errors`` times is dropped. The last ``max_history``
    events are kept for inspection.
    """

    def __init__(self, max_history: int = 1000, max_listener_errors: int = 5):
        self.events: Deque[Any] = deque(maxlen=max_history)
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._failures: Dict[int, int] = defaultdict(int)
        self._max_listener_errors = max_listener_errors

    async def emit(self, event: Any) -> None:
        """Record ``event`` and deliver it to its type's listeners, then to catch-all listeners."""
        self.events.append(event)
        event_type = type(event).__name__

        targets = list(self.listeners.get(event_type, ())) + list(self.listeners.get(ALL_EVENTS, ()))
        for listener in targets:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener {getattr(listener, '__name__', listener)!r} failed on {event_type}: {e}")
                self._record_failure(listener)

    def _record_failure(self, listener: Callable) -> None:
        key = id(listener)
        self._failures[key] += 1
        if self._failures[key] < self._max_listener_errors:
            return

        logger.warning(f"Dropping listener after {self._max_listener_errors} failures")
        for registered in self.listeners.values():
            if listener in registered:
                registered.remove(listener)
        del self._failures[key]

    def subscribe(self, event_type: str, listener: Callable) -> None:
        """
        Register ``listener`` for events whose class name is ``event_type``.

        Subscribing the same listener twice to one type has no effect.
        """
        registered = self.listeners[event_type]
        if listener in registered:
            return
        registered.append(listener)
        logger.debug(f"Subscribed listener to {event_type}")

    def unsubscribe(self, event_type: str, listener: Callable) -> None:
        registered = self.listeners.get(event_type)
        if registered and listener in registered:
            registered.remove(listener)
            logger.debug(f"Unsubscribed listener from {event_type}")

    def clear_listeners(self, event_type: Optional[str] = None) -> None:
        """Drop the listeners of one event type, or all listeners when no type is given."""
        if event_type is None:
            self.listeners.clear()
            self._failures.clear()
        else:
            self.listeners.pop(event_type, None)

    def clear_events(self) -> None:
        self.events.clear()

    def events_for_run(self, run_id: str, event_type: Optional[str] = None) -> List[Any]:
        """Recorded events of one run, in emission order."""
        return [
            e for e in self.events
            if getattr(e, "run_id", None) == run_id
            and (event_type is None or type(e).__name__ == event_type)
        ]

    def get_event_count(self, event_type: Optional[str] = None) -> int:
        if event_type is None:
            return len(self.events)
        return sum(type(e).__name__ == event_type for e in self.events)

    def get_listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is None:
            return sum(map(len, self.listeners.values()))
        return len(self.listeners.get(event_type, ()))
