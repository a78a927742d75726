"""
Snapshot relays.

A relay holds the current value of one shelf collection and pushes the
full value to every subscriber whenever it changes. Subscribers also get
the current value as soon as they subscribe.
"""

import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotRelay(Generic[T]):
    """Current value plus change callbacks."""

    def __init__(self, name: str, value: T) -> None:
        self.name = name
        self._value = value
        self._subscribers: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(
        self,
        callback: Callable[[T], None],
        *,
        replay: bool = True,
    ) -> Callable[[], None]:
        """Register a callback.

        Args:
            callback: Called with the full value on every change
            replay: Also call it right away with the current value

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

        if replay:
            self._safe_dispatch(callback, self._value)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def accept(self, value: T) -> None:
        """Replace the current value and notify subscribers."""
        self._value = value
        with self._lock:
            handlers = list(self._subscribers)
        for handler in handlers:
            self._safe_dispatch(handler, value)

    def _safe_dispatch(self, handler: Callable[[T], None], value: T) -> None:
        """Keep one subscriber failure from stopping the others."""
        handler_name = getattr(handler, "__name__", str(handler))
        try:
            handler(value)
        except Exception as exc:
            logger.exception(
                "Subscriber error in '%s' for %s", handler_name, self.name,
                exc_info=exc,
            )

    def clear(self) -> None:
        """Remove all subscriptions."""
        with self._lock:
            self._subscribers.clear()
