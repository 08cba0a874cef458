"""
Observer abstractions linking Events, Rules and Actions.

Events are Observable[Event] (observed by Rules), Rules are
Observable[RuleTrigger] (observed by Actions). Notification is synchronous and
in subscription order; each observer call is wrapped in try/except so one bad
observer cannot stop the fan-out.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observer(ABC, Generic[T]):
    """Something that reacts when an observed subject notifies it."""

    @abstractmethod
    def on_notify(self, subject: T) -> Any:
        """
        Handle a notification.

        Args:
            subject: The payload being published (an Event, a RuleTrigger, ...)

        Returns:
            Observer-specific result, collected by Observable.notify()
        """
        pass


class Observable(Generic[T]):
    """
    Ordered, deduplicated set of observers.

    subscribe/unsubscribe are idempotent.
    """

    def __init__(self) -> None:
        self._observers: List[Observer[T]] = []

    @property
    def observers(self) -> List[Observer[T]]:
        """Snapshot of current observers in subscription order."""
        return list(self._observers)

    def has_observer(self, observer: Observer[T]) -> bool:
        return any(o is observer for o in self._observers)

    def subscribe(self, observer: Observer[T]) -> bool:
        """
        Add an observer.

        Returns:
            True if added, False if it was already subscribed
        """
        if self.has_observer(observer):
            return False
        self._observers.append(observer)
        logger.debug(f"{self!r} subscribed {observer!r}")
        return True

    def unsubscribe(self, observer: Observer[T]) -> bool:
        """
        Remove an observer.

        Returns:
            True if removed, False if it was not subscribed
        """
        before = len(self._observers)
        self._observers = [o for o in self._observers if o is not observer]
        removed = len(self._observers) != before
        if removed:
            logger.debug(f"{self!r} unsubscribed {observer!r}")
        return removed

    def notify(self, subject: T) -> List[Any]:
        """
        Notify every observer synchronously.

        Observer errors are logged and skipped.

        Args:
            subject: Payload to hand to each observer

        Returns:
            Results of the observers that completed, in order
        """
        results = []
        for observer in self.observers:
            try:
                results.append(observer.on_notify(subject))
            except Exception as e:
                logger.error(
                    f"Error in observer {observer!r} while notifying from {self!r}: {e}",
                    exc_info=True,
                )
        return results
