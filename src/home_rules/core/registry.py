"""
Generic keyed registry shared by the Event, Action and Rule registries.

A registry owns canonical instances: registering an item whose key already
exists returns the existing instance instead of replacing it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Generic, Iterable, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry(ABC, Generic[T]):
    """
    Deduplicated store keyed by a derived identity string.

    Subclasses define how keys, types and locations are derived from items.
    """

    label = "item"

    def __init__(self) -> None:
        self._items: Dict[str, T] = {}

    @abstractmethod
    def key_of(self, item: T) -> str:
        """Identity key of an item."""
        pass

    @abstractmethod
    def types_of(self, item: T) -> Iterable[str]:
        """Type names an item belongs to (used by get_by_type)."""
        pass

    @abstractmethod
    def locations_of(self, item: T) -> Iterable[str]:
        """Locations an item belongs to (used by get_by_location)."""
        pass

    def register(self, item: T) -> T:
        """
        Register an item.

        Args:
            item: Item to register

        Returns:
            The canonical instance (the existing one if the key was taken)
        """
        key = self.key_of(item)
        existing = self._items.get(key)
        if existing is not None:
            logger.debug(f"{self.label.capitalize()} {key} already registered")
            return existing

        self._items[key] = item
        logger.info(f"Registered {self.label}: {key}")
        return item

    def unregister(self, key: str) -> Optional[T]:
        """
        Remove an item by key.

        Returns:
            The removed item, or None if the key was unknown
        """
        item = self._items.pop(key, None)
        if item is None:
            logger.warning(f"{self.label.capitalize()} {key} not found for unregister")
        else:
            logger.info(f"Unregistered {self.label}: {key}")
        return item

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def get_all(self) -> List[T]:
        """All items in registration order."""
        return list(self._items.values())

    def get_by_type(self, type_name: str) -> List[T]:
        wanted = type_name.lower()
        return [
            item
            for item in self._items.values()
            if wanted in (t.lower() for t in self.types_of(item))
        ]

    def get_by_location(self, location: str) -> List[T]:
        wanted = location.strip().lower()
        return [
            item
            for item in self._items.values()
            if wanted in (loc.strip().lower() for loc in self.locations_of(item))
        ]

    def clear(self) -> None:
        count = len(self._items)
        self._items.clear()
        logger.info(f"Cleared {count} {self.label}(s)")

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self.get_all())
