from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Generic, List, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class ServiceEvent(str, Enum):
    """Discrete notifications consumed by presentation collaborators."""
    UPDATE_SELECTED = "update_selected"
    UPDATE_SCROLL = "update_scroll"
    UPDATE_RESIZE = "update_resize"
    HIDE_CLUSTERS = "hide_clusters"


class Subscription:
    """Handle returned by `subscribe`; call `unsubscribe()` to stop receiving values."""

    def __init__(self, remove: Callable[[Subscription], None]):
        self._remove = remove
        self.closed = False

    def unsubscribe(self) -> None:
        if not self.closed:
            self.closed = True
            self._remove(self)


class ReplayChannel(Generic[T]):
    """
    Broadcast cache of the last published value.

    New subscribers immediately receive the latest value (if any), then every
    subsequent publish. Delivery is synchronous, in subscription order.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._value: object = _UNSET
        self._subscribers: List[tuple[Subscription, Callable[[T], None]]] = []

    @property
    def has_value(self) -> bool:
        return self._value is not _UNSET

    @property
    def value(self) -> T:
        """
        The latest published value.

        :raises LookupError: if nothing has been published yet.
        """
        if self._value is _UNSET:
            raise LookupError(f"Channel '{self.name}' has no value yet")
        return self._value  # type: ignore[return-value]

    def publish(self, value: T) -> None:
        self._value = value
        for sub, callback in list(self._subscribers):
            if not sub.closed:
                callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        sub = Subscription(self._remove)
        self._subscribers.append((sub, callback))
        if self._value is not _UNSET:
            callback(self._value)  # type: ignore[arg-type]
        return sub

    def clear(self) -> None:
        """Forget the cached value; subscribers are kept."""
        self._value = _UNSET

    def _remove(self, sub: Subscription) -> None:
        self._subscribers = [(s, cb) for s, cb in self._subscribers if s is not sub]


class EventChannel:
    """
    Fire-and-forget channel of ServiceEvents. Nothing is replayed to late subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: List[tuple[Subscription, Callable[[ServiceEvent], None], Optional[Set[ServiceEvent]]]] = []

    def subscribe(
            self,
            callback: Callable[[ServiceEvent], None],
            kinds: Optional[Set[ServiceEvent]] = None,
    ) -> Subscription:
        """
        Subscribe to events; `kinds` restricts delivery to the given event kinds.
        """
        sub = Subscription(self._remove)
        self._subscribers.append((sub, callback, set(kinds) if kinds else None))
        return sub

    def emit(self, event: ServiceEvent) -> None:
        logger.debug("Service event", extra={"event": event.value})
        for sub, callback, kinds in list(self._subscribers):
            if sub.closed:
                continue
            if kinds is None or event in kinds:
                callback(event)

    def _remove(self, sub: Subscription) -> None:
        self._subscribers = [entry for entry in self._subscribers if entry[0] is not sub]
