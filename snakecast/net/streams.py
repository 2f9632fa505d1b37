from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, Generic, Iterator, List, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class StateStream(Generic[T]):
    """Holds the current value of a piece of state owned by one component.

    The owner calls ``set``; everybody else reads ``value`` or subscribes.
    Setting a value equal to the current one is a no-op, so listeners only
    see real transitions, in the order they happened.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._cond = threading.Condition()
        self._listeners: List[Callable[[T], None]] = []
        # serializes notification so listeners never see transitions out of order
        self._notify_lock = threading.RLock()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        with self._notify_lock:
            with self._cond:
                if value == self._value:
                    return False
                self._value = value
                listeners = list(self._listeners)
                self._cond.notify_all()
            for listener in listeners:
                try:
                    listener(value)
                except Exception:
                    log.exception("state listener failed")
            return True

    def subscribe(self, listener: Callable[[T], None], replay: bool = True) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        with self._notify_lock:
            with self._cond:
                self._listeners.append(listener)
                current = self._value
            if replay:
                listener(current)

        def unsubscribe() -> None:
            with self._cond:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def wait_for(self, predicate: Callable[[T], bool], timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self._value), timeout)


class Subscription(Generic[T]):
    def __init__(self, owner: "CommandBroadcast[T]", capacity: int) -> None:
        self._owner = owner
        self._items: Deque[T] = deque(maxlen=capacity)
        self._cond = threading.Condition()
        self._closed = False
        self.dropped = 0

    def _offer(self, item: T) -> None:
        with self._cond:
            if self._closed:
                return
            if len(self._items) == self._items.maxlen:
                # deque drops the oldest entry for us
                self.dropped += 1
            self._items.append(item)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Next item in arrival order, or None on timeout or close."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                return None
            if self._items:
                return self._items.popleft()
            return None

    def pending(self) -> int:
        with self._cond:
            return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._items.clear()
            self._cond.notify_all()
        self._owner._remove(self)

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item


class CommandBroadcast(Generic[T]):
    """Fan-out of received items to every current subscriber.

    Each subscriber gets its own bounded buffer. Producers never block: when
    a buffer is full its oldest item is dropped, favouring fresh input over
    completeness. Items published while nobody is subscribed are discarded.
    """

    def __init__(self, capacity: int = 64) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._subs: List[Subscription[T]] = []

    def subscribe(self) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, self.capacity)
        with self._lock:
            self._subs.append(sub)
        return sub

    def publish(self, item: T) -> int:
        with self._lock:
            subs = list(self._subs)
        for sub in subs:
            sub._offer(item)
        return len(subs)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def _remove(self, sub: Subscription[T]) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)
