"""Cancelable subscription over a realtime listener."""

import queue
import threading
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from pillmate.util.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """A live stream of values from a realtime listener.

    Values are either pushed to ``on_value`` or, when no callback is given,
    buffered for iteration. ``cancel()`` is idempotent; once it returns no
    further value is delivered, even if a listener event is in flight on
    another thread.
    """

    def __init__(
        self,
        name: str,
        transform: Callable[[Any], T],
        on_value: Optional[Callable[[T], None]] = None,
    ):
        self.name = name
        self._transform = transform
        self._on_value = on_value
        self._queue: Optional["queue.Queue[Any]"] = None if on_value else queue.Queue()
        self._lock = threading.RLock()
        self._cancelled = False
        self._registration = None
        self._delivering_thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, registration) -> None:
        """Bind the underlying listener registration (anything with ``close()``)."""
        with self._lock:
            if self._cancelled:
                close_now = True
            else:
                self._registration = registration
                close_now = False
        if close_now:
            registration.close()

    def deliver(self, raw: Any) -> None:
        """Called from the listener thread for every change."""
        with self._lock:
            if self._cancelled:
                return
            self._delivering_thread = threading.current_thread()
            try:
                value = self._transform(raw)
                if self._on_value is not None:
                    self._on_value(value)
                else:
                    self._queue.put(value)
            except Exception as e:
                logger.error(f"Subscription {self.name} failed to deliver a value: {e}")
            finally:
                self._delivering_thread = None

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            registration = self._registration
            self._registration = None
            in_callback = self._delivering_thread is threading.current_thread()
            if self._queue is not None:
                self._queue.put(_CLOSED)

        if registration is None:
            return
        if in_callback:
            # The listener thread cannot join itself
            threading.Thread(target=registration.close, daemon=True).start()
        else:
            registration.close()
        logger.debug(f"Subscription {self.name} cancelled")

    def get(self, timeout: Optional[float] = None) -> T:
        """Block for the next buffered value.

        Raises:
            queue.Empty: If nothing arrives within ``timeout``
            StopIteration: If the subscription was cancelled
        """
        if self._queue is None:
            raise TypeError("Callback subscriptions are not iterable")
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            raise StopIteration
        return item

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except StopIteration:
                return

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()
