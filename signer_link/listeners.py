"""Listener registry with one bounded event queue per listener."""

import logging
import queue
import threading
from collections.abc import Hashable

from .errors import DuplicateListener, UnknownListener
from .events import Event

logger = logging.getLogger(__name__)

QUEUE_SIZE = 32

# Interval at which a blocked push rechecks for removal or shutdown
PUT_POLL_INTERVAL = 0.05  # seconds


class _Registration:
    def __init__(self, listener: Hashable, queue_size: int) -> None:
        self.listener = listener
        self.queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self.active = True

    def put(self, event: Event, stop: threading.Event) -> bool:
        while self.active and not stop.is_set():
            try:
                self.queue.put(event, timeout=PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False


class ListenerRegistry:
    """Tracks listeners and fans events out to their queues."""

    def __init__(self, queue_size: int = QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._registrations: dict[Hashable, _Registration] = {}
        self._lock = threading.Lock()

    def __contains__(self, listener: Hashable) -> bool:
        with self._lock:
            return listener in self._registrations

    def __len__(self) -> int:
        with self._lock:
            return len(self._registrations)

    def add(self, listener: Hashable) -> queue.Queue:
        """Register a listener and return its new event queue."""
        with self._lock:
            if listener in self._registrations:
                raise DuplicateListener(f"listener already registered: {listener!r}")
            registration = _Registration(listener, self._queue_size)
            self._registrations[listener] = registration
        logger.debug("Added listener %r", listener)
        return registration.queue

    def remove(self, listener: Hashable) -> None:
        """Unregister a listener and discard its queue."""
        with self._lock:
            registration = self._registrations.pop(listener, None)
            if registration is None:
                raise UnknownListener(f"listener not registered: {listener!r}")
            registration.active = False
        logger.debug("Removed listener %r", listener)

    def queue_for(self, listener: Hashable) -> queue.Queue:
        with self._lock:
            try:
                return self._registrations[listener].queue
            except KeyError:
                raise UnknownListener(f"listener not registered: {listener!r}") from None

    def clear(self) -> None:
        """Unregister every listener."""
        with self._lock:
            for registration in self._registrations.values():
                registration.active = False
            self._registrations.clear()

    def publish(self, event: Event, stop: threading.Event) -> None:
        """
        Push an event onto every listener queue, in registration order.

        A full queue blocks until the listener makes room, is removed, or
        ``stop`` is set, so one slow listener holds up delivery to all.
        """
        with self._lock:
            registrations = list(self._registrations.values())

        for registration in registrations:
            if not registration.put(event, stop):
                logger.debug("Skipped %r for listener %r", event, registration.listener)

    def offer(self, event: Event) -> None:
        """Push an event without blocking, dropping it for full queues."""
        with self._lock:
            registrations = list(self._registrations.values())

        for registration in registrations:
            try:
                registration.queue.put_nowait(event)
            except queue.Full:
                logger.warning(
                    "Listener %r queue full, dropped %r", registration.listener, event
                )
