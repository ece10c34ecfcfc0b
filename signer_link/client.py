"""Blocking and non-blocking clients over a connection engine."""

import queue
import secrets

from .engine import ConnectionEngine
from .errors import ResponseTimeout
from .events import Event
from .protocol import MessageType

SESSION_ID_SIZE = 8
RESPONSE_TIMEOUT = 5.0  # seconds


def new_session_id() -> bytes:
    """Generate a random 8-byte session identifier."""
    return secrets.token_bytes(SESSION_ID_SIZE)


class _Client:
    def __init__(self, engine: ConnectionEngine, session_id: bytes | None = None) -> None:
        self._engine = engine
        self.session_id = session_id if session_id is not None else new_session_id()
        self.queue: queue.Queue = engine.add_listener(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def engine(self) -> ConnectionEngine:
        return self._engine

    def close(self) -> None:
        """Close the underlying connection."""
        self._engine.close()


class BlockingClient(_Client):
    """Client where every call waits for the next event from the signer.

    Suited to sequential scripting; the caller's thread blocks on device I/O.
    """

    def __init__(
        self,
        engine: ConnectionEngine,
        session_id: bytes | None = None,
        response_timeout: float = RESPONSE_TIMEOUT,
    ) -> None:
        super().__init__(engine, session_id)
        self._response_timeout = response_timeout

    def connect(self) -> Event:
        """Connect and return the CONNECTED event."""
        self._engine.connect()
        return self._next_event()

    def ping(self) -> Event:
        return self.call(self._engine.codec.new_message(MessageType.PING))

    def initialize(self) -> Event:
        return self.call(self._engine.codec.new_message(MessageType.INITIALIZE))

    def call(self, message: object) -> Event:
        """Send a message and return the next event received."""
        self._engine.send_message(message)
        return self._next_event()

    def _next_event(self) -> Event:
        try:
            return self.queue.get(timeout=self._response_timeout)
        except queue.Empty:
            raise ResponseTimeout(
                f"no event within {self._response_timeout:.1f}s"
            ) from None


class NonBlockingClient(_Client):
    """Client whose calls return as soon as the message is sent.

    Events are collected from the queue with poll() or drain().
    """

    def connect(self) -> None:
        self._engine.connect()

    def ping(self) -> None:
        self.send(self._engine.codec.new_message(MessageType.PING))

    def initialize(self) -> None:
        self.send(self._engine.codec.new_message(MessageType.INITIALIZE))

    def send(self, message: object) -> None:
        self._engine.send_message(message)

    def poll(self, timeout: float | None = None) -> Event | None:
        """
        Return the next event, or None if none arrives in time.

        A timeout of None waits indefinitely; zero returns immediately.
        """
        try:
            if timeout == 0:
                return self.queue.get_nowait()
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[Event]:
        """Return every event currently queued."""
        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events
