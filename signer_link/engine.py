"""Connection engine: owns a transport, its receive loop and its listeners."""

import logging
import queue
import threading
from collections.abc import Hashable
from enum import Enum

from .codec import MessageCodec, RawCodec
from .errors import (
    ConnectError,
    DecodeError,
    EndOfStream,
    FrameTooLong,
    NotConnected,
)
from .events import ProtocolEvent, SystemEvent, SystemEventKind
from .listeners import QUEUE_SIZE, ListenerRegistry
from .protocol import (
    DEFAULT_FRAME_TIMEOUT,
    FrameReader,
    MessageType,
    decode_frame,
    encode_frame,
)
from .transport import Transport

logger = logging.getLogger(__name__)

# Pause before polling again after the peer reported end of stream
EOF_RETRY_DELAY = 0.1  # seconds
SHUTDOWN_GRACE = 1.0  # seconds


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class ConnectionEngine:
    """Runs one connection to a signer over any transport.

    A single background thread decodes incoming frames and publishes them as
    events to every registered listener queue. Sending happens on the
    caller's thread.
    """

    def __init__(
        self,
        transport: Transport,
        codec: MessageCodec | None = None,
        queue_size: int = QUEUE_SIZE,
        shutdown_grace: float = SHUTDOWN_GRACE,
        frame_timeout: float | None = DEFAULT_FRAME_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._codec = codec if codec is not None else RawCodec()
        self._listeners = ListenerRegistry(queue_size)
        self._shutdown_grace = shutdown_grace
        self._frame_timeout = frame_timeout
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def codec(self) -> MessageCodec:
        return self._codec

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Return True if the connection is open."""
        return self._state is ConnectionState.CONNECTED

    @property
    def receiving(self) -> bool:
        """Return True while the receive loop is running."""
        return self._thread is not None and self._thread.is_alive()

    def add_listener(self, listener: Hashable) -> queue.Queue:
        """Register a listener and return the queue its events arrive on."""
        if self._state is ConnectionState.CLOSED:
            raise NotConnected("connection is closed")
        return self._listeners.add(listener)

    def remove_listener(self, listener: Hashable) -> None:
        self._listeners.remove(listener)

    def connect(self) -> None:
        """
        Open the transport and start receiving.

        Raises ConnectError if the transport cannot be opened, leaving the
        engine disconnected so the call may be retried.
        """
        with self._state_lock:
            if self._state is ConnectionState.CLOSED:
                raise NotConnected("connection is closed")
            if self._state is not ConnectionState.DISCONNECTED:
                raise ConnectError(f"connection is {self._state.value}")
            self._state = ConnectionState.CONNECTING

            try:
                self._transport.open()
            except ConnectError as e:
                self._state = ConnectionState.DISCONNECTED
                logger.error("Connect failed: %s", e)
                raise
            except OSError as e:
                self._state = ConnectionState.DISCONNECTED
                logger.error("Connect failed: %s", e)
                raise ConnectError(str(e)) from e

            self._state = ConnectionState.CONNECTED

        self._publish(SystemEvent(SystemEventKind.CONNECTED))

        self._thread = threading.Thread(
            target=self._receive_loop,
            name="signer-receive",
            daemon=True,
        )
        self._thread.start()

    def send_message(self, message: object) -> None:
        """Frame a message and write it to the transport."""
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnected(f"connection is {self._state.value}")

        message_type = MessageType(self._codec.message_type_of(message))
        frame = encode_frame(message_type, self._codec.serialize(message))

        with self._write_lock:
            self._transport.send(frame)
        logger.debug("> %s (%d bytes)", message_type.name, len(frame))

    def close(self) -> None:
        """Stop receiving and close the transport. Safe to call repeatedly."""
        with self._state_lock:
            if self._state is ConnectionState.CLOSED:
                return
            was_open = self._state is ConnectionState.CONNECTED
            self._state = ConnectionState.CLOSED

        self._stop.set()

        if self._thread is not None:
            self._thread.join(self._shutdown_grace)
            if self._thread.is_alive():
                logger.warning(
                    "Receive loop still running after %.1fs", self._shutdown_grace
                )

        if was_open:
            self._transport.close()
            self._listeners.offer(SystemEvent(SystemEventKind.DISCONNECTED))

        self._listeners.clear()
        logger.info("Connection closed")

    def _publish(self, event) -> None:
        self._listeners.publish(event, self._stop)

    def _receive_loop(self) -> None:
        reader = FrameReader(self._transport.receive, self._frame_timeout)
        at_eof = False

        while not self._stop.is_set():
            try:
                decoded = decode_frame(reader, self._codec)
            except EndOfStream:
                if not at_eof:
                    logger.info("Signer reported end of stream")
                    at_eof = True
                    self._publish(SystemEvent(SystemEventKind.EOF))
                self._stop.wait(EOF_RETRY_DELAY)
                continue
            except (DecodeError, FrameTooLong, OSError) as e:
                if self._stop.is_set():
                    break
                logger.error("Receive failed: %s", e)
                self._publish(SystemEvent(SystemEventKind.FAILURE))
                break
            except Exception:
                if self._stop.is_set():
                    break
                logger.exception("Unexpected error in receive loop")
                self._publish(SystemEvent(SystemEventKind.FAILURE))
                break

            if decoded is None:
                continue

            at_eof = False
            message_type, message = decoded
            logger.debug("< %s", message_type.name)
            if message_type is MessageType.FAILURE:
                logger.warning("Signer replied with FAILURE: %r", message)

            self._publish(ProtocolEvent(message_type, message))

        logger.debug("Receive loop stopped")
