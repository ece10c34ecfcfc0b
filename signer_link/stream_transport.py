"""TCP stream transport for networked signers and emulators."""

import logging
import socket
import threading

from .errors import ConnectError, EndOfStream, NotConnected

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3000

RECV_SIZE = 1024
POLL_INTERVAL = 0.1  # seconds


class StreamTransport:
    """Carries frames over a TCP connection without any chunking."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        connect_timeout: float = 5.0,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        if not host:
            raise ValueError("host must be present")
        if not 0 < port < 65536:
            raise ValueError(f"port out of range: {port}")
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._poll_interval = poll_interval
        self._sock: socket.socket | None = None
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """Connect to host:port."""
        if self._sock is not None:
            raise ConnectError("stream is already open")
        try:
            sock = socket.create_connection(
                (self._host, self._port), timeout=self._connect_timeout
            )
        except OSError as e:
            raise ConnectError(f"cannot connect to {self._host}:{self._port}: {e}") from e

        # The timeout doubles as the idle poll for receive()
        sock.settimeout(self._poll_interval)
        self._sock = sock
        logger.info("Connected to signer at %s:%d", self._host, self._port)

    def send(self, data: bytes) -> None:
        """Write bytes to the peer."""
        if self._sock is None:
            raise NotConnected("stream is not open")
        with self._write_lock:
            self._sock.sendall(data)
        logger.debug("Sent %d bytes", len(data))

    def receive(self) -> bytes:
        """
        Read whatever bytes are available.

        Returns an empty bytes object if nothing arrived within the poll
        interval. Raises EndOfStream if the peer closed the connection.
        """
        if self._sock is None:
            raise NotConnected("stream is not open")
        try:
            data = self._sock.recv(RECV_SIZE)
        except socket.timeout:
            return b""
        if not data:
            raise EndOfStream(f"{self._host}:{self._port} closed the connection")
        return data

    def close(self) -> None:
        """Close the connection."""
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
        logger.info("Disconnected from signer at %s:%d", self._host, self._port)
