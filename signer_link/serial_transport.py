"""Serial port transport for signers wired to a UART directly."""

import logging
import threading

import serial

from .errors import ConnectError, NotConnected

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 115200
READ_TIMEOUT = 0.1  # seconds


class SerialTransport:
    """Carries frames over a serial port without any chunking."""

    def __init__(self, port: str, baud: int = DEFAULT_BAUD) -> None:
        self._port_name = port
        self._baud = baud
        self._port: serial.Serial | None = None
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        """Return True if serial port is open."""
        return self._port is not None and self._port.is_open

    def open(self) -> None:
        """Open the serial port."""
        if self._port is not None:
            raise ConnectError("serial port is already open")
        try:
            self._port = serial.Serial(
                port=self._port_name,
                baudrate=self._baud,
                timeout=READ_TIMEOUT,  # 100ms read timeout for polling
            )
        except serial.SerialException as e:
            raise ConnectError(f"cannot open {self._port_name}: {e}") from e
        logger.info(
            "Opened serial port %s at %d baud",
            self._port_name,
            self._baud,
        )

    def send(self, data: bytes) -> None:
        """Write bytes to the serial port (thread-safe)."""
        if not self.is_open:
            raise NotConnected("serial port is not open")
        with self._write_lock:
            self._port.write(data)
            self._port.flush()
        logger.debug("Sent %d bytes to serial", len(data))

    def receive(self) -> bytes:
        """
        Read any available bytes.

        Returns an empty bytes object if nothing arrived within the read
        timeout. A vanished port raises serial.SerialException.
        """
        if not self.is_open:
            raise NotConnected("serial port is not open")
        return self._port.read(self._port.in_waiting or 1)

    def close(self) -> None:
        """Close the port. Safe to call when already closed."""
        port, self._port = self._port, None
        if port is None:
            return
        try:
            port.close()
        finally:
            logger.info("Released serial port %s", self._port_name)
