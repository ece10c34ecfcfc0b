"""Transport interface and construction from configuration."""

from typing import Protocol

from .config import Config


class Transport(Protocol):
    """A byte pipe to a signer.

    ``receive`` returns an empty bytes object when nothing arrived within the
    transport's poll window and raises EndOfStream once the peer has closed.
    I/O failures surface as OSError.
    """

    def open(self) -> None: ...

    def send(self, data: bytes) -> None: ...

    def receive(self) -> bytes: ...

    def close(self) -> None: ...


def create_transport(config: Config) -> Transport:
    """Build the transport selected by the configuration."""
    if config.transport == "stream":
        from .stream_transport import StreamTransport

        return StreamTransport(
            host=config.stream.host,
            port=config.stream.port,
            connect_timeout=config.stream.connect_timeout,
        )

    if config.transport == "hid":
        from .hid_transport import HidTransport

        return HidTransport(
            vendor_id=config.hid.vendor_id,
            product_id=config.hid.product_id,
            serial_number=config.hid.serial_number,
            read_timeout_ms=config.hid.read_timeout_ms,
        )

    if config.transport == "serial":
        if config.serial is None:
            raise ValueError("serial transport selected without a serial section")
        from .serial_transport import SerialTransport

        return SerialTransport(port=config.serial.port, baud=config.serial.baud)

    raise ValueError(f"unknown transport: {config.transport}")
