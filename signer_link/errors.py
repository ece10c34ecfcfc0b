"""Exceptions raised by the signer link."""


class SignerError(Exception):
    """Base class for all signer link errors."""

    pass


class ConnectError(SignerError):
    """Raised when the device or host cannot be reached."""

    pass


class DeviceNotFound(ConnectError):
    """Raised when no attached HID device matches the requested ids."""

    pass


class DecodeError(SignerError):
    """Raised when a single frame cannot be decoded."""

    pass


class ShortRead(DecodeError):
    """Raised when the stream ends before a frame is complete."""

    pass


class Malformed(DecodeError):
    """Raised when the payload codec rejects a frame payload."""

    pass


class FrameTooLong(SignerError):
    """Raised when a HID report claims more than 63 valid bytes."""

    pass


class EndOfStream(SignerError):
    """Raised when the peer closed the stream cleanly."""

    pass


class NotConnected(SignerError):
    """Raised when an operation needs an open connection."""

    pass


class DuplicateListener(SignerError):
    """Raised when a listener is registered twice."""

    pass


class UnknownListener(SignerError):
    """Raised when removing a listener that was never registered."""

    pass


class ResponseTimeout(SignerError):
    """Raised when a blocking call receives no event in time."""

    pass
