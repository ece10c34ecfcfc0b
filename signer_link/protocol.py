"""Signer wire protocol framing.

Frame format:
    [0x23][0x23][code_high][code_low][len_3][len_2][len_1][len_0][payload...]

- Magic: "##" (2 bytes), read and discarded on receive
- Header code: 2 bytes, big-endian - identifies the message type
- Length: 4 bytes, big-endian - length of payload only
- Payload: schema-encoded message bytes, parsed by a MessageCodec
"""

import struct
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

from .errors import EndOfStream, Malformed, ShortRead

FRAME_MAGIC = b"##"
HEADER_FORMAT = ">HL"
HEADER_SIZE = 8  # magic (2) + code (2) + length (4)

# Seconds to wait for the rest of a frame once its first byte has arrived
DEFAULT_FRAME_TIMEOUT = 5.0


class MessageType(IntEnum):
    """Signer message types keyed by their wire header code."""

    INITIALIZE = 0
    PING = 1
    SUCCESS = 2
    FAILURE = 3
    CHANGE_PIN = 4
    WIPE_DEVICE = 5
    FIRMWARE_ERASE = 6
    FIRMWARE_UPLOAD = 7
    GET_ENTROPY = 9
    ENTROPY = 10
    GET_PUBLIC_KEY = 11
    PUBLIC_KEY = 12
    LOAD_DEVICE = 13
    RESET_DEVICE = 14
    SIGN_TX = 15
    SIMPLE_SIGN_TX = 16
    FEATURES = 17
    PIN_MATRIX_REQUEST = 18
    PIN_MATRIX_ACK = 19
    CANCEL = 20
    TX_REQUEST = 21
    TX_ACK = 22
    CIPHER_KEY_VALUE = 23
    CLEAR_SESSION = 24
    APPLY_SETTINGS = 25
    BUTTON_REQUEST = 26
    BUTTON_ACK = 27
    GET_ADDRESS = 29
    ADDRESS = 30
    ENTROPY_REQUEST = 35
    ENTROPY_ACK = 36
    SIGN_MESSAGE = 38
    VERIFY_MESSAGE = 39
    MESSAGE_SIGNATURE = 40
    PASSPHRASE_REQUEST = 41
    PASSPHRASE_ACK = 42
    DEBUG_LINK_DECISION = 100
    DEBUG_LINK_GET_STATE = 101
    DEBUG_LINK_STATE = 102
    DEBUG_LINK_STOP = 103
    DEBUG_LINK_LOG = 104
    UNKNOWN = 0xFFFF

    @classmethod
    def _missing_(cls, value):
        # Unregistered header codes must still decode
        if isinstance(value, int) and 0 <= value <= 0xFFFF:
            return cls.UNKNOWN
        return None


@dataclass(frozen=True)
class Frame:
    """One decoded wire frame with its payload still encoded."""

    header_code: int
    payload: bytes

    @property
    def message_type(self) -> MessageType:
        return MessageType(self.header_code)


def encode_frame(message_type: int, payload: bytes) -> bytes:
    """Encode a payload into a framed message."""
    return (
        FRAME_MAGIC
        + struct.pack(HEADER_FORMAT, int(message_type), len(payload))
        + payload
    )


class FrameReader:
    """Pulls complete frames out of a transport's receive function.

    ``receive`` returns the next block of bytes, ``b""`` when nothing arrived
    within the transport's poll window, or raises EndOfStream once the peer
    has gone away. Bytes past the end of a frame are kept for the next one.

    A frame that stops arriving part way through fails after ``frame_timeout``
    seconds on any transport, stream sockets included. Pass None to wait for
    the rest of the frame until the stream ends.
    """

    def __init__(
        self,
        receive: Callable[[], bytes],
        frame_timeout: float | None = DEFAULT_FRAME_TIMEOUT,
    ) -> None:
        self._receive = receive
        self._frame_timeout = frame_timeout
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        """Number of received bytes not yet consumed by a frame."""
        return len(self._buffer)

    def read_frame(self) -> Frame | None:
        """
        Read one complete frame.

        Returns None if the transport was idle before a new frame started.
        Raises EndOfStream if the stream ended cleanly between frames, and
        ShortRead if it ended (or stalled) part way through a frame.
        """
        if not self._fill(HEADER_SIZE, frame_started=False):
            return None

        header_code, length = struct.unpack_from(HEADER_FORMAT, self._buffer, 2)
        del self._buffer[:HEADER_SIZE]

        self._fill(length, frame_started=True)
        payload = bytes(self._buffer[:length])
        del self._buffer[:length]

        return Frame(header_code=header_code, payload=payload)

    def _fill(self, size: int, frame_started: bool) -> bool:
        deadline = None

        while len(self._buffer) < size:
            at_boundary = not frame_started and not self._buffer
            try:
                data = self._receive()
            except EndOfStream:
                if at_boundary:
                    raise
                raise ShortRead(
                    f"stream ended with {len(self._buffer)} of {size} bytes"
                ) from None

            if data:
                self._buffer.extend(data)
                deadline = None
                continue

            if at_boundary:
                return False

            # Idle part way through a frame
            if self._frame_timeout is None:
                continue
            if deadline is None:
                deadline = time.monotonic() + self._frame_timeout
            elif time.monotonic() >= deadline:
                raise ShortRead(
                    f"timed out with {len(self._buffer)} of {size} bytes"
                )

        return True


def decode_frame(reader: FrameReader, codec) -> tuple[MessageType, object] | None:
    """Read one frame and parse its payload with the codec.

    Returns None if the transport was idle. Codec failures are reported as
    Malformed.
    """
    frame = reader.read_frame()
    if frame is None:
        return None

    message_type = frame.message_type
    try:
        message = codec.parse(message_type, frame.payload)
    except Exception as e:
        raise Malformed(
            f"cannot parse {message_type.name} payload ({len(frame.payload)} bytes): {e}"
        ) from e

    return message_type, message
