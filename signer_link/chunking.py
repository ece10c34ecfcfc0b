"""HID report chunking.

Report format (64 bytes):
    [valid_len][data...][zero padding]

- valid_len: number of data bytes in this report (1-63)
- A read that times out with no report marks the end of a message
"""

import logging
from collections.abc import Callable

from .errors import FrameTooLong

logger = logging.getLogger(__name__)

REPORT_SIZE = 64
MAX_CHUNK = REPORT_SIZE - 1
READ_TIMEOUT_MS = 500


def chunk(payload: bytes) -> list[bytes]:
    """Split a payload into zero-padded 64-byte HID reports."""
    reports = []
    for offset in range(0, len(payload), MAX_CHUNK):
        data = payload[offset : offset + MAX_CHUNK]
        report = bytes([len(data)]) + data
        reports.append(report.ljust(REPORT_SIZE, b"\x00"))
    return reports


def reassemble(
    read_report: Callable[[int, int], list[int] | bytes],
    timeout_ms: int = READ_TIMEOUT_MS,
) -> bytes:
    """
    Read reports until the device goes quiet and join their data.

    ``read_report(size, timeout_ms)`` has the signature of hidapi's
    ``device.read`` and returns an empty result on timeout. Returns an empty
    bytes object if no report arrived at all.
    Raises FrameTooLong if a report claims more than 63 data bytes.
    """
    message = bytearray()

    while True:
        report = read_report(REPORT_SIZE, timeout_ms)
        if not report:
            # Quiet line: the message is complete
            break

        length = report[0]
        if length > MAX_CHUNK:
            raise FrameTooLong(f"report length {length} exceeds {MAX_CHUNK}")

        message.extend(bytes(report[1 : 1 + length]))
        logger.debug("Received HID report: %d bytes (%d total)", length, len(message))

    return bytes(message)
