"""CP211x USB-to-UART bridge control over HID feature reports."""

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag

logger = logging.getLogger(__name__)

STATUS_REPORT_SIZE = 10


class ReportID(IntEnum):
    """Feature report ids used to drive the bridge."""

    RESET_DEVICE = 0x40
    UART_ENABLE = 0x41
    UART_STATUS = 0x42
    PURGE_FIFOS = 0x43


class Purge(IntFlag):
    """FIFOs to clear with a purge command."""

    TX = 0x01
    RX = 0x02
    BOTH = 0x03


@dataclass(frozen=True)
class UartStatus:
    """Snapshot of the bridge UART state."""

    tx_fifo_bytes: int
    rx_fifo_bytes: int
    parity_error: bool
    overrun_error: bool
    line_break: bool

    @classmethod
    def from_report(cls, report: bytes) -> "UartStatus":
        """
        Parse a status feature report.

        Layout: [report id][tx count (2)][rx count (2)][errors][line break]
        with counts big-endian. Error bit 0 is parity, bit 1 is overrun.
        """
        if len(report) < 7:
            raise ValueError(f"status report too short: {len(report)} bytes")
        tx_fifo, rx_fifo, errors, line_break = struct.unpack_from(">HHBB", report, 1)
        return cls(
            tx_fifo_bytes=tx_fifo,
            rx_fifo_bytes=rx_fifo,
            parity_error=bool(errors & 0x01),
            overrun_error=bool(errors & 0x02),
            line_break=bool(line_break),
        )


class UartBridge:
    """Controls the UART side of an opened CP211x HID device."""

    def __init__(self, device) -> None:
        self._device = device

    def reset(self) -> int:
        """Reset the bridge (the device drops off the bus and re-enumerates)."""
        return self._send([ReportID.RESET_DEVICE, 0x00], "UART reset")

    def enable(self, enabled: bool = True) -> int:
        """Enable or disable the UART link."""
        return self._send(
            [ReportID.UART_ENABLE, 0x01 if enabled else 0x00], "UART enable"
        )

    def is_enabled(self) -> bool:
        """Return True if the UART link is enabled."""
        report = self._device.get_feature_report(ReportID.UART_ENABLE, 2)
        return len(report) >= 2 and report[1] == 0x01

    def purge(self, which: Purge = Purge.BOTH) -> int:
        """Discard the contents of the Tx and/or Rx FIFOs."""
        return self._send([ReportID.PURGE_FIFOS, int(which)], "Purge FIFOs")

    def status(self) -> UartStatus:
        """Read the UART status. Reading clears latched error flags."""
        report = bytes(
            self._device.get_feature_report(ReportID.UART_STATUS, STATUS_REPORT_SIZE)
        )
        logger.info("< UART status: %s", report.hex())
        return UartStatus.from_report(report)

    def _send(self, report: list[int], label: str) -> int:
        sent = self._device.send_feature_report([int(b) for b in report])
        if sent < 0:
            raise OSError(f"{label} feature report failed")
        logger.info("> %s: %d bytes %s", label, sent, bytes(report).hex())
        return sent
