"""USB HID transport for signers behind a CP211x UART bridge."""

import logging

import hid

from .chunking import READ_TIMEOUT_MS, chunk, reassemble
from .errors import ConnectError, DeviceNotFound, NotConnected
from .uart_bridge import Purge, UartBridge

logger = logging.getLogger(__name__)

# Silicon Labs CP2110 USB IDs
DEFAULT_VENDOR_ID = 0x10C4
DEFAULT_PRODUCT_ID = 0xEA80


def list_devices(
    vendor_id: int = DEFAULT_VENDOR_ID,
    product_id: int = DEFAULT_PRODUCT_ID,
) -> list[dict]:
    """Return hidapi device info for every attached matching device."""
    return [
        info
        for info in hid.enumerate(vendor_id, product_id)
        if info["vendor_id"] == vendor_id and info["product_id"] == product_id
    ]


class HidTransport:
    """Carries frames over HID reports via the UART bridge."""

    def __init__(
        self,
        vendor_id: int = DEFAULT_VENDOR_ID,
        product_id: int = DEFAULT_PRODUCT_ID,
        serial_number: str | None = None,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._serial_number = serial_number
        self._read_timeout_ms = read_timeout_ms
        self._device = None
        self._bridge: UartBridge | None = None

    @property
    def is_open(self) -> bool:
        return self._device is not None

    @property
    def bridge(self) -> UartBridge:
        """UART bridge control channel of the open device."""
        if self._bridge is None:
            raise NotConnected("device is not open")
        return self._bridge

    def find_device(self) -> dict:
        """
        Locate the device to open.

        The first vendor/product match wins unless a serial number was given,
        in which case it must match exactly.
        Raises DeviceNotFound if nothing matches.
        """
        for info in list_devices(self._vendor_id, self._product_id):
            serial = info.get("serial_number")
            if self._serial_number is None or serial == self._serial_number:
                return info

        raise DeviceNotFound(
            f"no device {self._vendor_id:04x}:{self._product_id:04x}"
            + (f" with serial {self._serial_number}" if self._serial_number else "")
        )

    def open(self) -> None:
        """Open the device, enable the UART and purge both FIFOs."""
        if self._device is not None:
            raise ConnectError("device is already open")

        info = self.find_device()
        device = hid.device()
        try:
            device.open_path(info["path"])
        except OSError as e:
            raise ConnectError(f"cannot open HID device: {e}") from e

        logger.debug(
            "Selected: %s, %s, %s",
            info.get("manufacturer_string"),
            info.get("product_string"),
            info.get("serial_number"),
        )

        bridge = UartBridge(device)
        try:
            bridge.enable(True)
            bridge.purge(Purge.BOTH)
        except OSError as e:
            device.close()
            raise ConnectError(f"cannot configure UART bridge: {e}") from e

        self._device = device
        self._bridge = bridge
        logger.info(
            "Opened HID device %04x:%04x", self._vendor_id, self._product_id
        )

    def send(self, data: bytes) -> None:
        """Write bytes to the device as a run of HID reports."""
        if self._device is None:
            raise NotConnected("device is not open")
        for report in chunk(data):
            written = self._device.write(report)
            if written < 0:
                raise OSError(f"HID write failed: {self._device.error()}")
        logger.debug("Sent %d bytes", len(data))

    def receive(self) -> bytes:
        """
        Read one burst of reports.

        Returns an empty bytes object if no report arrived before the read
        timeout.
        """
        if self._device is None:
            raise NotConnected("device is not open")
        return reassemble(self._device.read, self._read_timeout_ms)

    def close(self) -> None:
        """Close the device."""
        if self._device is None:
            return
        try:
            self._device.close()
        finally:
            self._device = None
            self._bridge = None
        logger.info("Closed HID device")
