import pytest

from fakes import FakeHidDevice, FakeHidModule
from signer_link import hid_transport
from signer_link.chunking import chunk
from signer_link.errors import DeviceNotFound, NotConnected
from signer_link.hid_transport import HidTransport, list_devices
from signer_link.protocol import MessageType, encode_frame


def _info(serial, path=None, vendor_id=0x10C4, product_id=0xEA80):
    return {
        "path": path or f"/dev/hidraw-{serial}".encode(),
        "vendor_id": vendor_id,
        "product_id": product_id,
        "serial_number": serial,
        "manufacturer_string": "Silicon Labs",
        "product_string": "CP2110 HID USB-to-UART Bridge",
    }


@pytest.fixture
def fake_hid(monkeypatch):
    def _install(infos, device=None):
        module = FakeHidModule(infos, device)
        monkeypatch.setattr(hid_transport, "hid", module)
        return module

    return _install


def test_first_match_wins_without_serial(fake_hid):
    fake_hid([_info("A"), _info("B")])

    assert HidTransport().find_device()["serial_number"] == "A"


def test_serial_must_match_exactly(fake_hid):
    fake_hid([_info("A"), _info("B")])

    assert HidTransport(serial_number="B").find_device()["serial_number"] == "B"


def test_other_vendor_is_ignored(fake_hid):
    fake_hid([_info("A", vendor_id=0x1234)])

    with pytest.raises(DeviceNotFound):
        HidTransport().find_device()


def test_unknown_serial_not_found(fake_hid):
    fake_hid([_info("A")])

    with pytest.raises(DeviceNotFound):
        HidTransport(serial_number="Z").open()


def test_custom_ids(fake_hid):
    fake_hid([_info("A"), _info("C", vendor_id=0x534C, product_id=0x0001)])

    found = HidTransport(vendor_id=0x534C, product_id=0x0001).find_device()

    assert found["serial_number"] == "C"
    assert [d["serial_number"] for d in list_devices()] == ["A"]


def test_open_enables_and_purges_uart(fake_hid):
    hid = fake_hid([_info("A", path=b"1-1:1.0")])
    transport = HidTransport()

    transport.open()

    device = hid.device_instance
    assert transport.is_open
    assert device.opened_path == b"1-1:1.0"
    assert device.feature_reports == [[0x41, 0x01], [0x43, 0x03]]


def test_send_writes_chunked_reports(fake_hid):
    hid = fake_hid([_info("A")])
    transport = HidTransport()
    transport.open()
    frame = encode_frame(MessageType.SIGN_MESSAGE, bytes(100))

    transport.send(frame)

    assert hid.device_instance.written == chunk(frame)
    assert len(hid.device_instance.written) == 2


def test_receive_reassembles_reports(fake_hid):
    frame = encode_frame(MessageType.SUCCESS, b"ok" * 40)
    device = FakeHidDevice(reports=chunk(frame))
    fake_hid([_info("A")], device)
    transport = HidTransport(read_timeout_ms=100)
    transport.open()

    assert transport.receive() == frame
    assert transport.receive() == b""
    assert device.read_calls[0] == (64, 100)


def test_bridge_status_available_when_open(fake_hid):
    fake_hid([_info("A")])
    transport = HidTransport()

    with pytest.raises(NotConnected):
        transport.bridge

    transport.open()
    assert transport.bridge.status().rx_fifo_bytes == 0


def test_close_is_idempotent(fake_hid):
    hid = fake_hid([_info("A")])
    transport = HidTransport()
    transport.open()

    transport.close()
    transport.close()

    assert hid.device_instance.closed
    with pytest.raises(NotConnected):
        transport.send(b"##")
