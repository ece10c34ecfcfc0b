import struct

import pytest

from signer_link.codec import RawCodec, RawMessage
from signer_link.errors import EndOfStream, Malformed, ShortRead
from signer_link.protocol import (
    FRAME_MAGIC,
    HEADER_SIZE,
    FrameReader,
    MessageType,
    decode_frame,
    encode_frame,
)


def _receive_from(*blocks, then_eof=True):
    pending = list(blocks)

    def receive():
        if pending:
            return pending.pop(0)
        if then_eof:
            raise EndOfStream("done")
        return b""

    return receive


def test_encode_layout():
    frame = encode_frame(MessageType.PING, b"abc")
    assert frame == b"##" + b"\x00\x01" + b"\x00\x00\x00\x03" + b"abc"
    assert len(frame) == HEADER_SIZE + 3


def test_encode_empty_payload():
    assert encode_frame(MessageType.SUCCESS, b"") == FRAME_MAGIC + struct.pack(">HL", 2, 0)


@pytest.mark.parametrize(
    "message_type, payload",
    [
        (MessageType.INITIALIZE, b""),
        (MessageType.FEATURES, bytes(range(256)) * 3),
        (MessageType.DEBUG_LINK_LOG, b"\x00\x23\x23"),
    ],
)
def test_decode_returns_what_was_encoded(message_type, payload):
    reader = FrameReader(_receive_from(encode_frame(message_type, payload)))

    decoded = decode_frame(reader, RawCodec())

    assert decoded == (message_type, RawMessage(message_type, payload))


def test_unknown_header_code_decodes_as_unknown():
    data = FRAME_MAGIC + struct.pack(">HL", 999, 2) + b"hi"
    reader = FrameReader(_receive_from(data))

    frame = reader.read_frame()

    assert frame.header_code == 999
    assert frame.message_type is MessageType.UNKNOWN
    assert frame.payload == b"hi"


def test_every_code_maps_to_a_type():
    assert MessageType(0xFFFF) is MessageType.UNKNOWN
    assert MessageType(8) is MessageType.UNKNOWN
    assert MessageType(2) is MessageType.SUCCESS


def test_magic_bytes_are_not_validated():
    data = b"XX" + struct.pack(">HL", 2, 1) + b"!"
    reader = FrameReader(_receive_from(data))

    assert reader.read_frame().payload == b"!"


def test_frame_split_across_many_reads():
    data = encode_frame(MessageType.ADDRESS, b"1BoatSLRHtKNngkdXEeobR76b53LETtpyT")
    reader = FrameReader(_receive_from(*[data[i : i + 1] for i in range(len(data))]))

    frame = reader.read_frame()

    assert frame.message_type is MessageType.ADDRESS
    assert frame.payload == b"1BoatSLRHtKNngkdXEeobR76b53LETtpyT"


def test_two_frames_in_one_read():
    data = encode_frame(MessageType.BUTTON_REQUEST, b"a") + encode_frame(
        MessageType.SUCCESS, b"bc"
    )
    reader = FrameReader(_receive_from(data))

    first = reader.read_frame()
    assert reader.buffered == HEADER_SIZE + 2
    second = reader.read_frame()

    assert first.message_type is MessageType.BUTTON_REQUEST
    assert second.payload == b"bc"
    assert reader.buffered == 0


def test_idle_before_frame_returns_none():
    data = encode_frame(MessageType.SUCCESS, b"")
    reader = FrameReader(_receive_from(b"", data))

    assert reader.read_frame() is None
    assert reader.read_frame().message_type is MessageType.SUCCESS


def test_idle_mid_frame_keeps_waiting():
    data = encode_frame(MessageType.ENTROPY, b"12345678")
    reader = FrameReader(_receive_from(data[:5], b"", b"", data[5:]))

    assert reader.read_frame().payload == b"12345678"


def test_end_of_stream_between_frames():
    reader = FrameReader(_receive_from())

    with pytest.raises(EndOfStream):
        reader.read_frame()


def test_end_of_stream_mid_payload_is_short_read():
    data = encode_frame(MessageType.ENTROPY, b"12345678")
    reader = FrameReader(_receive_from(data[:-3]))

    with pytest.raises(ShortRead):
        reader.read_frame()


def test_end_of_stream_mid_header_is_short_read():
    reader = FrameReader(_receive_from(b"##\x00"))

    with pytest.raises(ShortRead):
        reader.read_frame()


def test_stalled_frame_times_out():
    data = encode_frame(MessageType.ENTROPY, b"12345678")
    reader = FrameReader(_receive_from(data[:10], then_eof=False), frame_timeout=0.05)

    with pytest.raises(ShortRead):
        reader.read_frame()


def test_no_frame_timeout_waits_out_a_stall():
    data = encode_frame(MessageType.ENTROPY, b"12345678")
    idle = [b""] * 20
    reader = FrameReader(
        _receive_from(data[:10], *idle, data[10:]), frame_timeout=None
    )

    frame = reader.read_frame()

    assert frame.message_type is MessageType.ENTROPY
    assert frame.payload == b"12345678"


def test_no_frame_timeout_still_fails_when_stream_ends():
    data = encode_frame(MessageType.ENTROPY, b"12345678")
    reader = FrameReader(_receive_from(data[:10], b"", b""), frame_timeout=None)

    with pytest.raises(ShortRead):
        reader.read_frame()


class _RejectingCodec(RawCodec):
    def parse(self, message_type, payload):
        raise ValueError("truncated message")


def test_codec_failure_is_malformed():
    reader = FrameReader(_receive_from(encode_frame(MessageType.FEATURES, b"\xff")))

    with pytest.raises(Malformed) as excinfo:
        decode_frame(reader, _RejectingCodec())

    assert isinstance(excinfo.value.__cause__, ValueError)


def test_decode_idle_returns_none():
    reader = FrameReader(_receive_from(b"", then_eof=False))

    assert decode_frame(reader, RawCodec()) is None
