"""Configuration loading and validation."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

TRANSPORTS = ("stream", "hid", "serial")


@dataclass
class StreamConfig:
    host: str = "localhost"
    port: int = 3000
    connect_timeout: float = 5.0


@dataclass
class HidConfig:
    vendor_id: int = 0x10C4
    product_id: int = 0xEA80
    serial_number: str | None = None
    read_timeout_ms: int = 500


@dataclass
class SerialConfig:
    port: str
    baud: int = 115200


@dataclass
class EngineConfig:
    queue_size: int = 32
    shutdown_grace: float = 1.0
    frame_timeout: float | None = 5.0


@dataclass
class ClientConfig:
    response_timeout: float = 5.0


@dataclass
class Config:
    transport: str = "stream"
    stream: StreamConfig = field(default_factory=StreamConfig)
    hid: HidConfig = field(default_factory=HidConfig)
    serial: SerialConfig | None = None
    engine: EngineConfig = field(default_factory=EngineConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _positive_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    errors = []

    transport = raw.get("transport", "stream")
    if transport not in TRANSPORTS:
        errors.append(f"transport must be one of {', '.join(TRANSPORTS)}")

    stream_raw = raw.get("stream") or {}
    port = stream_raw.get("port", 3000)
    if not isinstance(port, int) or not 0 < port < 65536:
        errors.append("stream.port must be between 1 and 65535")
    if not _positive_number(stream_raw.get("connect_timeout", 5.0)):
        errors.append("stream.connect_timeout must be a positive number")

    hid_raw = raw.get("hid") or {}
    for key in ("vendor_id", "product_id"):
        value = hid_raw.get(key, 0)
        if not isinstance(value, int) or not 0 <= value <= 0xFFFF:
            errors.append(f"hid.{key} must be a 16-bit integer")
    if not _positive_int(hid_raw.get("read_timeout_ms", 500)):
        errors.append("hid.read_timeout_ms must be a positive integer")

    serial_raw = raw.get("serial")
    if transport == "serial":
        if not serial_raw:
            errors.append("missing 'serial' section")
        elif "port" not in serial_raw:
            errors.append("serial.port is required")
    if serial_raw and not _positive_int(serial_raw.get("baud", 115200)):
        errors.append("serial.baud must be a positive integer")

    engine_raw = raw.get("engine") or {}
    if not _positive_int(engine_raw.get("queue_size", 32)):
        errors.append("engine.queue_size must be a positive integer")
    if not _positive_number(engine_raw.get("shutdown_grace", 1.0)):
        errors.append("engine.shutdown_grace must be a positive number")
    # null disables the mid-frame stall limit
    frame_timeout = engine_raw.get("frame_timeout", 5.0)
    if frame_timeout is not None and not _positive_number(frame_timeout):
        errors.append("engine.frame_timeout must be a positive number or null")

    client_raw = raw.get("client") or {}
    if not _positive_number(client_raw.get("response_timeout", 5.0)):
        errors.append("client.response_timeout must be a positive number")

    if errors:
        raise ValueError(f"configuration validation failed: {'; '.join(errors)}")

    stream = StreamConfig(
        host=stream_raw.get("host", "localhost"),
        port=port,
        connect_timeout=stream_raw.get("connect_timeout", 5.0),
    )

    # YAML reads all-digit serial numbers as integers
    serial_number = hid_raw.get("serial_number")
    if serial_number is not None:
        serial_number = str(serial_number)

    hid = HidConfig(
        vendor_id=hid_raw.get("vendor_id", 0x10C4),
        product_id=hid_raw.get("product_id", 0xEA80),
        serial_number=serial_number,
        read_timeout_ms=hid_raw.get("read_timeout_ms", 500),
    )

    serial = None
    if serial_raw and "port" in serial_raw:
        serial = SerialConfig(
            port=serial_raw["port"],
            baud=serial_raw.get("baud", 115200),
        )

    engine = EngineConfig(
        queue_size=engine_raw.get("queue_size", 32),
        shutdown_grace=engine_raw.get("shutdown_grace", 1.0),
        frame_timeout=frame_timeout,
    )

    client = ClientConfig(response_timeout=client_raw.get("response_timeout", 5.0))

    return Config(
        transport=transport,
        stream=stream,
        hid=hid,
        serial=serial,
        engine=engine,
        client=client,
    )
