"""Events delivered to listeners."""

from dataclasses import dataclass
from enum import Enum

from .protocol import MessageType


class SystemEventKind(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    EOF = "eof"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProtocolEvent:
    """A message received from the signer."""

    message_type: MessageType
    message: object


@dataclass(frozen=True)
class SystemEvent:
    """A connection lifecycle change raised by the engine itself."""

    kind: SystemEventKind


Event = ProtocolEvent | SystemEvent
