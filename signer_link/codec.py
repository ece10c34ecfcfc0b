"""Payload codecs.

The link never looks inside a message. It asks a codec for the message type,
the serialized payload, and for parsing received payloads back into messages.
"""

from dataclasses import dataclass
from typing import Protocol

from .protocol import MessageType


class MessageCodec(Protocol):
    """Converts between structured messages and frame payloads."""

    def message_type_of(self, message: object) -> MessageType: ...

    def serialize(self, message: object) -> bytes: ...

    def parse(self, message_type: MessageType, payload: bytes) -> object: ...

    def new_message(self, message_type: MessageType) -> object: ...


@dataclass(frozen=True)
class RawMessage:
    """A message carried as its undecoded payload."""

    message_type: MessageType
    payload: bytes = b""


class RawCodec:
    """Passes payloads through untouched."""

    def message_type_of(self, message: RawMessage) -> MessageType:
        return message.message_type

    def serialize(self, message: RawMessage) -> bytes:
        return bytes(message.payload)

    def parse(self, message_type: MessageType, payload: bytes) -> RawMessage:
        return RawMessage(message_type, bytes(payload))

    def new_message(self, message_type: MessageType) -> RawMessage:
        return RawMessage(message_type)


class ProtobufCodec:
    """Codec over generated protocol buffer classes.

    ``classes`` maps each message type to its generated message class. Payloads
    of types without a class are parsed as RawMessage.
    """

    def __init__(self, classes: dict[MessageType, type]) -> None:
        self._classes = dict(classes)
        self._types = {cls: message_type for message_type, cls in self._classes.items()}

    def message_type_of(self, message: object) -> MessageType:
        if isinstance(message, RawMessage):
            return message.message_type
        try:
            return self._types[type(message)]
        except KeyError:
            raise ValueError(
                f"no message type registered for {type(message).__name__}"
            ) from None

    def serialize(self, message: object) -> bytes:
        if isinstance(message, RawMessage):
            return bytes(message.payload)
        return message.SerializeToString()

    def parse(self, message_type: MessageType, payload: bytes) -> object:
        cls = self._classes.get(message_type)
        if cls is None:
            return RawMessage(message_type, bytes(payload))
        return cls.FromString(payload)

    def new_message(self, message_type: MessageType) -> object:
        cls = self._classes.get(message_type)
        if cls is None:
            return RawMessage(message_type)
        return cls()
