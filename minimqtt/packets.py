"""MQTT 3.1.1 control packet constants and encoders."""

from __future__ import annotations

from enum import IntEnum

MAX_HEADER_SIZE = 5
MAX_REMAINING_LENGTH = 268_435_455
MAX_STRING_LENGTH = 0xFFFF

PROTOCOL_NAME = b"MQTT"
PROTOCOL_LEVEL = 4

DEFAULT_KEEP_ALIVE = 15

QOS1_FLAG = 0x02


class PacketType(IntEnum):
    """Control packet types, already shifted into the high nibble."""

    CONNECT = 1 << 4
    CONNACK = 2 << 4
    PUBLISH = 3 << 4
    PUBACK = 4 << 4
    PUBREC = 5 << 4
    PUBREL = 6 << 4
    PUBCOMP = 7 << 4
    SUBSCRIBE = 8 << 4
    SUBACK = 9 << 4
    UNSUBSCRIBE = 10 << 4
    UNSUBACK = 11 << 4
    PINGREQ = 12 << 4
    PINGRESP = 13 << 4
    DISCONNECT = 14 << 4
    RESERVED = 15 << 4


class ConnectionState(IntEnum):
    """Client connection state; non-negative values mirror CONNACK return codes."""

    CONNECTION_TIMEOUT = -4
    CONNECTION_LOST = -3
    CONNECT_FAILED = -2
    DISCONNECTED = -1
    CONNECTED = 0
    CONNECT_BAD_PROTOCOL = 1
    CONNECT_BAD_CLIENT_ID = 2
    CONNECT_UNAVAILABLE = 3
    CONNECT_BAD_CREDENTIALS = 4
    CONNECT_UNAUTHORIZED = 5


def _as_bytes(data: str | bytes | bytearray | memoryview) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _check_msg_id(msg_id: int) -> None:
    if not 0 <= msg_id <= 0xFFFF:
        raise ValueError(f"message id out of range: {msg_id}")


def encode_remaining_length(length: int) -> bytes:
    """Encode a remaining-length value with the MQTT variable-length scheme."""
    if not 0 <= length <= MAX_REMAINING_LENGTH:
        raise ValueError(f"remaining length out of range: {length}")
    encoded = bytearray()
    while True:
        digit = length & 0x7F
        length >>= 7
        if length:
            digit |= 0x80
        encoded.append(digit)
        if not length:
            return bytes(encoded)


def encode_string(text: str | bytes) -> bytes:
    """Encode a string as a two-byte big-endian length followed by its bytes."""
    data = _as_bytes(text)
    if len(data) > MAX_STRING_LENGTH:
        raise ValueError(f"string too long: {len(data)} bytes")
    return len(data).to_bytes(2, "big") + data


def build_packet(header: int, body: bytes = b"") -> bytes:
    """Prefix a packet body with its fixed header and remaining length."""
    if not 0 <= header <= 0xFF:
        raise ValueError(f"header byte out of range: {header}")
    body = bytes(body)
    return bytes([header]) + encode_remaining_length(len(body)) + body


def connect_packet(
    client_id: str | bytes,
    user: str | bytes | None = None,
    password: str | bytes | None = None,
    will_topic: str | bytes | None = None,
    will_qos: int = 0,
    will_retain: bool = False,
    will_message: str | bytes | None = None,
    clean_session: bool = True,
    keep_alive: int = DEFAULT_KEEP_ALIVE,
) -> bytes:
    """Build a CONNECT packet.

    The password is only sent when a user name is given, as the protocol
    forbids a password without a user name.
    """
    if not 0 <= keep_alive <= 0xFFFF:
        raise ValueError(f"keep alive out of range: {keep_alive}")

    flags = 0
    if will_topic:
        if not 0 <= will_qos <= 2:
            raise ValueError(f"invalid will QoS: {will_qos}")
        flags = 0x04 | (will_qos << 3) | (int(bool(will_retain)) << 5)
    if clean_session:
        flags |= 0x02
    if user is not None:
        flags |= 0x80
        if password is not None:
            flags |= 0x40

    body = bytearray(encode_string(PROTOCOL_NAME))
    body.append(PROTOCOL_LEVEL)
    body.append(flags)
    body += keep_alive.to_bytes(2, "big")
    body += encode_string(client_id)
    if will_topic:
        body += encode_string(will_topic)
        body += encode_string(will_message if will_message is not None else b"")
    if user is not None:
        body += encode_string(user)
        if password is not None:
            body += encode_string(password)
    return build_packet(PacketType.CONNECT, bytes(body))


def publish_packet(
    topic: str | bytes,
    payload: str | bytes = b"",
    retained: bool = False,
) -> bytes:
    """Build a QoS 0 PUBLISH packet."""
    header = PacketType.PUBLISH | (1 if retained else 0)
    return build_packet(header, encode_string(topic) + _as_bytes(payload))


def subscribe_packet(msg_id: int, topic: str | bytes, qos: int = 0) -> bytes:
    """Build a SUBSCRIBE packet for a single topic; only QoS 0 and 1 are allowed."""
    if qos not in (0, 1):
        raise ValueError(f"unsupported subscription QoS: {qos}")
    _check_msg_id(msg_id)
    body = msg_id.to_bytes(2, "big") + encode_string(topic) + bytes([qos])
    return build_packet(PacketType.SUBSCRIBE | QOS1_FLAG, body)


def unsubscribe_packet(msg_id: int, topic: str | bytes) -> bytes:
    """Build an UNSUBSCRIBE packet for a single topic."""
    _check_msg_id(msg_id)
    body = msg_id.to_bytes(2, "big") + encode_string(topic)
    return build_packet(PacketType.UNSUBSCRIBE | QOS1_FLAG, body)


def puback_packet(msg_id: int) -> bytes:
    """Build a PUBACK packet acknowledging the given message id."""
    _check_msg_id(msg_id)
    return build_packet(PacketType.PUBACK, msg_id.to_bytes(2, "big"))