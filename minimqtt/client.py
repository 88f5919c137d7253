"""A small blocking MQTT 3.1.1 client driven by an application loop."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Optional

from minimqtt.packets import (
    DEFAULT_KEEP_ALIVE,
    MAX_HEADER_SIZE,
    QOS1_FLAG,
    ConnectionState,
    PacketType,
    connect_packet,
    encode_remaining_length,
    encode_string,
    puback_packet,
    publish_packet,
    subscribe_packet,
    unsubscribe_packet,
)

DEFAULT_BUFFER_SIZE = 500
DEFAULT_SOCKET_TIMEOUT = 15
DEFAULT_PORT = 1883

MessageCallback = Callable[[str, bytes], None]


class MQTTError(Exception):
    """Raised when an MQTT operation cannot be carried out."""

    def __init__(self, message: str, state: int | None = None) -> None:
        super().__init__(message)
        self.state = state


class Transport(ABC):
    """A byte-oriented network connection used by the client."""

    @abstractmethod
    def connect(self, host, port: int) -> bool:
        """Open the connection; return whether it succeeded."""

    @abstractmethod
    def connected(self) -> bool:
        """Return whether the connection is open."""

    @abstractmethod
    def available(self) -> int:
        """Return the number of bytes ready to be read."""

    @abstractmethod
    def read(self) -> int:
        """Read and return one byte."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write bytes and return how many were accepted."""

    @abstractmethod
    def flush(self) -> None:
        """Flush pending output."""

    @abstractmethod
    def stop(self) -> None:
        """Close the connection."""


def _as_bytes(data: str | bytes | bytearray) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _state_from_code(code: int) -> ConnectionState | int:
    try:
        return ConnectionState(code)
    except ValueError:
        return code


class PubSubClient:
    """MQTT client that publishes, subscribes and dispatches incoming messages."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        host=None,
        port: int = DEFAULT_PORT,
        callback: Optional[MessageCallback] = None,
        stream: Optional[BinaryIO] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.host = host
        self.port = port
        self.callback = callback
        self.stream = stream
        self.clock = clock
        self.keep_alive = DEFAULT_KEEP_ALIVE
        self.socket_timeout = DEFAULT_SOCKET_TIMEOUT
        self._buffer_size = DEFAULT_BUFFER_SIZE
        self._state: int = ConnectionState.DISCONNECTED
        self._next_msg_id = 0
        self._last_in = 0.0
        self._last_out = 0.0
        self._ping_outstanding = False

    @property
    def state(self) -> ConnectionState | int:
        """Current connection state, or a raw CONNACK code if unknown."""
        return _state_from_code(self._state)

    @property
    def buffer_size(self) -> int:
        """Maximum size of a packet that can be sent or received."""
        return self._buffer_size

    def set_server(self, host, port: int) -> "PubSubClient":
        """Set the broker address; returns the client for chaining."""
        self.host = host
        self.port = port
        return self

    def set_buffer_size(self, size: int) -> None:
        """Change the packet size limit."""
        if size <= 0:
            raise ValueError("buffer size must be positive")
        if size > 0xFFFF:
            raise ValueError(f"buffer size too large: {size}")
        self._buffer_size = size

    def _require_transport(self) -> Transport:
        if self.transport is None:
            raise MQTTError("no transport configured", self._state)
        return self.transport

    def _send(self, data: bytes) -> bool:
        written = self._require_transport().write(data)
        self._last_out = self.clock()
        return written == len(data)

    def _read_byte(self) -> int | None:
        transport = self._require_transport()
        start = self.clock()
        while not transport.available():
            time.sleep(0)
            if self.clock() - start >= self.socket_timeout:
                return None
        return transport.read()

    def _read_packet(self) -> tuple[bytes, int] | None:
        """Read one packet; return its (possibly truncated) bytes and length-field size."""
        first = self._read_byte()
        if first is None:
            return None
        buf = bytearray([first])
        is_publish = (first & 0xF0) == PacketType.PUBLISH
        multiplier = 1
        length = 0
        while True:
            if len(buf) == 5:
                # More than four remaining-length bytes: malformed stream.
                self._state = ConnectionState.DISCONNECTED
                self._require_transport().stop()
                return None
            digit = self._read_byte()
            if digit is None:
                return None
            buf.append(digit)
            length += (digit & 0x7F) * multiplier
            multiplier <<= 7
            if not digit & 0x80:
                break
        llen = len(buf) - 1

        start = 0
        skip = 0
        if is_publish:
            for _ in range(2):
                byte = self._read_byte()
                if byte is None:
                    return None
                buf.append(byte)
            skip = (buf[llen + 1] << 8) | buf[llen + 2]
            start = 2
            if first & QOS1_FLAG:
                skip += 2

        idx = len(buf)
        for _ in range(start, length):
            digit = self._read_byte()
            if digit is None:
                return None
            if self.stream is not None and is_publish and idx - llen - 2 > skip:
                self.stream.write(bytes([digit]))
            if len(buf) < self._buffer_size:
                buf.append(digit)
            idx += 1

        if self.stream is None and idx > self._buffer_size:
            return None
        return bytes(buf), llen

    def connect(
        self,
        client_id: str | bytes,
        user: str | bytes | None = None,
        password: str | bytes | None = None,
        will_topic: str | bytes | None = None,
        will_qos: int = 0,
        will_retain: bool = False,
        will_message: str | bytes | None = None,
        clean_session: bool = True,
    ) -> None:
        """Connect to the broker and wait for its acknowledgement."""
        if self.connected():
            return
        transport = self._require_transport()
        if transport.connected():
            opened = True
        else:
            opened = bool(transport.connect(self.host, self.port))
        if not opened:
            self._state = ConnectionState.CONNECT_FAILED
            raise MQTTError("could not open connection", self._state)

        self._next_msg_id = 1
        packet = connect_packet(
            client_id,
            user,
            password,
            will_topic,
            will_qos,
            will_retain,
            will_message,
            clean_session,
            self.keep_alive,
        )
        body_length = len(packet) - 1 - len(encode_remaining_length(len(packet)))
        # Recompute exactly: header byte plus the remaining-length field precede the body.
        header_length = 1
        while packet[header_length] & 0x80:
            header_length += 1
        body_length = len(packet) - header_length - 1
        if MAX_HEADER_SIZE + body_length > self._buffer_size:
            transport.stop()
            raise MQTTError("connect packet exceeds buffer size", self._state)

        self._send(packet)
        self._last_in = self._last_out = self.clock()

        while not transport.available():
            time.sleep(0)
            if self.clock() - self._last_in >= self.socket_timeout:
                self._state = ConnectionState.CONNECTION_TIMEOUT
                transport.stop()
                raise MQTTError("timed out waiting for CONNACK", self._state)

        result = self._read_packet()
        if result is not None and len(result[0]) == 4:
            code = result[0][3]
            if code == 0:
                self._last_in = self.clock()
                self._ping_outstanding = False
                self._state = ConnectionState.CONNECTED
                return
            self._state = code
        transport.stop()
        raise MQTTError(f"connection refused: {self.state!r}", self._state)

    def disconnect(self) -> None:
        """Send DISCONNECT and close the connection."""
        transport = self._require_transport()
        transport.write(bytes([PacketType.DISCONNECT, 0]))
        self._state = ConnectionState.DISCONNECTED
        transport.flush()
        transport.stop()
        self._last_in = self._last_out = self.clock()

    def publish(
        self,
        topic: str | bytes,
        payload: str | bytes = b"",
        retained: bool = False,
    ) -> None:
        """Publish a QoS 0 message."""
        if not self.connected():
            raise MQTTError("not connected", self._state)
        topic_bytes = _as_bytes(topic)
        payload_bytes = _as_bytes(payload)
        if self._buffer_size < MAX_HEADER_SIZE + 2 + len(topic_bytes) + len(payload_bytes):
            raise MQTTError("message exceeds buffer size", self._state)
        if not self._send(publish_packet(topic_bytes, payload_bytes, retained)):
            raise MQTTError("incomplete write of PUBLISH", self._state)

    def begin_publish(self, topic: str | bytes, length: int, retained: bool = False) -> None:
        """Send the header of a PUBLISH whose payload follows through write()."""
        if not self.connected():
            raise MQTTError("not connected", self._state)
        topic_bytes = encode_string(topic)
        header = PacketType.PUBLISH | (1 if retained else 0)
        data = (
            bytes([header])
            + encode_remaining_length(len(topic_bytes) + length)
            + topic_bytes
        )
        if not self._send(data):
            raise MQTTError("incomplete write of PUBLISH header", self._state)

    def write(self, data: int | bytes | bytearray) -> int:
        """Write raw payload bytes; returns the number written."""
        if isinstance(data, int):
            data = bytes([data])
        written = self._require_transport().write(bytes(data))
        self._last_out = self.clock()
        return written

    def end_publish(self) -> bool:
        """Finish a message begun with begin_publish(); payload is never buffered."""
        return True

    def _next_id(self) -> int:
        self._next_msg_id = self._next_msg_id % 0xFFFF + 1
        return self._next_msg_id

    def subscribe(self, topic: str | bytes, qos: int = 0) -> None:
        """Subscribe to a topic at QoS 0 or 1."""
        topic_bytes = _as_bytes(topic)
        if qos > 1:
            raise ValueError(f"unsupported subscription QoS: {qos}")
        if self._buffer_size < 9 + len(topic_bytes):
            raise MQTTError("topic exceeds buffer size", self._state)
        if not self.connected():
            raise MQTTError("not connected", self._state)
        if not self._send(subscribe_packet(self._next_id(), topic_bytes, qos)):
            raise MQTTError("incomplete write of SUBSCRIBE", self._state)

    def unsubscribe(self, topic: str | bytes) -> None:
        """Unsubscribe from a topic."""
        topic_bytes = _as_bytes(topic)
        if self._buffer_size < 9 + len(topic_bytes):
            raise MQTTError("topic exceeds buffer size", self._state)
        if not self.connected():
            raise MQTTError("not connected", self._state)
        if not self._send(unsubscribe_packet(self._next_id(), topic_bytes)):
            raise MQTTError("incomplete write of UNSUBSCRIBE", self._state)

    def loop(self) -> bool:
        """Service keep-alive and handle one incoming packet; return whether still connected."""
        if not self.connected():
            return False
        transport = self._require_transport()
        now = self.clock()
        if now - self._last_in > self.keep_alive or now - self._last_out > self.keep_alive:
            if self._ping_outstanding:
                self._state = ConnectionState.CONNECTION_TIMEOUT
                transport.stop()
                return False
            transport.write(bytes([PacketType.PINGREQ, 0]))
            self._last_out = now
            self._last_in = now
            self._ping_outstanding = True

        if transport.available():
            result = self._read_packet()
            if result is not None:
                self._last_in = now
                self._dispatch(result[0], result[1], now)
            elif not self.connected():
                return False
        return True

    def _dispatch(self, packet: bytes, llen: int, now: float) -> None:
        kind = packet[0] & 0xF0
        transport = self._require_transport()
        if kind == PacketType.PUBLISH:
            if self.callback is None:
                return
            topic_length = (packet[llen + 1] << 8) | packet[llen + 2]
            topic_end = llen + 3 + topic_length
            topic = packet[llen + 3:topic_end].decode("utf-8", errors="replace")
            if (packet[0] & 0x06) == QOS1_FLAG:
                msg_id = (packet[topic_end] << 8) | packet[topic_end + 1]
                self.callback(topic, packet[topic_end + 2:])
                transport.write(puback_packet(msg_id))
                self._last_out = now
            else:
                self.callback(topic, packet[topic_end:])
        elif kind == PacketType.PINGREQ:
            transport.write(bytes([PacketType.PINGRESP, 0]))
        elif kind == PacketType.PINGRESP:
            self._ping_outstanding = False

    def connected(self) -> bool:
        """Return whether the client holds an established MQTT session."""
        if self.transport is None:
            return False
        if self.transport.connected():
            return self._state == ConnectionState.CONNECTED
        if self._state == ConnectionState.CONNECTED:
            self._state = ConnectionState.CONNECTION_LOST
            self.transport.flush()
            self.transport.stop()
        return False