import pytest

from minimqtt.packets import (
    ConnectionState,
    PacketType,
    build_packet,
    connect_packet,
    encode_remaining_length,
    encode_string,
    publish_packet,
    puback_packet,
    subscribe_packet,
    unsubscribe_packet,
)

# Offset of the connect flags byte in a short CONNECT packet:
# fixed header (2) + protocol name (6) + protocol level (1).
FLAGS_INDEX = 9


@pytest.mark.parametrize(
    "value, size",
    [(0, 1), (127, 1), (128, 2), (16383, 2), (16384, 3), (2097151, 3), (2097152, 4), (268435455, 4)],
)
def test_remaining_length_sizes_and_continuation_bits(value, size):
    encoded = encode_remaining_length(value)
    assert len(encoded) == size
    assert all(b & 0x80 for b in encoded[:-1])
    assert encoded[-1] & 0x80 == 0


@pytest.mark.parametrize("value", [0, 5, 127, 128, 300, 16384, 268435455])
def test_remaining_length_digits_reassemble(value):
    encoded = encode_remaining_length(value)
    total = sum((b & 0x7F) << (7 * i) for i, b in enumerate(encoded))
    assert total == value


@pytest.mark.parametrize("value", [-1, 268435456])
def test_remaining_length_out_of_range(value):
    with pytest.raises(ValueError):
        encode_remaining_length(value)


def test_encode_string_topic():
    assert encode_string("topic") == b"\x00\x05topic"


def test_encode_string_accepts_bytes_and_str_alike():
    assert encode_string(b"client_test1") == encode_string("client_test1")


def test_encode_string_too_long():
    with pytest.raises(ValueError):
        encode_string(b"a" * 65536)


def test_build_packet_prefixes_header_and_length():
    body = b"x" * 200
    packet = build_packet(PacketType.PUBLISH, body)
    assert packet[0] == PacketType.PUBLISH
    assert packet[1:3] == encode_remaining_length(200)
    assert packet[3:] == body


def test_build_packet_rejects_bad_header():
    with pytest.raises(ValueError):
        build_packet(0x100, b"")


def test_publish_packet_matches_wire_bytes():
    expected = bytes(
        [0x30, 0xE, 0x0, 0x5, 0x74, 0x6F, 0x70, 0x69, 0x63, 0x70, 0x61, 0x79, 0x6C, 0x6F, 0x61, 0x64]
    )
    assert publish_packet("topic", "payload") == expected


def test_publish_retained_sets_low_bit():
    plain = publish_packet("topic", b"payload")
    retained = publish_packet("topic", b"payload", retained=True)
    assert retained[0] == plain[0] | 1
    assert retained[1:] == plain[1:]


def test_puback_packet_matches_wire_bytes():
    assert puback_packet(0x1234) == bytes([0x40, 0x2, 0x12, 0x34])


def test_subscribe_packet_layout():
    packet = subscribe_packet(0x1234, "topic", 1)
    assert packet[0] == PacketType.SUBSCRIBE | 0x02
    assert packet[2:4] == bytes([0x12, 0x34])
    assert packet[4:-1] == encode_string("topic")
    assert packet[-1] == 1
    assert packet[1] == len(packet) - 2


def test_subscribe_rejects_qos2():
    with pytest.raises(ValueError):
        subscribe_packet(1, "topic", 2)


def test_unsubscribe_packet_layout():
    packet = unsubscribe_packet(0x1234, "topic")
    assert packet[0] == PacketType.UNSUBSCRIBE | 0x02
    assert packet[2:4] == bytes([0x12, 0x34])
    assert packet[4:] == encode_string("topic")


@pytest.mark.parametrize("msg_id", [-1, 65536])
def test_message_id_out_of_range(msg_id):
    with pytest.raises(ValueError):
        puback_packet(msg_id)
    with pytest.raises(ValueError):
        unsubscribe_packet(msg_id, "topic")


def test_connect_packet_minimal_structure():
    packet = connect_packet("client_test1")
    assert packet[0] == PacketType.CONNECT
    assert packet[1] == len(packet) - 2
    assert packet[2:8] == encode_string("MQTT")
    assert packet[8] == 4
    assert packet[FLAGS_INDEX] == 0x02
    assert packet[10:12] == (15).to_bytes(2, "big")
    assert packet[12:] == encode_string("client_test1")


def test_connect_keep_alive_and_unclean_session():
    packet = connect_packet("id", clean_session=False, keep_alive=300)
    assert packet[FLAGS_INDEX] & 0x02 == 0
    assert packet[10:12] == (300).to_bytes(2, "big")


def test_connect_with_credentials():
    password = "password"
    packet = connect_packet("id", user="user", password=password)
    flags = packet[FLAGS_INDEX]
    assert flags & 0x80
    assert flags & 0x40
    assert packet.endswith(encode_string("id") + encode_string("user") + encode_string(password))


def test_connect_password_ignored_without_user():
    password = "password"
    packet = connect_packet("id", password=password)
    assert packet[FLAGS_INDEX] & 0xC0 == 0
    assert packet == connect_packet("id")


def test_connect_with_will():
    packet = connect_packet(
        "id", will_topic="will", will_qos=1, will_retain=True, will_message="bye"
    )
    flags = packet[FLAGS_INDEX]
    assert flags & 0x04
    assert (flags >> 3) & 0x03 == 1
    assert flags & 0x20
    assert packet.endswith(encode_string("id") + encode_string("will") + encode_string("bye"))


def test_connect_rejects_bad_will_qos():
    with pytest.raises(ValueError):
        connect_packet("id", will_topic="will", will_qos=3, will_message="bye")


def test_connect_rejects_bad_keep_alive():
    with pytest.raises(ValueError):
        connect_packet("id", keep_alive=70000)


def test_connection_state_from_connack_code():
    assert ConnectionState(4) is ConnectionState.CONNECT_BAD_CREDENTIALS
    assert ConnectionState(-1) is ConnectionState.DISCONNECTED


def test_packet_type_from_header_nibble():
    assert PacketType(0x32 & 0xF0) is PacketType.PUBLISH
    assert PacketType(0xD0) is PacketType.PINGRESP