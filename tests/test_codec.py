"""
Tests for the MQTT 5 packets sent by the client and the packets decoded from the broker.
"""

import pytest

from decoder import MQTTDecoder
from packet_creator import (
    create_connect_packet,
    create_pingreq_packet,
    create_puback_packet,
    create_subscribe_packet,
    encode_remaining_length,
)
from subscription import Subscription


@pytest.fixture
def decoder():
    return MQTTDecoder()


class TestPacketCreator:
    @pytest.mark.parametrize("length, encoded", [
        (0, b"\x00"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (16383, b"\xff\x7f"),
        (16384, b"\x80\x80\x01"),
    ])
    def test_encode_remaining_length(self, length, encoded):
        assert bytes(encode_remaining_length(length)) == encoded

    def test_connect_packet(self):
        packet = create_connect_packet("abc", keep_alive=30)

        assert packet == (
            b"\x10\x10"              # CONNECT, remaining length 16
            b"\x00\x04MQTT\x05"      # protocol name and level
            b"\x02"                  # clean start
            b"\x00\x1e"              # keep alive
            b"\x00"                  # no properties
            b"\x00\x03abc"           # client id
        )

    def test_connect_packet_with_credentials(self):
        packet = create_connect_packet("c", username="user", password="secret")

        assert packet[9] == 0x02 | 0x40 | 0x80
        assert packet.endswith(b"\x00\x04user\x00\x06secret")

    def test_subscribe_packet(self):
        packet = create_subscribe_packet(1, [Subscription("a/#", 1), Subscription("b", 2)])

        assert packet == b"\x82\x0d\x00\x01\x00\x00\x03a/#\x01\x00\x01b\x02"

    def test_subscribe_needs_topics(self):
        with pytest.raises(ValueError):
            create_subscribe_packet(1, [])

    def test_small_packets(self):
        assert create_pingreq_packet() == b"\xc0\x00"
        assert create_puback_packet(258) == b"\x40\x04\x01\x02\x00\x00"


class TestDecoder:
    def test_connack(self, decoder):
        packet = decoder.decode_mqtt_packet(b"\x20\x08\x01\x00\x05\x21\x00\x0a\x24\x01")

        assert packet == {
            "packet_type": "CONNACK",
            "session_present": True,
            "reason_code": 0,
            "properties": {"receive_maximum": 10, "maximum_qos": 1},
        }

    def test_publish_keeps_binary_payload(self, decoder):
        packet = decoder.decode_mqtt_packet(b"\x3b\x0a\x00\x01t\x00\x05\x00\xff\x00\x80\x01")

        assert packet["topic_name"] == "t"
        assert packet["qos"] == 1
        assert packet["retain"] is True
        assert packet["dup"] is True
        assert packet["packet_identifier"] == 5
        assert packet["payload"] == b"\xff\x00\x80\x01"

    def test_publish_with_properties(self, decoder):
        data = b"\x30\x14\x00\x01t\x0e\x01\x01\x26\x00\x01k\x00\x01v\x0b\x02\x03\x00\x00{}"

        packet = decoder.decode_mqtt_packet(data)

        assert packet["properties"] == {
            "payload_format_indicator": 1,
            "user_property": [("k", "v")],
            "subscription_identifier": [2],
            "content_type": "",
        }
        assert packet["payload"] == b"{}"

    def test_suback(self, decoder):
        packet = decoder.decode_mqtt_packet(b"\x90\x05\x00\x01\x00\x02\x80")

        assert packet["packet_identifier"] == 1
        assert packet["reason_codes"] == [2, 0x80]

    def test_pubrel_without_reason_code(self, decoder):
        packet = decoder.decode_mqtt_packet(b"\x62\x02\x00\x09")

        assert packet == {"packet_type": "PUBREL", "packet_identifier": 9, "reason_code": 0}

    def test_pingresp(self, decoder):
        assert decoder.decode_mqtt_packet(b"\xd0\x00") == {"packet_type": "PINGRESP"}

    def test_disconnect(self, decoder):
        assert decoder.decode_mqtt_packet(b"\xe0\x00")["reason_code"] == 0
        assert decoder.decode_mqtt_packet(b"\xe0\x01\x8b")["reason_code"] == 0x8B

    @pytest.mark.parametrize("data", [
        b"",
        b"\x10\x00",                        # CONNECT is never sent by a broker
        b"\x30\x05\x00\x01t",               # shorter than announced
        b"\x30\x03\x00\x09t",               # topic length beyond the packet
        b"\x30\x05\x00\x01t\x01\x7f",       # unknown property
        b"\x36\x04\x00\x01t\x00",           # QoS 3
        b"\x20\x02\x00",                    # truncated CONNACK
    ])
    def test_malformed_packets(self, decoder, data):
        with pytest.raises(ValueError):
            decoder.decode_mqtt_packet(data)
