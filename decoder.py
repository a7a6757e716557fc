import struct

# MQTT 5 property identifiers and how their values are encoded
PROPERTY_TYPES = {
    0x01: ("payload_format_indicator", "byte"),
    0x02: ("message_expiry_interval", "four_byte"),
    0x03: ("content_type", "string"),
    0x08: ("response_topic", "string"),
    0x09: ("correlation_data", "binary"),
    0x0B: ("subscription_identifier", "varint"),
    0x11: ("session_expiry_interval", "four_byte"),
    0x12: ("assigned_client_identifier", "string"),
    0x13: ("server_keep_alive", "two_byte"),
    0x15: ("authentication_method", "string"),
    0x16: ("authentication_data", "binary"),
    0x17: ("request_problem_information", "byte"),
    0x18: ("will_delay_interval", "four_byte"),
    0x19: ("request_response_information", "byte"),
    0x1A: ("response_information", "string"),
    0x1C: ("server_reference", "string"),
    0x1F: ("reason_string", "string"),
    0x21: ("receive_maximum", "two_byte"),
    0x22: ("topic_alias_maximum", "two_byte"),
    0x23: ("topic_alias", "two_byte"),
    0x24: ("maximum_qos", "byte"),
    0x25: ("retain_available", "byte"),
    0x26: ("user_property", "string_pair"),
    0x27: ("maximum_packet_size", "four_byte"),
    0x28: ("wildcard_subscription_available", "byte"),
    0x29: ("subscription_identifier_available", "byte"),
    0x2A: ("shared_subscription_available", "byte"),
}

# Properties which are allowed more than once, collected into lists
REPEATABLE_PROPERTIES = {"user_property", "subscription_identifier"}


class MQTTDecoder:
    def decode_mqtt_packet(self, data):
        if not data:
            raise ValueError("Empty packet")
        packet_type = data[0] >> 4
        if packet_type == 2:  # CONNACK
            return self._decode_connack(data)
        elif packet_type == 3:  # PUBLISH
            return self._decode_publish(data)
        elif packet_type == 6:  # PUBREL
            return self._decode_pubrel(data)
        elif packet_type == 9:  # SUBACK
            return self._decode_suback(data)
        elif packet_type == 13:  # PINGRESP
            return {"packet_type": "PINGRESP"}
        elif packet_type == 14:  # DISCONNECT
            return self._decode_disconnect(data)
        else:
            raise ValueError(f"Unsupported packet type {packet_type}")

    def _decode_remaining_length(self, data, index):
        multiplier = 1
        value = 0
        for _ in range(4):
            if index >= len(data):
                raise ValueError(f"Not enough data to decode variable length integer at index {index}")
            encoded_byte = data[index]
            index += 1
            value += (encoded_byte & 127) * multiplier
            if (encoded_byte & 128) == 0:
                return value, index
            multiplier *= 128
        raise ValueError("Malformed variable length integer")

    def _decode_fixed_header(self, data):
        remaining_length, index = self._decode_remaining_length(data, 1)
        end_index = index + remaining_length
        if end_index > len(data):
            raise ValueError(f"Packet announces {remaining_length} bytes but only {len(data) - index} are present")
        return index, end_index

    def _decode_integer(self, data, index, size):
        if index + size > len(data):
            raise ValueError(f"Not enough data to decode {size} byte integer at index {index}")
        value = int.from_bytes(data[index:index + size], "big")
        return value, index + size

    def _decode_string(self, data, index):
        if index + 2 > len(data):
            raise ValueError(f"Not enough data to decode string length at index {index}")
        str_len = struct.unpack("!H", data[index:index + 2])[0]
        index += 2
        if index + str_len > len(data):
            raise ValueError(f"Not enough data to decode string of length {str_len} at index {index}")
        try:
            return bytes(data[index:index + str_len]).decode("utf-8"), index + str_len
        except UnicodeDecodeError as e:
            raise ValueError(f"Malformed UTF-8 string at index {index}") from e

    def _decode_binary_data(self, data, index):
        if index + 2 > len(data):
            raise ValueError(f"Not enough data to decode binary data length at index {index}")
        data_len = struct.unpack("!H", data[index:index + 2])[0]
        index += 2
        if index + data_len > len(data):
            raise ValueError(f"Not enough data to decode binary data of length {data_len} at index {index}")
        return bytes(data[index:index + data_len]), index + data_len

    def _decode_property_value(self, data, index, value_type):
        if value_type == "byte":
            return self._decode_integer(data, index, 1)
        elif value_type == "two_byte":
            return self._decode_integer(data, index, 2)
        elif value_type == "four_byte":
            return self._decode_integer(data, index, 4)
        elif value_type == "varint":
            return self._decode_remaining_length(data, index)
        elif value_type == "string":
            return self._decode_string(data, index)
        elif value_type == "binary":
            return self._decode_binary_data(data, index)
        key, index = self._decode_string(data, index)
        value, index = self._decode_string(data, index)
        return (key, value), index

    def _decode_properties(self, data, index):
        properties = {}
        prop_length, index = self._decode_remaining_length(data, index)
        end_index = index + prop_length
        if end_index > len(data):
            raise ValueError(f"Properties of length {prop_length} exceed the packet at index {index}")

        while index < end_index:
            prop_id = data[index]
            index += 1
            if prop_id not in PROPERTY_TYPES:
                raise ValueError(f"Malformed property with unknown ID {prop_id:#04x} at index {index - 1}")

            name, value_type = PROPERTY_TYPES[prop_id]
            value, index = self._decode_property_value(data, index, value_type)
            if name in REPEATABLE_PROPERTIES:
                properties.setdefault(name, []).append(value)
            else:
                properties[name] = value

        if index != end_index:
            raise ValueError("Property value runs past the end of the properties")
        return properties, index

    def _decode_connack(self, data):
        index, end_index = self._decode_fixed_header(data)
        if end_index - index < 2:
            raise ValueError("Malformed CONNACK packet")

        connect_ack_flags = data[index]
        reason_code = data[index + 1]
        index += 2

        properties = {}
        if index < end_index:
            properties, index = self._decode_properties(data, index)

        return {
            "packet_type": "CONNACK",
            "session_present": bool(connect_ack_flags & 0x01),
            "reason_code": reason_code,
            "properties": properties
        }

    def _decode_publish(self, data):
        index, end_index = self._decode_fixed_header(data)

        # Flags of the fixed header: DUP (bit 3), QoS (bits 1 and 2), RETAIN (bit 0)
        dup = bool(data[0] & 0b00001000)
        qos = (data[0] & 0b00000110) >> 1
        retain = bool(data[0] & 0b00000001)
        if qos == 3:
            raise ValueError("Malformed PUBLISH packet with QoS 3")

        # Decode the topic name
        topic_name, index = self._decode_string(data, index)

        # Decode packet identifier if QoS > 0
        packet_identifier = None
        if qos > 0:
            packet_identifier, index = self._decode_integer(data, index, 2)

        # Decode properties (for MQTT 5.0)
        properties, index = self._decode_properties(data, index)
        if index > end_index:
            raise ValueError("Malformed PUBLISH packet")

        # The payload stays raw, it is formatted for display later
        payload = bytes(data[index:end_index])

        return {
            "packet_type": "PUBLISH",
            "dup": dup,
            "retain": retain,
            "topic_name": topic_name,
            "packet_identifier": packet_identifier,
            "qos": qos,
            "properties": properties,
            "payload": payload
        }

    def _decode_pubrel(self, data):
        index, end_index = self._decode_fixed_header(data)
        packet_id, index = self._decode_integer(data, index, 2)

        # Reason code is omitted when it is 0x00 (Success)
        reason_code = data[index] if index < end_index else 0x00
        return {
            "packet_type": "PUBREL",
            "packet_identifier": packet_id,
            "reason_code": reason_code
        }

    def _decode_suback(self, data):
        index, end_index = self._decode_fixed_header(data)
        packet_identifier, index = self._decode_integer(data, index, 2)
        properties, index = self._decode_properties(data, index)

        return {
            "packet_type": "SUBACK",
            "packet_identifier": packet_identifier,
            "properties": properties,
            "reason_codes": list(data[index:end_index])
        }

    def _decode_disconnect(self, data):
        index, end_index = self._decode_fixed_header(data)

        reason_code = 0x00
        properties = {}
        if index < end_index:
            reason_code = data[index]
            index += 1
        if index < end_index:
            properties, _ = self._decode_properties(data, index)

        return {
            "packet_type": "DISCONNECT",
            "reason_code": reason_code,
            "properties": properties
        }
