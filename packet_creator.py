import struct

PROTOCOL_NAME = "MQTT"
PROTOCOL_LEVEL = 5  # MQTT 5.0


def encode_remaining_length(length):
    encoded = bytearray()
    while True:
        byte = length % 128
        length //= 128
        if length > 0:
            byte |= 0x80
        encoded.append(byte)
        if length == 0:
            break
    return encoded


def encode_string(value):
    encoded = value.encode('utf-8')
    if len(encoded) > 0xFFFF:
        raise ValueError(f"String of {len(encoded)} bytes does not fit into an MQTT string")
    return len(encoded).to_bytes(2, 'big') + encoded


def create_connect_packet(
        client_id,
        keep_alive=60,
        clean_start=True,
        username=None,
        password=None,
        session_expiry_interval=None,
        receive_maximum=None
):
    """
    Creates a CONNECT packet for MQTT v5.

    :param client_id: The client identifier, may be empty to let the broker assign one.
    :param keep_alive: Keep alive interval in seconds.
    :param clean_start: Start without any session state left on the broker.
    :param username: Optional user name.
    :param password: Optional password.
    :return: The CONNECT packet as bytes.
    """
    # Packet Type
    packet_type = 0x10  # CONNECT packet type

    connect_flags = 0
    if clean_start:
        connect_flags |= 0x02
    if password is not None:
        connect_flags |= 0x40
    if username is not None:
        connect_flags |= 0x80

    # Variable Header
    variable_header = bytearray(encode_string(PROTOCOL_NAME))
    variable_header.append(PROTOCOL_LEVEL)
    variable_header.append(connect_flags)
    variable_header.extend(struct.pack("!H", keep_alive))

    # Properties
    properties = bytearray()

    if session_expiry_interval is not None:
        properties.extend([0x11])  # Property identifier for session expiry interval
        properties.extend(session_expiry_interval.to_bytes(4, 'big'))

    if receive_maximum is not None:
        properties.extend([0x21])  # Property identifier for receive maximum
        properties.extend(receive_maximum.to_bytes(2, 'big'))

    # Add property length to the start of the properties section
    variable_header.extend(encode_remaining_length(len(properties)) + properties)

    # Payload: Client ID, then User Name and Password if flagged
    payload = bytearray(encode_string(client_id))
    if username is not None:
        payload.extend(encode_string(username))
    if password is not None:
        password_bytes = password.encode('utf-8') if isinstance(password, str) else bytes(password)
        payload.extend(len(password_bytes).to_bytes(2, 'big'))
        payload.extend(password_bytes)

    # Calculate Remaining Length
    remaining_length = len(variable_header) + len(payload)
    fixed_header = bytearray([packet_type]) + encode_remaining_length(remaining_length)

    return bytes(fixed_header + variable_header + payload)


def create_subscribe_packet(packet_id, subscriptions):
    """
    Creates a SUBSCRIBE packet for MQTT v5.

    :param packet_id: The packet identifier, echoed by the SUBACK.
    :param subscriptions: List of Subscription objects (topic filter and QoS).
    :return: The SUBSCRIBE packet as bytes.
    """
    if not subscriptions:
        raise ValueError("SUBSCRIBE needs at least one topic filter")

    # Fixed header for SUBSCRIBE (Packet Type: 8, Flags: 0010 are mandatory)
    packet_type = 0x82

    # Variable header: Packet Identifier (2 bytes) + Properties Length (1 byte)
    variable_header = struct.pack("!H", packet_id) + b'\x00'  # Properties Length is 0

    # Payload: Topic filter and subscription options for each topic
    payload = bytearray()
    for subscription in subscriptions:
        payload.extend(encode_string(subscription.topic))
        payload.append(subscription.qos & 0x03)

    remaining_length = len(variable_header) + len(payload)
    fixed_header = bytearray([packet_type]) + encode_remaining_length(remaining_length)

    return bytes(fixed_header + variable_header + payload)


def create_pingreq_packet():
    return bytes([0xC0, 0x00])  # PINGREQ packet type with zero remaining length


def create_disconnect_packet(reason_code=0x00):
    # Packet Type
    packet_type = 0xE0  # DISCONNECT packet type
    variable_header = bytes([reason_code])  # Reason code

    # Calculate Remaining Length
    remaining_length = len(variable_header)
    fixed_header = bytearray([packet_type]) + encode_remaining_length(remaining_length)

    return bytes(fixed_header + variable_header)


def _create_ack_packet(packet_type, packet_id, reason_code):
    # PUBACK, PUBREC and PUBCOMP share the layout: Packet Identifier, Reason Code, no Properties
    variable_header = packet_id.to_bytes(2, 'big') + bytes([reason_code])
    properties = encode_remaining_length(0)

    remaining_length = len(variable_header) + len(properties)
    fixed_header = bytearray([packet_type]) + encode_remaining_length(remaining_length)

    return bytes(fixed_header + variable_header + properties)


def create_puback_packet(packet_id, reason_code=0x00):
    return _create_ack_packet(0x40, packet_id, reason_code)


def create_pubrec_packet(packet_id, reason_code=0x00):
    return _create_ack_packet(0x50, packet_id, reason_code)


def create_pubcomp_packet(packet_id, reason_code=0x00):
    return _create_ack_packet(0x70, packet_id, reason_code)
