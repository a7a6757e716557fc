import logging
import select
import socket
import threading
import time
import uuid

from decoder import MQTTDecoder
from message import Message
from packet_creator import (
    create_connect_packet,
    create_disconnect_packet,
    create_pingreq_packet,
    create_puback_packet,
    create_pubcomp_packet,
    create_pubrec_packet,
    create_subscribe_packet
)

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT = 10  # seconds, for connecting and for reading the rest of a started packet
POLL_INTERVAL = 0.5  # seconds between checks of the shutdown event while idle


class MqttConnectionError(ConnectionError):
    def __init__(self, reason_code):
        super().__init__(f"Broker refused the connection with reason code 0x{reason_code:02X}")
        self.reason_code = reason_code


def _recv_exactly(sock, size):
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            raise ConnectionError("Connection closed by broker")
        chunks.extend(chunk)
    return bytes(chunks)


def read_packet(sock):
    """Reads exactly one MQTT packet (fixed header included) from the socket."""
    header = bytearray(_recv_exactly(sock, 1))

    # Remaining length is a variable length integer of at most 4 bytes
    multiplier = 1
    remaining_length = 0
    for _ in range(4):
        encoded_byte = _recv_exactly(sock, 1)[0]
        header.append(encoded_byte)
        remaining_length += (encoded_byte & 127) * multiplier
        if (encoded_byte & 128) == 0:
            break
        multiplier *= 128
    else:
        raise ValueError("Malformed remaining length")

    return bytes(header) + _recv_exactly(sock, remaining_length)


class MqttClient:
    def __init__(self, host, port, subscriptions, history, client_id=None, username=None, password=None,
                 keep_alive=60, reconnect_delay=5):
        self.host = host
        self.port = port
        self.subscriptions = list(subscriptions)
        self.history = history
        self.client_id = client_id if client_id else f"mqttview-{uuid.uuid4().hex[:8]}"
        self.username = username
        self.password = password
        self.keep_alive = keep_alive
        self.reconnect_delay = reconnect_delay

        self.decoder = MQTTDecoder()
        self.connected = False
        self.last_error = None
        self.shutdown_event = threading.Event()
        self.packet_id_counter = 0
        self.pending_pubrel = set()  # QoS 2 packet ids received but not released yet
        self._sock = None
        self._sock_lock = threading.Lock()
        self._last_sent = 0.0
        self._thread = None

    def start(self):
        self._thread = threading.Thread(target=self.run, name="mqtt-client", daemon=True)
        self._thread.start()

    def run(self):
        """Keeps a session to the broker alive until stop() is called."""
        while not self.shutdown_event.is_set():
            try:
                self.connect()
                self._read_loop()
            except (OSError, ValueError) as e:
                if self.shutdown_event.is_set():
                    break
                self.last_error = str(e)
                logger.error("MQTT session with %s:%s ended: %s", self.host, self.port, e)
            finally:
                self._close_socket()

            if self.shutdown_event.wait(self.reconnect_delay):
                break
            logger.info("Reconnecting to %s:%s", self.host, self.port)

    def connect(self):
        logger.info("Connecting to %s:%s as '%s'", self.host, self.port, self.client_id)
        sock = socket.create_connection((self.host, self.port), timeout=SOCKET_TIMEOUT)
        with self._sock_lock:
            self._sock = sock
        self.pending_pubrel.clear()

        self._send(create_connect_packet(
            self.client_id,
            keep_alive=self.keep_alive,
            username=self.username,
            password=self.password
        ))

        connack = self.decoder.decode_mqtt_packet(read_packet(sock))
        if connack.get("packet_type") != "CONNACK":
            raise ValueError(f"Expected CONNACK, got {connack.get('packet_type')}")
        if connack.get("reason_code") >= 0x80:
            raise MqttConnectionError(connack.get("reason_code"))

        # Broker may override the keep alive interval
        server_keep_alive = connack["properties"].get("server_keep_alive")
        if server_keep_alive is not None:
            self.keep_alive = server_keep_alive

        self.connected = True
        self.last_error = None
        logger.info("Connected to %s:%s", self.host, self.port)

        packet_id = self._generate_packet_id()
        self._send(create_subscribe_packet(packet_id, self.subscriptions))
        logger.info("Subscribing to %s", ", ".join(s.topic for s in self.subscriptions))

    def _read_loop(self):
        sock = self._sock
        while not self.shutdown_event.is_set():
            readable, _, _ = select.select([sock], [], [], POLL_INTERVAL)
            if readable:
                self.handle_packet(self.decoder.decode_mqtt_packet(read_packet(sock)))
            self._ping_if_due()

    def _ping_if_due(self):
        if self.keep_alive and time.monotonic() - self._last_sent >= self.keep_alive / 2:
            self._send(create_pingreq_packet())
            logger.debug("Sent PINGREQ")

    def handle_packet(self, decoded_packet):
        packet_type = decoded_packet.get("packet_type")
        logger.debug("Received %s", packet_type)

        if packet_type == "PUBLISH":
            self._handle_publish(decoded_packet)

        elif packet_type == "PUBREL":
            packet_id = decoded_packet.get("packet_identifier")
            self.pending_pubrel.discard(packet_id)
            self._send(create_pubcomp_packet(packet_id))

        elif packet_type == "SUBACK":
            for subscription, reason_code in zip(self.subscriptions, decoded_packet.get("reason_codes")):
                if reason_code >= 0x80:
                    logger.warning("Broker rejected subscription to '%s' with reason code 0x%02X",
                                   subscription.topic, reason_code)
                else:
                    logger.info("Subscribed to '%s' with QoS %d", subscription.topic, reason_code)

        elif packet_type == "DISCONNECT":
            raise ConnectionError(f"Broker disconnected with reason code 0x{decoded_packet.get('reason_code'):02X}")

        elif packet_type == "CONNACK":
            raise ValueError("Unexpected CONNACK during session")

    def _handle_publish(self, decoded_packet):
        qos = decoded_packet.get("qos")
        packet_id = decoded_packet.get("packet_identifier")

        if qos == 2:
            duplicate = packet_id in self.pending_pubrel
            self.pending_pubrel.add(packet_id)
            self._send(create_pubrec_packet(packet_id))
            if duplicate:
                logger.debug("Ignoring redelivered QoS 2 packet ID %s", packet_id)
                return

        self.history.add(Message(
            topic=decoded_packet.get("topic_name"),
            payload=decoded_packet.get("payload"),
            qos=qos,
            retain=decoded_packet.get("retain"),
            packet_id=packet_id
        ))

        if qos == 1:
            self._send(create_puback_packet(packet_id))

    def _send(self, packet):
        with self._sock_lock:
            if self._sock is None:
                raise ConnectionError("Not connected")
            self._sock.sendall(packet)
            self._last_sent = time.monotonic()

    def _generate_packet_id(self):
        """Generate a new packet ID, ensuring it stays within the valid range."""
        self.packet_id_counter = (self.packet_id_counter + 1) % 65536
        if self.packet_id_counter == 0:
            self.packet_id_counter = 1
        return self.packet_id_counter

    def _close_socket(self):
        self.connected = False
        with self._sock_lock:
            if self._sock is not None:
                self._sock.close()
                self._sock = None

    def stop(self):
        self.shutdown_event.set()
        if self.connected:
            try:
                self._send(create_disconnect_packet())
            except OSError as e:
                logger.debug("Failed to send DISCONNECT: %s", e)
        self._close_socket()
        if self._thread is not None:
            self._thread.join(timeout=SOCKET_TIMEOUT)
        logger.info("MQTT client stopped")
