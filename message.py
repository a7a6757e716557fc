from datetime import datetime


class Message:
    def __init__(self, topic, payload, qos=0, retain=False, packet_id=None, received_at=None):
        self.topic = topic
        self.payload = bytes(payload)
        self.qos = qos
        self.retain = retain
        self.packet_id = packet_id
        self.received_at = received_at if received_at is not None else datetime.now()

    def __repr__(self):
        return f"<Message topic={self.topic} qos={self.qos} retain={self.retain} bytes={len(self.payload)}>"
