class Subscription:
    def __init__(self, topic, qos=0):
        if qos not in (0, 1, 2):
            raise ValueError(f"Invalid QoS {qos} for topic filter '{topic}'")
        self.topic = topic
        self.qos = qos

    def __repr__(self):
        return f"<Subscription topic={self.topic} qos={self.qos}>"
