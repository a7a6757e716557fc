from payload_format import payload_preview

TOPIC_SEPARATOR = "/"


class TopicTreeEntry:
    def __init__(self, topic, messages=0, last_payload=None, entries_below=None):
        self.topic = topic
        self.leaf = topic.split(TOPIC_SEPARATOR)[-1]
        self.messages = messages
        self.last_payload = last_payload
        self.entries_below = entries_below if entries_below is not None else []

        # Aggregates always follow from the children, never set by callers
        self.topics_below = sum(1 + entry.topics_below for entry in self.entries_below)
        self.messages_below = sum(entry.messages + entry.messages_below for entry in self.entries_below)

    @property
    def meta(self):
        if self.last_payload is None:
            return f"({self.topics_below} topics, {self.messages_below} messages)"
        return f"= {payload_preview(self.last_payload)}"

    @property
    def depth(self):
        return self.topic.count(TOPIC_SEPARATOR)

    def __eq__(self, other):
        if not isinstance(other, TopicTreeEntry):
            return NotImplemented
        pairs = [(self, other)]
        while pairs:
            left, right = pairs.pop()
            if (left.topic, left.messages, left.last_payload) != (right.topic, right.messages, right.last_payload):
                return False
            if len(left.entries_below) != len(right.entries_below):
                return False
            pairs.extend(zip(left.entries_below, right.entries_below))
        return True

    def __repr__(self):
        return (
            f"<TopicTreeEntry topic={self.topic} messages={self.messages} "
            f"topics_below={self.topics_below} messages_below={self.messages_below}>"
        )
