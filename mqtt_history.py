import logging
import threading
from collections import deque

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


class HistoryUnavailableError(RuntimeError):
    pass


class TopicHistory:
    """Messages of one topic in arrival order, limited to `max_entries`."""

    def __init__(self, entries=(), count=None, max_entries=DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.entries = deque(entries, maxlen=max_entries)
        # Every message ever received, also the evicted ones
        self.count = len(self.entries) if count is None else count

    def append(self, message):
        self.entries.append(message)
        self.count += 1

    @property
    def last(self):
        return self.entries[-1] if self.entries else None

    @property
    def last_payload(self):
        last = self.last
        return last.payload if last is not None else None

    def copy(self):
        return TopicHistory(self.entries, self.count, self.entries.maxlen)

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __repr__(self):
        return f"<TopicHistory count={self.count} stored={len(self.entries)}>"


class MqttHistory:
    def __init__(self, max_entries=DEFAULT_MAX_ENTRIES):
        self.max_entries = max_entries
        self.lock = threading.Lock()  # Shared between the client thread and the UI
        self._topics = {}

    def add(self, message):
        with self.lock:
            topic_history = self._topics.get(message.topic)
            if topic_history is None:
                topic_history = TopicHistory(max_entries=self.max_entries)
                self._topics[message.topic] = topic_history
                logger.info("New topic '%s'", message.topic)
            topic_history.append(message)

    def snapshot(self, timeout=-1):
        """
        Copies the whole history so it can be used without holding the lock.

        :param timeout: Seconds to wait for the lock, -1 waits forever.
        :return: Dict of topic to TopicHistory copy.
        """
        if not self.lock.acquire(timeout=timeout):
            raise HistoryUnavailableError(f"failed to acquire lock of mqtt history within {timeout}s")
        try:
            return {topic: topic_history.copy() for topic, topic_history in self._topics.items()}
        finally:
            self.lock.release()

    def get(self, topic):
        with self.lock:
            topic_history = self._topics.get(topic)
            return topic_history.copy() if topic_history is not None else None

    def __len__(self):
        with self.lock:
            return len(self._topics)
