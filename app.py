import logging

from mqtt_history import HistoryUnavailableError
from payload_format import format_payload
from topic_view import build_tree, get_parent, get_visible, index_in_visible, with_ancestors_opened

INDENT = "    "

logger = logging.getLogger(__name__)


class Row:
    def __init__(self, entry, is_open):
        self.topic = entry.topic
        self.leaf = entry.leaf
        self.depth = entry.depth
        self.meta = entry.meta
        self.has_children = bool(entry.entries_below)
        self.is_open = is_open and self.has_children

    @property
    def label(self):
        if self.has_children:
            marker = "▼ " if self.is_open else "▶ "
        else:
            marker = "  "
        return f"{INDENT * self.depth}{marker}{self.leaf} {self.meta}"

    def __repr__(self):
        return f"<Row topic={self.topic} open={self.is_open}>"


class Details:
    def __init__(self, topic, topic_history):
        last = topic_history.last
        self.topic = topic
        self.payload = format_payload(last.payload)
        self.payload_size = len(last.payload)
        self.count = topic_history.count
        self.entries = list(reversed(topic_history.entries))  # Newest first

    @property
    def key(self):
        # Changes whenever a message arrives on the topic
        return self.topic, self.count


class Frame:
    def __init__(self, topic_count=0, rows=None, selected_index=None, details=None, error=None):
        self.topic_count = topic_count
        self.rows = rows if rows is not None else []
        self.selected_index = selected_index
        self.details = details
        self.error = error

    @property
    def visible_topics(self):
        return [row.topic for row in self.rows]


class App:
    """
    View state that lives across frames.

    Everything is keyed by the topic string, so the opened topics and the
    selection survive the complete rebuild of the tree on every draw.
    """

    def __init__(self, config, history, client=None):
        self.host = config.host
        self.port = config.port
        self.subscribe_topic = ", ".join(config.topics)
        self.lock_timeout = config.lock_timeout
        self.history = history
        self.client = client

        self.opened_topics = set()
        self.selected_topic = None
        self._visible = []

    def draw(self):
        try:
            snapshot = self.history.snapshot(timeout=self.lock_timeout)
        except HistoryUnavailableError as e:
            logger.warning("Skipping frame: %s", e)
            return Frame(error=str(e))

        entries = build_tree(snapshot)

        # Ancestors of the selection are opened for this frame only
        opened = with_ancestors_opened(self.opened_topics, self.selected_topic)
        visible = get_visible(opened, entries)
        self._visible = [entry.topic for entry in visible]

        selected_index = None
        details = None
        if self.selected_topic is not None:
            # Same sequence as the rows, so index and rows always agree
            selected_index = index_in_visible(visible, self.selected_topic)
            topic_history = snapshot.get(self.selected_topic)
            if topic_history is not None and topic_history.last is not None:
                details = Details(self.selected_topic, topic_history)

        return Frame(
            topic_count=len(snapshot),
            rows=[Row(entry, entry.topic in opened) for entry in visible],
            selected_index=selected_index,
            details=details,
        )

    @property
    def connection_status(self):
        if self.client is None:
            return None
        if self.client.connected:
            return "Connected"
        if self.client.last_error:
            return f"Disconnected: {self.client.last_error}"
        return "Connecting..."

    # Navigation, based on the topics visible in the last frame

    def select_topic(self, topic):
        self.selected_topic = topic

    def select_index(self, index):
        if 0 <= index < len(self._visible):
            self.selected_topic = self._visible[index]

    def _selected_position(self):
        try:
            return self._visible.index(self.selected_topic)
        except ValueError:
            return None

    def select_next(self):
        position = self._selected_position()
        self.select_index(0 if position is None else min(position + 1, len(self._visible) - 1))

    def select_previous(self):
        position = self._selected_position()
        self.select_index(0 if position is None else max(position - 1, 0))

    def select_first(self):
        self.select_index(0)

    def select_last(self):
        self.select_index(len(self._visible) - 1)

    def open_selected(self):
        if self.selected_topic is not None:
            self.opened_topics.add(self.selected_topic)

    def close_selected(self):
        """Closes the selected topic, or moves to its parent when it is not open."""
        if self.selected_topic is None:
            return
        if self.selected_topic in self.opened_topics:
            self.opened_topics.discard(self.selected_topic)
        else:
            parent = get_parent(self.selected_topic)
            if parent is not None:
                self.selected_topic = parent

    def toggle_selected(self):
        if self.selected_topic is None:
            return
        if self.selected_topic in self.opened_topics:
            self.opened_topics.discard(self.selected_topic)
        else:
            self.opened_topics.add(self.selected_topic)
