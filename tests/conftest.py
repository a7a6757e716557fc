import pytest

from message import Message
from mqtt_history import MqttHistory


@pytest.fixture
def example_history():
    """Two topics below foo and a topic test with two messages."""
    history = MqttHistory()
    history.add(Message("test", b"A"))
    history.add(Message("foo/test", b"B"))
    history.add(Message("test", b"C"))
    history.add(Message("foo/bar", b"D"))
    return history
