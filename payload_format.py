import json
import re

EMPTY_PAYLOAD = "(empty)"

# Returned by payload_as_json, None is the valid JSON value null
NOT_JSON = object()

WHITESPACE = re.compile(r"\s+")


def payload_as_utf8(payload):
    # Each invalid byte sequence becomes U+FFFD instead of failing
    return bytes(payload).decode("utf-8", errors="replace")


def payload_as_json(payload):
    """
    Parses the payload as UTF-8 encoded JSON.

    :param payload: Raw payload bytes.
    :return: The parsed value, or NOT_JSON if the payload is not JSON.
    """
    try:
        return json.loads(bytes(payload).decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError):
        return NOT_JSON


def format_payload(payload):
    """
    Renders a payload for the detail view.

    JSON is pretty printed with an indentation of 2 and the keys in the order
    they were sent. Everything else is shown as text.
    """
    payload = bytes(payload)
    if not payload:
        return EMPTY_PAYLOAD

    value = payload_as_json(payload)
    if value is not NOT_JSON:
        try:
            return json.dumps(value, indent=2, ensure_ascii=False)
        except RecursionError:
            pass
    return payload_as_utf8(payload)


def payload_preview(payload):
    """Single line version of the payload, used next to the topic name."""
    if not payload:
        return EMPTY_PAYLOAD
    return WHITESPACE.sub(" ", payload_as_utf8(payload))
