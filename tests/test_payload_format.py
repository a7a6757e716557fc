import json

import pytest

from payload_format import (
    EMPTY_PAYLOAD,
    NOT_JSON,
    format_payload,
    payload_as_json,
    payload_as_utf8,
    payload_preview,
)


class TestFormatPayload:
    def test_json_object_is_pretty_printed(self):
        assert format_payload(b'{"a":1,"b":[true,null]}') == '{\n  "a": 1,\n  "b": [\n    true,\n    null\n  ]\n}'

    def test_json_keeps_key_order(self):
        formatted = format_payload(b'{"zebra": 1, "apple": 2, "mango": {"y": 1, "b": 2}}')

        assert formatted.index('"zebra"') < formatted.index('"apple"') < formatted.index('"mango"')
        assert formatted.index('"y"') < formatted.index('"b"')
        assert json.loads(formatted) == {"zebra": 1, "apple": 2, "mango": {"y": 1, "b": 2}}

    def test_json_scalars(self):
        assert format_payload(b"42") == "42"
        assert format_payload(b"null") == "null"
        assert format_payload(b'"text"') == '"text"'

    def test_json_keeps_unicode(self):
        assert format_payload('{"temp": "20 °C"}'.encode("utf-8")) == '{\n  "temp": "20 °C"\n}'

    def test_plain_text_renders_as_itself(self):
        assert format_payload(b"hello world") == "hello world"
        assert format_payload("Grüße".encode("utf-8")) == "Grüße"

    def test_invalid_utf8_is_replaced(self):
        assert format_payload(b"ab\xffcd") == "ab�cd"

    def test_invalid_utf8_inside_json_falls_back_to_text(self):
        assert format_payload(b'{"a": "\xff"}') == '{"a": "�"}'

    def test_empty_payload(self):
        assert format_payload(b"") == EMPTY_PAYLOAD

    def test_deeply_nested_json_does_not_fail(self):
        payload = b"[" * 100000 + b"]" * 100000

        assert format_payload(payload)

    @pytest.mark.parametrize("payload", [
        b"\x00",
        b"\xff\xfe\xfd",
        b"\x80",
        b"\xc3",
        bytes(range(256)),
        b"\xff\xfe{\x00\x00\x00",
    ])
    def test_arbitrary_bytes_never_fail(self, payload):
        formatted = format_payload(payload)

        assert isinstance(formatted, str)
        assert formatted

    def test_accepts_bytearray(self):
        assert format_payload(bytearray(b"[1]")) == "[\n  1\n]"


class TestHelpers:
    def test_payload_as_json(self):
        assert payload_as_json(b'{"a": 1}') == {"a": 1}
        assert payload_as_json(b"not json") is NOT_JSON
        assert payload_as_json(b"\xff") is NOT_JSON

    def test_json_null_is_not_a_failed_parse(self):
        assert payload_as_json(b"null") is None
        assert format_payload(b"null") == "null"

    def test_payload_as_utf8(self):
        assert payload_as_utf8(b"abc") == "abc"
        assert payload_as_utf8(b"\xffabc") == "�abc"

    def test_payload_preview_is_single_line(self):
        assert payload_preview(b'{\n  "a": 1\n}') == '{ "a": 1 }'

    def test_payload_preview_of_empty_payload(self):
        assert payload_preview(b"") == EMPTY_PAYLOAD

    def test_payload_preview_of_whitespace_is_not_empty(self):
        assert payload_preview(b"  \n") == " "
        assert payload_preview(b"\t") != EMPTY_PAYLOAD
