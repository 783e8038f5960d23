import pytest

from chameleon_proxy.record_replay.models import (
    OpaqueBody,
    StructuredBody,
    body_from_envelope,
    body_to_envelope,
    encode_body,
)


@pytest.mark.parametrize(
    "data, expected",
    [
        (b'{"name":"John"}', {"name": "John"}),
        (b"[1, 2, 3]", [1, 2, 3]),
        (b"42", 42),
        (b"true", True),
        (b"null", None),
        (b'{"e":"\\u00e9","big":1e300}', {"e": "é", "big": 1e300}),
    ],
)
def test_json_documents_are_structured(data: bytes, expected):
    assert encode_body(data) == StructuredBody(expected)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"plain text",
        b'"just a string"',
        b"\xff\xfe",
        b"Infinity",
        '{"name":"José"}'.encode("utf-16"),
        b'{"x":1e400}',
        b"[-1e400]",
        b'{"a":"\\ud800"}',
    ],
)
def test_other_bodies_are_opaque(data: bytes):
    assert encode_body(data) == OpaqueBody(data)


def test_envelope_values():
    assert body_to_envelope(StructuredBody({"a": 1})) == {"a": 1}
    assert body_to_envelope(OpaqueBody(b"\x00\x01")) == "AAE="
    assert body_to_envelope(OpaqueBody(b"")) == ""


def test_body_from_envelope():
    assert body_from_envelope({"a": 1, "b": [True, None]}) == b'{"a":1,"b":[true,null]}'
    assert body_from_envelope(None) == b"null"
    assert body_from_envelope("AAE=") == b"\x00\x01"
    assert body_from_envelope("not base64!") == b"not base64!"
    assert body_from_envelope({"name": "José"}) == '{"name":"José"}'.encode("utf-8")
