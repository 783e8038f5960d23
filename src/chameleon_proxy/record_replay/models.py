import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ResponseRecord:
    method: str
    path: str
    status_code: int
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class StructuredBody:
    """A body that parsed as JSON and is persisted as a nested value"""

    value: Any


@dataclass(frozen=True)
class OpaqueBody:
    """A body persisted as a base64 string"""

    data: bytes


Body = StructuredBody | OpaqueBody


def _reject_constant(name: str):
    # NaN/Infinity are accepted by json.loads but are not valid JSON
    raise ValueError(f"non-standard JSON constant: {name}")


def encode_body(data: bytes) -> Body:
    """
    Choose how a body is persisted.

    Bodies that are UTF-8 JSON documents (object, array, number, boolean or null)
    are kept as structured values so recordings stay readable.
    Everything else, including a bare JSON string, is kept opaque, as is any
    document whose parsed value can't be written back as standard UTF-8 JSON
    (numbers that overflow to infinity, lone surrogate escapes).
    """
    if not data:
        return OpaqueBody(b"")
    try:
        value = json.loads(data.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError):
        return OpaqueBody(data)
    if isinstance(value, str):
        return OpaqueBody(data)
    try:
        json.dumps(value, allow_nan=False, ensure_ascii=False).encode("utf-8")
    except ValueError:
        # UnicodeEncodeError is a ValueError too
        return OpaqueBody(data)
    return StructuredBody(value)


def body_to_envelope(body: Body) -> Any:
    if isinstance(body, StructuredBody):
        return body.value
    return base64.b64encode(body.data).decode("ascii")


def body_from_envelope(value: Any) -> bytes:
    """
    Recover body bytes from the persisted envelope value.

    Strings are base64-decoded, falling back to the literal text for
    hand-edited recordings. Any other value is serialized back to compact JSON.
    """
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error:
            return value.encode("utf-8")
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
