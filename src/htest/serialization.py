"""JSON encoding of request bodies and shaping of response bodies.

Values handed to ``RequestBuilder.send`` and ``AssertionChain.expect_json``
can be plain JSON values, dataclass instances or protobuf messages. This
module converts between those and JSON bytes.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from typing import Any

from google.protobuf import json_format
from google.protobuf.message import Message

JSON_CONTENT_TYPE = "application/json"


class MalformedBody(ValueError):
    """The body can't be decoded into the requested shape."""


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses and protobuf messages into plain JSON values."""
    if isinstance(value, Message):
        return json_format.MessageToDict(value, preserving_proto_field_name=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def to_json_bytes(value: Any) -> bytes:
    try:
        return json.dumps(to_jsonable(value)).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise TypeError(f"cannot encode {type(value).__name__} as JSON: {e}") from e


def decode_json(body: bytes) -> Any:
    try:
        return json.loads(body.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedBody(f"body is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedBody(f"body is not valid JSON: {e}") from e


def decode_message(body: bytes, msg_type: type[Message]) -> Message:
    """Parse a JSON body into a fresh protobuf message of ``msg_type``."""
    msg = msg_type()
    try:
        json_format.Parse(body.decode("utf-8"), msg, ignore_unknown_fields=True)
    except (UnicodeDecodeError, json_format.ParseError) as e:
        raise MalformedBody(f"body is not valid JSON for {msg_type.__name__}: {e}") from e
    return msg
