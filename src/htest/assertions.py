"""Chainable expectations over a captured response.

Every ``expect_*`` method compares against the ``ExecutionResult`` and, on
mismatch, records a failure with the reporter. The chain keeps going
after a failure so a single dispatch can surface every mismatch at once::

    harness.get("/admin").do() \\
        .expect_status(401) \\
        .expect_header("WWW-Authenticate", "Basic") \\
        .expect_body("You are not authorized")

The one exception is ``expect_json`` on a body that can't be decoded:
that failure halts the test when the reporter supports halting.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any
from typing import cast

from google.protobuf.message import Message

from .errors import Failure
from .errors import FailureKind
from .reporter import FailureReporter
from .reporter import HaltingReporter
from .reporter import can_halt
from .request import RequestSpec
from .result import ExecutionResult
from .serialization import MalformedBody
from .serialization import decode_json
from .serialization import decode_message
from .serialization import to_jsonable

_MISSING = object()


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _plain(value: Any) -> Any:
    """Turn protobuf containers into lists/dicts for comparison and messages."""
    if isinstance(value, Message) or isinstance(value, (str, bytes)):
        return value
    if hasattr(value, "items"):
        return dict(value.items())
    if hasattr(value, "__iter__"):
        return list(value)
    return value


def _values_equal(expected: Any, actual: Any) -> bool:
    if isinstance(expected, bool) != isinstance(actual, bool):
        return False
    return expected == actual


def _field_default(f: dataclasses.Field) -> Any:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return _MISSING


def compare_structure(path: str, expected: Any, actual: Any, diffs: list[str]) -> None:
    """Compare a decoded JSON value against ``expected``, appending one
    line per difference to ``diffs``.

    Dataclasses only look at their own fields. A field the body leaves out
    takes the field's declared default, so it only differs when the
    expected value is something else (or the field has no default).
    Mappings must match key for key; sequences must match element for
    element.
    """
    where = path or "body"
    if dataclasses.is_dataclass(expected) and not isinstance(expected, type):
        if not isinstance(actual, dict):
            diffs.append(f"{where}: expected an object, got {actual!r}")
            return
        for f in dataclasses.fields(expected):
            value = actual.get(f.name, _MISSING)
            if value is _MISSING:
                wanted = to_jsonable(getattr(expected, f.name))
                default = _field_default(f)
                if default is not _MISSING and _values_equal(wanted, to_jsonable(default)):
                    continue
                diffs.append(f"{_join(path, f.name)}: missing, expected {wanted!r}")
                continue
            compare_structure(_join(path, f.name), getattr(expected, f.name), value, diffs)
    elif isinstance(expected, Mapping):
        if not isinstance(actual, dict):
            diffs.append(f"{where}: expected an object, got {actual!r}")
            return
        expected_keys = {str(k) for k in expected}
        for key, expected_value in expected.items():
            value = actual.get(str(key), _MISSING)
            if value is _MISSING:
                diffs.append(f"{_join(path, str(key))}: missing, expected {to_jsonable(expected_value)!r}")
                continue
            compare_structure(_join(path, str(key)), expected_value, value, diffs)
        for key in actual:
            if key not in expected_keys:
                diffs.append(f"{_join(path, key)}: unexpected, got {actual[key]!r}")
    elif isinstance(expected, Sequence) and not isinstance(expected, (str, bytes)):
        if not isinstance(actual, list):
            diffs.append(f"{where}: expected an array, got {actual!r}")
            return
        if len(expected) != len(actual):
            diffs.append(f"{where}: expected {len(expected)} elements, got {len(actual)}")
            return
        for i, (e, a) in enumerate(zip(expected, actual)):
            compare_structure(f"{path}[{i}]", e, a, diffs)
    else:
        plain = to_jsonable(expected)
        if not _values_equal(plain, actual):
            diffs.append(f"{where}: expected {plain!r}, got {actual!r}")


def compare_message(expected: Message, actual: Message, diffs: list[str]) -> None:
    for fd in expected.DESCRIPTOR.fields:
        e = _plain(getattr(expected, fd.name))
        a = _plain(getattr(actual, fd.name))
        if e != a:
            diffs.append(f"{fd.name}: expected {e!r}, got {a!r}")


class AssertionChain:
    """Expectations over one ``ExecutionResult``."""

    def __init__(
        self,
        result: ExecutionResult,
        request: RequestSpec,
        reporter: FailureReporter,
        harness_name: str,
    ):
        self.result = result
        self.request = request
        self._reporter = reporter
        self._harness_name = harness_name

    def _fail(self, kind: FailureKind, message: str) -> None:
        failure = Failure(kind, self._harness_name, self.request.request_line, message)
        if kind.halts and can_halt(self._reporter):
            cast(HaltingReporter, self._reporter).record_failure_and_halt(str(failure))
        else:
            self._reporter.record_failure(str(failure))

    def expect_status(self, code: int) -> AssertionChain:
        if self.result.status != int(code):
            self._fail(
                FailureKind.MISMATCH,
                f"expected status {int(code)}, got {self.result.status}",
            )
        return self

    def expect_body(self, text: str) -> AssertionChain:
        """Body must equal ``text`` exactly. An empty body equals ``""``."""
        body = self.result.text
        if body != text:
            self._fail(FailureKind.MISMATCH, f"expected body {text!r}, got {body!r}")
        return self

    def expect_body_contains(self, fragment: str) -> AssertionChain:
        body = self.result.text
        if fragment not in body:
            self._fail(FailureKind.MISMATCH, f"expected body to contain {fragment!r}, got {body!r}")
        return self

    def expect_header(self, name: str, value: str) -> AssertionChain:
        """Header ``name`` must have ``value``.

        An expected value of ``""`` passes when the header is absent as well
        as when it is set to the empty string.
        """
        actual = self.result.header(name)
        if actual != value:
            if value == "":
                message = f"expected header {name!r} to be absent or empty, got {actual!r}"
            elif name not in self.result.headers:
                message = f"expected header {name!r} to be {value!r}, but it is not set"
            else:
                message = f"expected header {name!r} to be {value!r}, got {actual!r}"
            self._fail(FailureKind.MISMATCH, message)
        return self

    def expect_header_present(self, name: str) -> AssertionChain:
        if name not in self.result.headers:
            self._fail(FailureKind.MISMATCH, f"expected header {name!r} to be set")
        return self

    def expect_cookie(self, name: str, value: str) -> AssertionChain:
        actual = self.result.cookies.get(name)
        if actual is None:
            self._fail(FailureKind.MISMATCH, f"expected cookie {name!r}, but it was not set")
        elif actual != value:
            self._fail(
                FailureKind.MISMATCH,
                f"expected cookie {name!r} to be {value!r}, got {actual!r}",
            )
        return self

    def expect_json(self, expected: Any) -> AssertionChain:
        """Decode the body as JSON shaped like ``expected`` and compare.

        ``expected`` may be a dataclass instance, a protobuf message, a
        mapping, a list or a scalar.
        """
        diffs: list[str] = []
        try:
            if isinstance(expected, Message):
                compare_message(expected, decode_message(self.result.body, type(expected)), diffs)
            else:
                actual = decode_json(self.result.body)
                if _wants_object(expected) and not isinstance(actual, dict):
                    raise MalformedBody(f"body is JSON but not an object: {self.result.text!r}")
                compare_structure("", expected, actual, diffs)
        except MalformedBody as e:
            self._fail(FailureKind.MALFORMED, str(e))
            return self

        for diff in diffs:
            self._fail(FailureKind.MISMATCH, f"JSON {diff}")
        return self

    def __repr__(self) -> str:
        return f"AssertionChain({self.request.request_line} -> {self.result.status})"


def _wants_object(expected: Any) -> bool:
    if dataclasses.is_dataclass(expected) and not isinstance(expected, type):
        return True
    return isinstance(expected, Mapping)
