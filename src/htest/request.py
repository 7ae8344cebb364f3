"""Request description and the fluent builder that produces it."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any
from urllib.parse import urlsplit

from multidict import CIMultiDict
from multidict import CIMultiDictProxy

from .errors import BuilderConsumedError
from .serialization import JSON_CONTENT_TYPE
from .serialization import to_json_bytes

if TYPE_CHECKING:
    from .assertions import AssertionChain

METHODS = frozenset(
    ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]
)


def normalize_method(method: str) -> str:
    normalized = method.upper()
    if normalized not in METHODS:
        raise ValueError(f"unsupported HTTP method {method!r}")
    return normalized


def validate_header(name: str, value: str) -> None:
    """Header names and values must be Latin-1 text, as both WSGI and ASGI carry them."""
    for part in (name, value):
        try:
            part.encode("latin-1")
        except UnicodeEncodeError as e:
            raise ValueError(f"header {name!r} is not Latin-1 encodable: {part!r}") from e


def validate_path(path: str) -> str:
    if path.startswith("/"):
        return path
    parts = urlsplit(path)
    if parts.scheme and parts.netloc:
        return path
    raise ValueError(f"request path must start with '/' or be an absolute URL, got {path!r}")


@dataclass(frozen=True)
class RequestSpec:
    """A request ready for dispatch. Never changes once built."""

    method: str
    path: str
    headers: CIMultiDictProxy[str] = field(
        default_factory=lambda: CIMultiDictProxy(CIMultiDict())
    )
    body: bytes = b""

    @property
    def host(self) -> str | None:
        """Host named by an absolute request target, if any."""
        return urlsplit(self.path).netloc or None

    @property
    def path_info(self) -> str:
        return urlsplit(self.path).path or "/"

    @property
    def query_string(self) -> str:
        return urlsplit(self.path).query

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.path}"


class RequestBuilder:
    """Builds one request, then dispatches it with ``do()``.

    Mutators return the builder itself so calls can be chained::

        harness.post("/auth").add_header("X-Trace", "1").send({"a": 1}).do()

    A builder is single use. Once ``do()`` has run, every further call
    raises ``BuilderConsumedError``.
    """

    def __init__(
        self,
        method: str,
        path: str,
        dispatch: Callable[[RequestSpec], AssertionChain],
    ):
        self._method = normalize_method(method)
        self._path = validate_path(path)
        self._headers: CIMultiDict[str] = CIMultiDict()
        self._body = b""
        self._dispatch = dispatch
        self._consumed = False

    def _check(self, operation: str) -> None:
        if self._consumed:
            raise BuilderConsumedError(operation, f"{self._method} {self._path}")

    def add_header(self, name: str, value: str) -> RequestBuilder:
        """Set a header, replacing any value under the same name in any case."""
        self._check("add_header")
        validate_header(name, value)
        self._headers.popall(name, None)
        self._headers.add(name, value)
        return self

    def add_cookie(self, name: str, value: str) -> RequestBuilder:
        self._check("add_cookie")
        pair = f"{name}={value}"
        validate_header("Cookie", pair)
        existing = self._headers.get("Cookie")
        self._headers["Cookie"] = f"{existing}; {pair}" if existing else pair
        return self

    def send(self, value: Any) -> RequestBuilder:
        """Use ``value`` encoded as JSON as the body.

        Sets ``Content-Type: application/json`` unless a content type was
        already set.
        """
        self._check("send")
        self._body = to_json_bytes(value)
        if "Content-Type" not in self._headers:
            self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def send_string(self, data: str) -> RequestBuilder:
        self._check("send_string")
        self._body = data.encode("utf-8")
        return self

    def send_bytes(self, data: bytes) -> RequestBuilder:
        self._check("send_bytes")
        self._body = bytes(data)
        return self

    def spec(self) -> RequestSpec:
        """Snapshot of the request as it would be dispatched right now."""
        return RequestSpec(
            method=self._method,
            path=self._path,
            headers=CIMultiDictProxy(self._headers.copy()),
            body=self._body,
        )

    def do(self) -> AssertionChain:
        """Dispatch the request and return the chain to assert on."""
        self._check("do")
        self._consumed = True
        return self._dispatch(self.spec())

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "open"
        return f"RequestBuilder({self._method} {self._path}, {state})"
