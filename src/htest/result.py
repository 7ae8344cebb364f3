"""The response captured from one dispatch."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from multidict import CIMultiDict
from multidict import CIMultiDictProxy


def parse_status_line(status_line: str) -> int:
    """Extract the status code from a WSGI status line like ``"404 Not Found"``."""
    code, _, _ = status_line.strip().partition(" ")
    if len(code) != 3 or not code.isdigit():
        raise ValueError(f"malformed status line {status_line!r}")
    return int(code)


def parse_set_cookies(values: Iterable[str]) -> dict[str, str]:
    """Collect name -> value from ``Set-Cookie`` header values.

    Only the leading ``name=value`` pair counts; attributes after the first
    ``;`` are ignored whatever they are. Later cookies with the same name
    replace earlier ones. Values without a name are skipped.
    """
    cookies: dict[str, str] = {}
    for value in values:
        pair = value.split(";", 1)[0]
        name, sep, cookie_value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        cookie_value = cookie_value.strip()
        if len(cookie_value) > 1 and cookie_value[0] == cookie_value[-1] == '"':
            cookie_value = cookie_value[1:-1]
        cookies[name] = cookie_value
    return cookies


@dataclass(frozen=True)
class ExecutionResult:
    status: int = 200
    headers: CIMultiDictProxy[str] = field(
        default_factory=lambda: CIMultiDictProxy(CIMultiDict())
    )
    body: bytes = b""
    cookies: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_raw(
        cls, status: int, header_pairs: Iterable[tuple[str, str]], body: bytes
    ) -> ExecutionResult:
        headers: CIMultiDict[str] = CIMultiDict()
        for k, v in header_pairs:
            headers.add(k, v)
        cookies = parse_set_cookies(headers.getall("Set-Cookie", []))
        return cls(status, CIMultiDictProxy(headers), bytes(body), cookies)

    def header(self, name: str) -> str:
        """The last value set for ``name``, or an empty string."""
        values = self.headers.getall(name, [])
        if not values:
            return ""
        return values[-1]

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")
