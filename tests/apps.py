"""Sample handlers the harness is exercised against.

``wsgi_mux`` and ``asgi_app`` serve the same routes so tests can run
against either interface.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from asgiref.typing import ASGIReceiveCallable
from asgiref.typing import ASGISendCallable
from asgiref.typing import HTTPScope


@dataclass
class Credentials:
    mail: str
    password: str


TEXT_PLAIN = "text/plain; charset=utf-8"


class Mux:
    """Minimal path -> WSGI app router. Unknown paths get a 404."""

    def __init__(self) -> None:
        self.routes: dict[str, Callable[..., Iterable[bytes]]] = {}

    def handle(self, path: str) -> Callable[[Callable[..., Iterable[bytes]]], Callable[..., Iterable[bytes]]]:
        def register(fn: Callable[..., Iterable[bytes]]) -> Callable[..., Iterable[bytes]]:
            self.routes[path] = fn
            return fn

        return register

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        route = self.routes.get(environ["PATH_INFO"])
        if route is None:
            start_response("404 Not Found", [("Content-Type", TEXT_PLAIN)])
            return [b"404 page not found\n"]
        return route(environ, start_response)


def _read_body(environ: dict[str, Any]) -> bytes:
    length = int(environ.get("CONTENT_LENGTH") or 0)
    return environ["wsgi.input"].read(length)


def request_view(method: str, path: str, query: str, headers: dict[str, str], body: bytes) -> bytes:
    return json.dumps(
        {
            "method": method,
            "path": path,
            "query": query,
            "headers": headers,
            "body": body.decode("utf-8"),
        }
    ).encode("utf-8")


def build_wsgi_mux() -> Mux:
    mux = Mux()

    @mux.handle("/path")
    def path(environ, start_response):
        if environ["REQUEST_METHOD"] == "POST":
            start_response("200 OK", [("foo", "bar")])
            return [b"Response"]
        start_response("200 OK", [])
        return []

    @mux.handle("/cookie")
    def cookie(environ, start_response):
        start_response("200 OK", [("Set-Cookie", "batman=htest")])
        return []

    @mux.handle("/json")
    def json_route(environ, start_response):
        body = json.dumps({"mail": "test@test.com", "password": "pass"}).encode()
        start_response("200 OK", [("Content-Type", "application/json")])
        return [body]

    @mux.handle("/auth")
    def auth(environ, start_response):
        creds = Credentials(**json.loads(_read_body(environ)))
        if creds.password == "pass":
            start_response("200 OK", [("Content-Type", TEXT_PLAIN)])
            return [b"OK"]
        start_response("401 Unauthorized", [("Content-Type", TEXT_PLAIN)])
        return [b"Unauthorized"]

    @mux.handle("/admin")
    def admin(environ, start_response):
        start_response("401 Unauthorized", [("foo", "bar")])
        return [b"You are not authorized"]

    @mux.handle("/echo")
    def echo(environ, start_response):
        start_response("200 OK", [("foo", environ.get("HTTP_FOO", ""))])
        return [_read_body(environ)]

    @mux.handle("/inspect")
    def inspect(environ, start_response):
        headers = {k[5:].replace("_", "-").lower(): v for k, v in environ.items() if k.startswith("HTTP_")}
        if "CONTENT_TYPE" in environ:
            headers["content-type"] = environ["CONTENT_TYPE"]
        body = request_view(
            environ["REQUEST_METHOD"],
            environ["PATH_INFO"],
            environ["QUERY_STRING"],
            headers,
            _read_body(environ),
        )
        start_response("200 OK", [("Content-Type", "application/json")])
        return [body]

    @mux.handle("/empty-header")
    def empty_header(environ, start_response):
        start_response("200 OK", [("foo", "")])
        return []

    @mux.handle("/silent")
    def silent(environ, start_response):
        return []

    return mux


async def _receive_body(receive: ASGIReceiveCallable) -> bytes:
    body = b""
    while True:
        event = await receive()
        if event["type"] != "http.request":
            return body
        body += event["body"]
        if not event["more_body"]:
            return body


async def asgi_app(scope: HTTPScope, receive: ASGIReceiveCallable, send: ASGISendCallable) -> None:
    """ASGI counterpart of ``build_wsgi_mux()``."""
    path = scope["path"]
    method = scope["method"]
    headers = {k.decode("latin-1"): v.decode("latin-1") for k, v in scope["headers"]}
    status = 200
    response_headers: list[tuple[bytes, bytes]] = []
    body = b""

    if path == "/path":
        if method == "POST":
            response_headers.append((b"foo", b"bar"))
            body = b"Response"
    elif path == "/cookie":
        response_headers.append((b"set-cookie", b"batman=htest"))
    elif path == "/json":
        response_headers.append((b"content-type", b"application/json"))
        body = json.dumps({"mail": "test@test.com", "password": "pass"}).encode()
    elif path == "/auth":
        creds = Credentials(**json.loads(await _receive_body(receive)))
        if creds.password == "pass":
            body = b"OK"
        else:
            status, body = 401, b"Unauthorized"
    elif path == "/admin":
        status = 401
        response_headers.append((b"foo", b"bar"))
        body = b"You are not authorized"
    elif path == "/echo":
        response_headers.append((b"foo", headers.get("foo", "").encode("latin-1")))
        body = await _receive_body(receive)
    elif path == "/inspect":
        headers.pop("content-length", None)
        body = request_view(
            method,
            path,
            scope["query_string"].decode("latin-1"),
            headers,
            await _receive_body(receive),
        )
    elif path == "/empty-header":
        response_headers.append((b"foo", b""))
    elif path == "/silent":
        return
    else:
        status, body = 404, b"404 page not found\n"

    await send({"type": "http.response.start", "status": status, "headers": response_headers, "trailers": False})
    await send({"type": "http.response.body", "body": body, "more_body": False})
