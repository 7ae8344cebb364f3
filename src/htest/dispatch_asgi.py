"""In-process dispatch to ASGI 3 applications.

The application runs to completion on a private event loop, so the call
looks synchronous to the test, including when the test is itself a
coroutine. Request and response travel as ASGI events that never leave
the process.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from asgiref.typing import ASGI3Application
from asgiref.typing import ASGIReceiveEvent
from asgiref.typing import ASGISendEvent
from asgiref.typing import HTTPDisconnectEvent
from asgiref.typing import HTTPRequestEvent
from asgiref.typing import HTTPScope

from .dispatch_wsgi import SERVER_NAME
from .request import RequestSpec
from .result import ExecutionResult


def build_scope(spec: RequestSpec) -> HTTPScope:
    """Create the ASGI HTTP scope describing ``spec``."""
    host = spec.host or SERVER_NAME
    server_name, _, port = host.partition(":")
    headers: list[tuple[bytes, bytes]] = []
    if "Host" not in spec.headers:
        headers.append((b"host", host.encode("latin-1")))
    for k, v in spec.headers.items():
        headers.append((k.lower().encode("latin-1"), v.encode("latin-1")))
    if spec.body and "Content-Length" not in spec.headers:
        headers.append((b"content-length", str(len(spec.body)).encode("latin-1")))

    path = spec.path_info
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": spec.method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1", errors="replace"),
        "query_string": spec.query_string.encode("latin-1"),
        "root_path": "",
        "headers": headers,
        "client": ("127.0.0.1", 0),
        "server": (server_name, int(port or 80)),
        "extensions": {},
    }


class RequestBodySource:
    """The ``receive`` side: one ``http.request`` event carrying the whole
    body. Later calls block until the response has finished and then
    return ``http.disconnect``, as a client closing the connection would.
    """

    def __init__(self, body: bytes, response_finished: asyncio.Event):
        self._body = body
        self._sent = False
        self._response_finished = response_finished

    async def __call__(self) -> ASGIReceiveEvent:
        if not self._sent:
            self._sent = True
            request_event: HTTPRequestEvent = {
                "type": "http.request",
                "body": self._body,
                "more_body": False,
            }
            return request_event
        await self._response_finished.wait()
        disconnect_event: HTTPDisconnectEvent = {"type": "http.disconnect"}
        return disconnect_event


class ASGIResponseRecorder:
    """The ``send`` side: records response events instead of sending them."""

    def __init__(self) -> None:
        self.finished = asyncio.Event()
        self.status: int | None = None
        self.headers: list[tuple[str, str]] = []
        self.body = bytearray()
        self.trailers: list[tuple[str, str]] = []
        self._trailers_promised = False
        self._body_finished = False

    async def __call__(self, event: ASGISendEvent) -> None:
        event_type = event["type"]
        if event_type == "http.response.start":
            self._on_start(event)
        elif event_type == "http.response.body":
            self._on_body(event)
        elif event_type == "http.response.trailers":
            self._on_trailers(event)
        else:
            raise RuntimeError(f"Unexpected ASGI message type: {event_type}")

    @staticmethod
    def _decode(pairs: Any) -> list[tuple[str, str]]:
        return [(bytes(k).decode("latin-1"), bytes(v).decode("latin-1")) for k, v in pairs]

    def _on_start(self, event: Any) -> None:
        if self.status is not None:
            raise RuntimeError("Response start has already been sent")
        self.status = int(event["status"])
        self.headers = self._decode(event.get("headers", []))
        self._trailers_promised = bool(event.get("trailers", False))

    def _on_body(self, event: Any) -> None:
        if self.status is None:
            raise RuntimeError("Response start must be sent before body")
        if self._body_finished:
            raise RuntimeError("Response body has already been finished")
        self.body.extend(event.get("body", b""))
        if not event.get("more_body", False):
            self._body_finished = True
            self.finished.set()

    def _on_trailers(self, event: Any) -> None:
        if not self._trailers_promised:
            raise RuntimeError("Trailers not promised - must set trailers=True in start event")
        self.trailers.extend(self._decode(event.get("headers", [])))

    def result(self) -> ExecutionResult:
        status = 200 if self.status is None else self.status
        return ExecutionResult.from_raw(status, self.headers, bytes(self.body))


class ASGIHandler:
    """Adapts an ASGI 3 application to the harness ``Handler`` interface."""

    def __init__(self, app: ASGI3Application):
        self.app = app

    async def serve_async(self, request: RequestSpec) -> ExecutionResult:
        recorder = ASGIResponseRecorder()
        await self.app(build_scope(request), RequestBodySource(request.body, recorder.finished), recorder)
        return recorder.result()

    def serve(self, request: RequestSpec) -> ExecutionResult:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.serve_async(request))
        # called from a coroutine: the current loop is busy, use a private
        # loop on a worker thread and wait for it
        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(asyncio.run, self.serve_async(request)).result()

    def __repr__(self) -> str:
        return f"ASGIHandler({self.app!r})"
