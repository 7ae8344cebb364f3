"""In-process dispatch to WSGI applications (PEP 3333)."""

from __future__ import annotations

import io
import sys
from collections.abc import Iterable
from types import TracebackType
from typing import TYPE_CHECKING
from typing import Any

from .request import RequestSpec
from .result import ExecutionResult
from .result import parse_status_line

if TYPE_CHECKING:
    # wsgiref.types was added in Python 3.11.
    if sys.version_info >= (3, 11):
        from wsgiref.types import WSGIApplication
        from wsgiref.types import WSGIEnvironment
    else:
        from _typeshed.wsgi import WSGIApplication
        from _typeshed.wsgi import WSGIEnvironment

ExcInfo = tuple[type[BaseException], BaseException, TracebackType]

SERVER_NAME = "testserver"
SERVER_PORT = "80"


def build_environ(spec: RequestSpec) -> WSGIEnvironment:
    """Create the WSGI environ describing ``spec``."""
    host = spec.host or SERVER_NAME
    server_name, _, port = host.partition(":")
    environ: dict[str, Any] = {
        "REQUEST_METHOD": spec.method,
        "SCRIPT_NAME": "",
        "PATH_INFO": spec.path_info,
        "QUERY_STRING": spec.query_string,
        "SERVER_NAME": server_name,
        "SERVER_PORT": port or SERVER_PORT,
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": "http",
        "wsgi.input": io.BytesIO(spec.body),
        "wsgi.errors": io.StringIO(),
        "wsgi.multithread": False,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
    }
    if "Host" not in spec.headers:
        environ["HTTP_HOST"] = host
    for k, v in spec.headers.items():
        key = k.upper().replace("-", "_")
        if key == "CONTENT_TYPE":
            environ["CONTENT_TYPE"] = v
        elif key == "CONTENT_LENGTH":
            environ["CONTENT_LENGTH"] = v
        else:
            environ["HTTP_" + key] = v
    if spec.body and "CONTENT_LENGTH" not in environ:
        environ["CONTENT_LENGTH"] = str(len(spec.body))
    return environ


class WSGIResponseRecorder:
    """Plays the server side of ``start_response`` and keeps what the
    application sends instead of writing it to a socket.
    """

    def __init__(self) -> None:
        self.status_line: str | None = None
        self.headers: list[tuple[str, str]] = []
        self.body = bytearray()
        self._headers_sent = False

    def start_response(
        self,
        status: str,
        headers: list[tuple[str, str]],
        exc_info: ExcInfo | None = None,
    ) -> Any:
        if exc_info is not None:
            try:
                if self._headers_sent:
                    raise exc_info[1].with_traceback(exc_info[2])
            finally:
                exc_info = None
        elif self.status_line is not None:
            raise RuntimeError("start_response called a second time without exc_info")

        self.status_line = status
        self.headers = [(str(k), str(v)) for k, v in headers]
        return self.write

    def write(self, data: bytes) -> None:
        if self.status_line is None:
            raise RuntimeError("write() called before start_response")
        self._headers_sent = True
        self.body.extend(data)

    def consume(self, chunks: Iterable[bytes]) -> None:
        try:
            for chunk in chunks:
                if chunk:
                    self.write(chunk)
                elif self.status_line is not None:
                    self._headers_sent = True
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

    def result(self) -> ExecutionResult:
        status = 200 if self.status_line is None else parse_status_line(self.status_line)
        return ExecutionResult.from_raw(status, self.headers, bytes(self.body))


class WSGIHandler:
    """Adapts a WSGI application to the harness ``Handler`` interface."""

    def __init__(self, app: WSGIApplication):
        self.app = app

    def serve(self, request: RequestSpec) -> ExecutionResult:
        recorder = WSGIResponseRecorder()
        chunks = self.app(build_environ(request), recorder.start_response)
        recorder.consume(chunks)
        return recorder.result()

    def __repr__(self) -> str:
        return f"WSGIHandler({self.app!r})"
