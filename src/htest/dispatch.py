"""Dispatch of a ``RequestSpec`` to the handler under test.

The dispatcher only knows the ``Handler`` interface: take a request, give
back an ``ExecutionResult``. WSGI and ASGI applications are wrapped into
that interface by ``as_handler``. Routing, including 404s for unknown
paths, is up to the handler.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .dispatch_asgi import ASGIHandler
from .dispatch_wsgi import WSGIHandler
from .request import RequestSpec
from .result import ExecutionResult


@runtime_checkable
class Handler(Protocol):
    def serve(self, request: RequestSpec) -> ExecutionResult: ...


def is_asgi_app(target: Any) -> bool:
    if inspect.iscoroutinefunction(target):
        return True
    call = getattr(target, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


def as_handler(target: Any) -> Handler:
    """Resolve a ``Handler``, an ASGI app or a WSGI app into a ``Handler``."""
    if isinstance(target, Handler):
        return target
    if is_asgi_app(target):
        return ASGIHandler(target)
    if callable(target):
        return WSGIHandler(target)
    raise TypeError(
        f"expected a WSGI application, an ASGI application or a Handler, got {type(target).__name__}"
    )


def dispatch(
    spec: RequestSpec, handler: Handler, logger: logging.Logger | None = None
) -> ExecutionResult:
    """Run ``spec`` through ``handler`` and capture the response.

    Exceptions raised by the handler are not caught here.
    """
    logger = logger or logging.getLogger("htest.dispatch")
    logger.debug("dispatching %s to %r", spec.request_line, handler)

    result = handler.serve(spec)
    if spec.method == "HEAD" and result.body:
        result = dataclasses.replace(result, body=b"")

    logger.debug(
        "%s -> %d (%d body bytes, %d headers)",
        spec.request_line,
        result.status,
        len(result.body),
        len(result.headers),
    )
    return result
