"""Entry point of the test harness.

A ``Harness`` binds a failure reporter to the handler under test and hands
out request builders::

    def test_admin_requires_auth(htest_reporter):
        test = new(htest_reporter, app)
        test.get("/admin").do().expect_status(401)

The harness keeps no state between requests; each ``do()`` builds a fresh
request and captures a fresh response.
"""

from __future__ import annotations

import logging
from typing import Any

from .assertions import AssertionChain
from .dispatch import Handler
from .dispatch import as_handler
from .dispatch import dispatch
from .reporter import FailureReporter
from .request import RequestBuilder
from .request import RequestSpec


def handler_name(target: Any) -> str:
    for attr in ("__qualname__", "__name__"):
        name = getattr(target, attr, None)
        if isinstance(name, str):
            return name
    return type(target).__name__


class Harness:
    def __init__(
        self,
        reporter: FailureReporter,
        handler: Any,
        name: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Create a harness.

        Args:
            reporter: Sink for failed expectations. Only ``record_failure``
                is required; ``record_failure_and_halt`` is used if present.
            handler: A WSGI application, an ASGI application or any object
                with a ``serve(RequestSpec) -> ExecutionResult`` method.
            name: Label used in failure messages. Defaults to the handler's name.
            logger: Optional logger. If None, uses the ``htest.harness`` logger.
        """
        self.reporter = reporter
        self.handler: Handler = as_handler(handler)
        self.name = name or handler_name(handler)
        self._logger = logger or logging.getLogger("htest.harness")

    def _dispatch(self, spec: RequestSpec) -> AssertionChain:
        result = dispatch(spec, self.handler, self._logger)
        return AssertionChain(result, spec, self.reporter, self.name)

    def request(self, method: str, path: str) -> RequestBuilder:
        return RequestBuilder(method, path, self._dispatch)

    def get(self, path: str) -> RequestBuilder:
        return self.request("GET", path)

    def head(self, path: str) -> RequestBuilder:
        return self.request("HEAD", path)

    def post(self, path: str) -> RequestBuilder:
        return self.request("POST", path)

    def put(self, path: str) -> RequestBuilder:
        return self.request("PUT", path)

    def patch(self, path: str) -> RequestBuilder:
        return self.request("PATCH", path)

    def delete(self, path: str) -> RequestBuilder:
        return self.request("DELETE", path)

    def options(self, path: str) -> RequestBuilder:
        return self.request("OPTIONS", path)

    def __repr__(self) -> str:
        return f"Harness({self.name!r}, reporter={self.reporter!r})"


def new(reporter: FailureReporter, handler: Any) -> Harness:
    return Harness(reporter, handler)
