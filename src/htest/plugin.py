"""pytest plugin providing ``htest_reporter`` and ``htest`` fixtures.

Registered through the ``pytest11`` entry point, so installing the package
is enough to make the fixtures available. Failures recorded during a test
are raised once the test function returns, so they show up as ordinary
test failures.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from .harness import Harness
from .reporter import PytestReporter


@pytest.fixture
def htest_reporter() -> PytestReporter:
    return PytestReporter()


@pytest.fixture
def htest(htest_reporter: PytestReporter) -> Callable[..., Harness]:
    """Factory for harnesses bound to this test's reporter."""

    def make(handler: Any, name: str | None = None) -> Harness:
        return Harness(htest_reporter, handler, name=name)

    return make


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item) -> Any:
    result = yield
    reporter = getattr(item, "funcargs", {}).get("htest_reporter")
    if isinstance(reporter, PytestReporter):
        reporter.check()
    return result
