"""Failure reporters.

A reporter is the sink an ``AssertionChain`` writes failures into. The
harness only needs ``record_failure``; reporters that can also stop the
running test implement ``record_failure_and_halt``.
"""

from __future__ import annotations

import logging
import unittest
from typing import NoReturn
from typing import Protocol
from typing import runtime_checkable

import pytest


@runtime_checkable
class FailureReporter(Protocol):
    def record_failure(self, message: str) -> None: ...


@runtime_checkable
class HaltingReporter(FailureReporter, Protocol):
    def record_failure_and_halt(self, message: str) -> NoReturn: ...


def can_halt(reporter: FailureReporter) -> bool:
    """Returns True if the reporter can stop the current test."""
    return callable(getattr(reporter, "record_failure_and_halt", None))


class CollectingReporter:
    """Keeps every failure message in order. Never halts."""

    def __init__(self) -> None:
        self.failures: list[str] = []

    def record_failure(self, message: str) -> None:
        self.failures.append(message)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    def __repr__(self) -> str:
        return f"CollectingReporter(failures={len(self.failures)})"


class PytestReporter(CollectingReporter):
    """Reporter for pytest tests.

    Recorded failures are collected and surfaced together by ``check()``,
    which the plugin calls once the test function returns. Halting goes
    straight to ``pytest.fail``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        super().__init__()
        self._logger = logger or logging.getLogger("htest.reporter")
        self._flushed = 0

    def record_failure(self, message: str) -> None:
        self._logger.info("recorded failure: %s", message)
        super().record_failure(message)

    def record_failure_and_halt(self, message: str) -> NoReturn:
        self._logger.warning("halting test: %s", message)
        super().record_failure(message)
        pytest.fail(self._flush(), pytrace=False)

    def pending(self) -> list[str]:
        """Failures recorded since the last time they were raised."""
        return self.failures[self._flushed :]

    def _flush(self) -> str:
        pending = self.pending()
        self._flushed = len(self.failures)
        lines = [f"{len(pending)} expectation(s) failed:"]
        lines.extend(f"  - {failure}" for failure in pending)
        return "\n".join(lines)

    def check(self) -> None:
        """Fail the current test if any failure is pending."""
        if self.pending():
            pytest.fail(self._flush(), pytrace=False)


class TestCaseReporter(CollectingReporter):
    """Reporter bound to a ``unittest.TestCase``.

    Non-halting failures are raised together from a cleanup once the test
    method returns.
    """

    __test__ = False  # not a test class

    def __init__(self, testcase: unittest.TestCase) -> None:
        super().__init__()
        self.testcase = testcase
        self._halted = False
        testcase.addCleanup(self._raise_collected)

    def record_failure_and_halt(self, message: str) -> NoReturn:
        super().record_failure(message)
        self._halted = True
        self.testcase.fail("\n".join(self.failures))

    def _raise_collected(self) -> None:
        # a halt already raised everything collected so far
        if self.failures and not self._halted:
            raise self.testcase.failureException("\n".join(self.failures))
