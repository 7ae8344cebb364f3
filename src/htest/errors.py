"""Failure taxonomy for the htest harness.

Two kinds of failure are reported through a ``FailureReporter``: plain
mismatches between an expectation and the captured response, and
malformed input to a structural comparison (a body that is not JSON when
``expect_json`` needs it to be). Misuse of the API raises instead.
"""

from dataclasses import dataclass
from enum import Enum


class FailureKind(Enum):
    """Kinds of reported failures and whether they may halt the test."""

    MISMATCH = ("mismatch", False)
    MALFORMED = ("malformed", True)

    def __init__(self, label: str, halts: bool):
        self.label = label
        self.halts = halts


@dataclass
class Failure:
    """One failed expectation, formatted for the reporter."""

    kind: FailureKind
    harness: str
    request_line: str
    message: str

    def __str__(self) -> str:
        return f"{self.harness}: {self.request_line}: {self.message}"


class HTestError(Exception):
    """Base class for errors raised by the harness itself."""


class BuilderConsumedError(HTestError, RuntimeError):
    """Raised when a request builder is used after ``do()``."""

    def __init__(self, operation: str, request_line: str):
        super().__init__(
            f"{operation}() called on a request builder that was already dispatched "
            f"({request_line}); start a new request from the harness instead"
        )
        self.operation = operation
        self.request_line = request_line
