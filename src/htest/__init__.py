"""In-process HTTP handler testing harness."""

from .harness import Harness
from .harness import new

__all__ = ["Harness", "new"]
