"""Platform layer: subprocess execution and filesystem helpers."""

from .files import atomic_copy
from .process import ProcessError, run, run_silent

__all__ = [
    "ProcessError",
    "atomic_copy",
    "run",
    "run_silent",
]
