"""Base service ABC.

Services extend BaseService and implement _run(request) -> T. They raise
LoomFailure when a request is impossible to satisfy. __call__ catches
LoomFailure and hands it to _handle_failure; the default re-raises so the
caller sees the original error with its context intact.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .errors import LoomFailure

R = TypeVar("R")
T = TypeVar("T")


class BaseService(ABC, Generic[R, T]):
    """Abstract base for lifecycle services."""

    def __call__(self, request: R) -> T:
        try:
            return self._run(request)
        except LoomFailure as exc:
            return self._handle_failure(exc)

    @abstractmethod
    def _run(self, request: R) -> T:
        """Execute the service logic. Raise LoomFailure on precondition errors."""
        ...

    def _handle_failure(self, error: LoomFailure) -> T:
        """Handle LoomFailure. Default re-raises; override for recovery."""
        raise error
