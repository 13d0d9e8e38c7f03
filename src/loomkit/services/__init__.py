from .base import BaseService
from .errors import (
    ConnectorError,
    ExternalCommandFailedError,
    IoFailedError,
    LoomFailure,
    PathConflictError,
    PortOverflowError,
    UncommittedChangesError,
    UnresolvedIdentifierError,
    ValidationFailedError,
)

__all__ = [
    "BaseService",
    "ConnectorError",
    "ExternalCommandFailedError",
    "IoFailedError",
    "LoomFailure",
    "PathConflictError",
    "PortOverflowError",
    "UncommittedChangesError",
    "UnresolvedIdentifierError",
    "ValidationFailedError",
]
