# Copyright (c) Syntropy Systems
"""Error types raised by splitgate."""
from __future__ import annotations


class SplitgateError(Exception):
    """Base class for all splitgate errors."""


class ValidationError(SplitgateError):
    """A local invariant was violated before anything reached a server."""

    errors: list[str]

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class CollaboratorError(SplitgateError):
    """A remote collaborator (experiment store, settings store) failed."""


class ApiError(CollaboratorError):
    """Error from search engine API communication."""

    status_code: int | None

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        """Whether the server answered 404."""
        return self.status_code == 404


class InvalidTransitionError(SplitgateError):
    """A decision workflow operation is not allowed in the current state."""


class WorkflowAlreadyOpenError(SplitgateError):
    """A decision workflow is already open for this experiment."""
