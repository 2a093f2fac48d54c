"""Reconciliation errors and Gateway result unwrapping."""

from __future__ import annotations

import typing as typ

from concord.github.results import Failed, Found, NotFound, RateLimited

if typ.TYPE_CHECKING:
    from concord.github.results import GatewayResult


class ReconcileError(Exception):
    """Base class for errors that abort reconciliation."""


class RateLimitExceededError(ReconcileError):
    """Raised when GitHub rate-limits a call; the run stops without retrying."""

    def __init__(self, operation: str, reset_at: int | None = None) -> None:
        """Initialise with the operation that was refused."""
        self.operation = operation
        self.reset_at = reset_at
        suffix = f" (limit resets at {reset_at})" if reset_at is not None else ""
        super().__init__(f"GitHub rate limit hit during {operation}{suffix}")


class RemoteOperationError(ReconcileError):
    """Raised when a Gateway call fails for any reason other than not-found."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        """Initialise with the operation context and the underlying error."""
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation}: {cause}")


class RemoteNotFoundError(ReconcileError):
    """Raised when a resource is missing where its presence was required."""

    def __init__(self, operation: str, resource: str) -> None:
        """Initialise with the operation context and the missing resource."""
        self.operation = operation
        self.resource = resource
        super().__init__(f"{operation}: {resource} not found")


def expect[T](result: GatewayResult[T], operation: str) -> T:
    """Return the payload of a Found result or raise the matching error.

    Parameters
    ----------
    result
        Result of a Gateway call.
    operation
        Human-readable description of the call, e.g.
        ``"update repository acme/widgets"``.

    Raises
    ------
    RemoteNotFoundError
        For NotFound results.
    RateLimitExceededError
        For RateLimited results.
    RemoteOperationError
        For Failed results, chained to the underlying error.

    """
    match result:
        case Found(payload=payload):
            return payload
        case NotFound(resource=resource):
            raise RemoteNotFoundError(operation, resource)
        case RateLimited(reset_at=reset_at):
            raise RateLimitExceededError(operation, reset_at)
        case Failed(error=error):
            raise RemoteOperationError(operation, error) from error
    msg = f"unexpected Gateway result: {result!r}"
    raise TypeError(msg)
