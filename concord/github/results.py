"""Tagged results returned by every Gateway call.

Callers switch on the result kind instead of inspecting HTTP errors::

    match await gateway.get_repository("acme", "widgets"):
        case Found(payload=repo):
            ...
        case NotFound():
            ...  # create it
        case other:
            expect(other, "get repository acme/widgets")
"""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True, slots=True)
class Found[T]:
    """Successful call carrying its decoded payload."""

    payload: T


@dataclasses.dataclass(frozen=True, slots=True)
class NotFound:
    """The requested resource does not exist (HTTP 404)."""

    resource: str


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimited:
    """GitHub refused the call because a rate limit was hit.

    Attributes
    ----------
    resource
        What was being requested.
    reset_at
        Epoch seconds at which the limit resets, when GitHub reported it.

    """

    resource: str
    reset_at: int | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class Failed:
    """Any other failure: error status, transport error or malformed body."""

    resource: str
    error: BaseException


type GatewayResult[T] = Found[T] | NotFound | RateLimited | Failed


__all__ = ["Failed", "Found", "GatewayResult", "NotFound", "RateLimited"]
