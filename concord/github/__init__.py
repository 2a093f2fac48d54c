"""GitHub Gateway: paginated, rate-limited, classified REST access."""

from __future__ import annotations

from .client import (
    PAGE_SIZE,
    GitHubRestConfig,
    GitHubRestGateway,
    OrganizationGateway,
    classify_response,
)
from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import (
    BranchProtection,
    ProtectionRequest,
    PullRequestReviews,
    RemoteAccount,
    RemoteBranch,
    RemoteRepository,
    RemoteTeam,
    RemoteUser,
    RepositoryCreate,
    RepositoryPatch,
    RequiredStatusChecks,
    StatusCheck,
    TeamCreate,
    TeamPatch,
)
from .ratelimit import RateLimitConfig, RateLimiter, shared_limiter
from .results import Failed, Found, GatewayResult, NotFound, RateLimited

__all__ = [
    "PAGE_SIZE",
    "BranchProtection",
    "Failed",
    "Found",
    "GatewayResult",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubResponseShapeError",
    "GitHubRestConfig",
    "GitHubRestGateway",
    "NotFound",
    "OrganizationGateway",
    "ProtectionRequest",
    "PullRequestReviews",
    "RateLimitConfig",
    "RateLimited",
    "RateLimiter",
    "RemoteAccount",
    "RemoteBranch",
    "RemoteRepository",
    "RemoteTeam",
    "RemoteUser",
    "RepositoryCreate",
    "RepositoryPatch",
    "RequiredStatusChecks",
    "StatusCheck",
    "TeamCreate",
    "TeamPatch",
    "classify_response",
    "shared_limiter",
]
