"""Typed GitHub REST payloads read and written by the Gateway.

Read models ignore unknown fields, so only the attributes reconciliation
cares about are declared. Write models that represent partial updates use
``msgspec.UNSET`` for fields the caller does not want to touch; msgspec omits
those fields from the encoded request body, so GitHub leaves them alone.
"""

from __future__ import annotations

import msgspec


class RemoteAccount(msgspec.Struct, kw_only=True):
    """Organization or user account with its repository counts."""

    login: str
    id: int
    public_repos: int = 0
    total_private_repos: int = 0

    @property
    def repository_count(self) -> int:
        """Return the number of public plus visible private repositories."""
        return self.public_repos + self.total_private_repos


class RemoteUser(msgspec.Struct, kw_only=True):
    """Organization member or team member as listed by GitHub."""

    login: str
    id: int


class RemoteRepository(msgspec.Struct, kw_only=True):
    """Repository settings that the reconciler compares against a manifest."""

    name: str
    description: str | None = None
    archived: bool = False
    private: bool = False
    default_branch: str = ""
    topics: list[str] = msgspec.field(default_factory=list)


class RemoteBranch(msgspec.Struct, kw_only=True):
    """Branch entry from the branch listing endpoint."""

    name: str
    protected: bool = False


class RemoteTeam(msgspec.Struct, kw_only=True):
    """Organization team."""

    id: int
    name: str
    slug: str
    description: str | None = None
    privacy: str | None = None


class StatusCheck(msgspec.Struct, kw_only=True):
    """A single required status check context."""

    context: str


class RequiredStatusChecks(msgspec.Struct, kw_only=True):
    """Status checks that must pass before merging."""

    strict: bool = False
    checks: list[StatusCheck] = msgspec.field(default_factory=list)


class PullRequestReviews(msgspec.Struct, kw_only=True):
    """Pull request review requirement."""

    dismiss_stale_reviews: bool = False
    require_code_owner_reviews: bool = False
    required_approving_review_count: int = 0


class EnabledSetting(msgspec.Struct, kw_only=True):
    """GitHub's ``{"enabled": bool}`` toggle objects."""

    enabled: bool = False


class BranchProtection(msgspec.Struct, kw_only=True):
    """Existing branch protection as returned by GitHub."""

    required_status_checks: RequiredStatusChecks | None = None
    required_pull_request_reviews: PullRequestReviews | None = None
    required_signatures: EnabledSetting | None = None


class ProtectionRequest(msgspec.Struct, kw_only=True):
    """Full replacement body for ``PUT .../branches/{branch}/protection``.

    GitHub requires every top-level key to be present, so ``None`` values
    are encoded as JSON ``null`` rather than omitted.
    """

    required_status_checks: RequiredStatusChecks | None = None
    enforce_admins: bool | None = None
    required_pull_request_reviews: PullRequestReviews | None = None
    restrictions: None = None


class RepositoryPatch(msgspec.Struct, kw_only=True):
    """Partial repository update; unset fields are left untouched remotely."""

    description: str | msgspec.UnsetType = msgspec.UNSET
    archived: bool | msgspec.UnsetType = msgspec.UNSET
    private: bool | msgspec.UnsetType = msgspec.UNSET
    default_branch: str | msgspec.UnsetType = msgspec.UNSET

    def is_empty(self) -> bool:
        """Return True when the patch would change nothing."""
        return all(
            getattr(self, field) is msgspec.UNSET for field in self.__struct_fields__
        )


class RepositoryCreate(msgspec.Struct, kw_only=True):
    """Desired projection of a repository that does not exist yet."""

    name: str
    description: str | msgspec.UnsetType = msgspec.UNSET
    archived: bool | msgspec.UnsetType = msgspec.UNSET
    private: bool | msgspec.UnsetType = msgspec.UNSET
    default_branch: str | msgspec.UnsetType = msgspec.UNSET
    topics: list[str] | msgspec.UnsetType = msgspec.UNSET

    def as_remote(self) -> RemoteRepository:
        """Return the repository GitHub would hold after a faithful create."""
        return RemoteRepository(
            name=self.name,
            description=_or(self.description, None),
            archived=_or(self.archived, False),
            private=_or(self.private, False),
            default_branch=_or(self.default_branch, ""),
            topics=list(_or(self.topics, [])),
        )


class TeamCreate(msgspec.Struct, kw_only=True):
    """Body for creating an organization team."""

    name: str
    description: str | msgspec.UnsetType = msgspec.UNSET
    privacy: str | msgspec.UnsetType = msgspec.UNSET


class TeamPatch(msgspec.Struct, kw_only=True):
    """Partial team update."""

    description: str | msgspec.UnsetType = msgspec.UNSET
    privacy: str | msgspec.UnsetType = msgspec.UNSET

    def is_empty(self) -> bool:
        """Return True when the patch would change nothing."""
        return self.description is msgspec.UNSET and self.privacy is msgspec.UNSET


def _or[T, D](value: T | msgspec.UnsetType, default: D) -> T | D:
    return default if isinstance(value, msgspec.UnsetType) else value


__all__ = [
    "BranchProtection",
    "EnabledSetting",
    "ProtectionRequest",
    "PullRequestReviews",
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
]
