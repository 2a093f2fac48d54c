"""GitHub REST Gateway used by the reconcilers.

Every call waits on the shared rate limiter, issues one HTTP request (or one
per page) and classifies the outcome into a :data:`GatewayResult`. Nothing
here retries: a rate-limit response is returned as :class:`RateLimited` and
the caller aborts the run.
"""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from urllib.parse import quote

import httpx
import msgspec

from concord.logging import get_logger, log_debug, log_error, log_warning

from .errors import GitHubAPIError, GitHubConfigError, GitHubResponseShapeError
from .models import (
    BranchProtection,
    EnabledSetting,
    ProtectionRequest,
    RemoteAccount,
    RemoteBranch,
    RemoteRepository,
    RemoteTeam,
    RemoteUser,
    RepositoryCreate,
    RepositoryPatch,
    TeamCreate,
    TeamPatch,
)
from .ratelimit import RateLimiter, shared_limiter
from .results import Failed, Found, GatewayResult, NotFound, RateLimited

logger = get_logger(__name__)

PAGE_SIZE = 100

_DEFAULT_API_URL = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 20.0

_HTTP_SUCCESS_STATUS_CEILING = 300
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_TOO_MANY_REQUESTS = 429


class OrganizationGateway(typ.Protocol):
    """Remote operations the reconcilers depend on."""

    async def get_organization(self, org: str) -> GatewayResult[RemoteAccount]:
        """Fetch an organization account."""
        ...

    async def get_user(self, login: str) -> GatewayResult[RemoteAccount]:
        """Fetch a user account."""
        ...

    async def list_members(self, org: str) -> GatewayResult[list[RemoteUser]]:
        """List all members of an organization."""
        ...

    async def create_invitation(self, org: str, invitee_id: int) -> GatewayResult[None]:
        """Invite a user into an organization."""
        ...

    async def list_repositories(
        self, account: str
    ) -> GatewayResult[list[RemoteRepository]]:
        """List the non-archived repositories of an organization or user."""
        ...

    async def get_repository(
        self, owner: str, name: str
    ) -> GatewayResult[RemoteRepository]:
        """Fetch one repository."""
        ...

    async def create_repository(
        self, org: str, request: RepositoryCreate
    ) -> GatewayResult[RemoteRepository]:
        """Create a repository with its full desired projection."""
        ...

    async def update_repository(
        self, owner: str, name: str, patch: RepositoryPatch
    ) -> GatewayResult[RemoteRepository]:
        """Apply a partial repository update."""
        ...

    async def list_topics(self, owner: str, name: str) -> GatewayResult[list[str]]:
        """List a repository's topics."""
        ...

    async def set_topics(
        self, owner: str, name: str, topics: list[str]
    ) -> GatewayResult[list[str]]:
        """Replace all topics on a repository."""
        ...

    async def list_branches(
        self, owner: str, repo: str
    ) -> GatewayResult[list[RemoteBranch]]:
        """List a repository's branches."""
        ...

    async def get_branch_protection(
        self, owner: str, repo: str, branch: str
    ) -> GatewayResult[BranchProtection]:
        """Fetch branch protection; NotFound when the branch is unprotected."""
        ...

    async def update_branch_protection(
        self, owner: str, repo: str, branch: str, request: ProtectionRequest
    ) -> GatewayResult[BranchProtection]:
        """Create or replace branch protection."""
        ...

    async def get_required_signatures(
        self, owner: str, repo: str, branch: str
    ) -> GatewayResult[bool]:
        """Return whether signed commits are required on a branch."""
        ...

    async def require_signed_commits(
        self, owner: str, repo: str, branch: str, *, enabled: bool
    ) -> GatewayResult[bool]:
        """Enable or disable the signed-commit requirement."""
        ...

    async def list_teams(self, org: str) -> GatewayResult[list[RemoteTeam]]:
        """List an organization's teams."""
        ...

    async def create_team(
        self, org: str, request: TeamCreate
    ) -> GatewayResult[RemoteTeam]:
        """Create a team."""
        ...

    async def update_team(
        self, org: str, slug: str, patch: TeamPatch
    ) -> GatewayResult[RemoteTeam]:
        """Apply a partial team update."""
        ...

    async def list_team_members(
        self, org: str, slug: str
    ) -> GatewayResult[list[RemoteUser]]:
        """List a team's members."""
        ...

    async def add_team_member(
        self, org: str, slug: str, login: str
    ) -> GatewayResult[None]:
        """Add or confirm a user's team membership."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Configuration for the GitHub REST API client."""

    token: str
    api_url: str = _DEFAULT_API_URL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = "concord/0.1"

    @classmethod
    def from_env(cls) -> GitHubRestConfig:
        """Build configuration from ``CONCORD_GITHUB_*`` environment variables.

        Raises
        ------
        GitHubConfigError
            If ``CONCORD_GITHUB_TOKEN`` is missing or blank.
        ValueError
            If ``CONCORD_HTTP_TIMEOUT_S`` is not a positive number.

        """
        token = os.environ.get("CONCORD_GITHUB_TOKEN", "").strip()
        if not token:
            raise GitHubConfigError.missing_token()

        api_url = os.environ.get("CONCORD_GITHUB_API_URL", "").strip()
        raw_timeout = os.environ.get("CONCORD_HTTP_TIMEOUT_S", "").strip()
        timeout_s = _DEFAULT_TIMEOUT_S
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError as exc:
                msg = f"CONCORD_HTTP_TIMEOUT_S must be a number, got: {raw_timeout!r}"
                raise ValueError(msg) from exc
            if timeout_s <= 0:
                msg = f"CONCORD_HTTP_TIMEOUT_S must be positive, got: {timeout_s}"
                raise ValueError(msg)

        return cls(
            token=token,
            api_url=api_url.rstrip("/") or _DEFAULT_API_URL,
            timeout_s=timeout_s,
        )


class _ErrorBody(msgspec.Struct):
    message: str = ""


class _TopicNames(msgspec.Struct):
    names: list[str] = msgspec.field(default_factory=list)


class _RepositoryCreateBody(msgspec.Struct, kw_only=True):
    name: str
    description: str | msgspec.UnsetType = msgspec.UNSET
    private: bool | msgspec.UnsetType = msgspec.UNSET


class _InvitationBody(msgspec.Struct):
    invitee_id: int


type _Outcome = httpx.Response | NotFound | RateLimited | Failed


def _segment(value: str) -> str:
    """Escape a value for use as a single URL path segment."""
    return quote(value, safe="")


def _error_message(response: httpx.Response) -> str:
    try:
        return msgspec.json.decode(response.content, type=_ErrorBody).message
    except msgspec.DecodeError:
        return ""


def _reset_at(response: httpx.Response) -> int | None:
    raw = response.headers.get("x-ratelimit-reset")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    if response.status_code == _HTTP_TOO_MANY_REQUESTS:
        return True
    if response.status_code != _HTTP_FORBIDDEN:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in message.lower()


def classify_response(
    response: httpx.Response, resource: str
) -> NotFound | RateLimited | Failed | None:
    """Classify an error response; return None for 2xx statuses.

    Redirects that reach this point were not followed, so they are failures.
    """
    status = response.status_code
    if status < _HTTP_SUCCESS_STATUS_CEILING:
        return None
    if status == _HTTP_NOT_FOUND:
        return NotFound(resource)

    message = _error_message(response)
    if _is_rate_limited(response, message):
        return RateLimited(resource, reset_at=_reset_at(response))
    return Failed(resource, GitHubAPIError.http_error(status, message or None))


def _decode[T](
    response: httpx.Response, payload_type: type[T], resource: str
) -> GatewayResult[T]:
    try:
        return Found(msgspec.json.decode(response.content, type=payload_type))
    except msgspec.DecodeError as exc:
        return Failed(resource, GitHubResponseShapeError.undecodable(resource, exc))


class GitHubRestGateway:
    """GitHub REST implementation of :class:`OrganizationGateway`."""

    def __init__(
        self,
        config: GitHubRestConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        """Initialise the gateway with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._limiter = limiter or shared_limiter()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            follow_redirects=True,
            headers={
                "Authorization": f"Bearer {config.token}",
                "User-Agent": config.user_agent,
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    # Organization and membership

    async def get_organization(self, org: str) -> GatewayResult[RemoteAccount]:
        """Fetch an organization account."""
        return await self._call(
            "GET", f"/orgs/{_segment(org)}", "organization", RemoteAccount
        )

    async def get_user(self, login: str) -> GatewayResult[RemoteAccount]:
        """Fetch a user account."""
        return await self._call(
            "GET", f"/users/{_segment(login)}", "user", RemoteAccount
        )

    async def list_members(self, org: str) -> GatewayResult[list[RemoteUser]]:
        """List all members of an organization."""
        return await self._paginate(
            f"/orgs/{_segment(org)}/members", "organization members", RemoteUser
        )

    async def create_invitation(self, org: str, invitee_id: int) -> GatewayResult[None]:
        """Invite a user, by numeric id, into an organization."""
        return await self._write(
            "POST",
            f"/orgs/{_segment(org)}/invitations",
            "organization invitation",
            _InvitationBody(invitee_id=invitee_id),
        )

    # Repositories

    async def list_repositories(
        self, account: str
    ) -> GatewayResult[list[RemoteRepository]]:
        """List the non-archived repositories of an organization or user.

        The account is looked up as an organization first and as a user when
        that lookup is not found. An account whose public plus private
        repository count is zero yields ``NotFound("repositories")`` without
        paging.
        """
        is_org = True
        owner = await self.get_organization(account)
        if isinstance(owner, NotFound):
            is_org = False
            owner = await self.get_user(account)
            if isinstance(owner, NotFound):
                return NotFound("account")
        if not isinstance(owner, Found):
            return owner

        if owner.payload.repository_count < 1:
            return NotFound("repositories")

        base = "orgs" if is_org else "users"
        listing = await self._paginate(
            f"/{base}/{_segment(account)}/repos",
            "repositories",
            RemoteRepository,
            params={"type": "all"},
        )
        if not isinstance(listing, Found):
            return listing
        return Found([repo for repo in listing.payload if not repo.archived])

    async def get_repository(
        self, owner: str, name: str
    ) -> GatewayResult[RemoteRepository]:
        """Fetch one repository."""
        return await self._call(
            "GET", self._repo_path(owner, name), "repository", RemoteRepository
        )

    async def create_repository(
        self, org: str, request: RepositoryCreate
    ) -> GatewayResult[RemoteRepository]:
        """Create a repository carrying its full desired projection.

        GitHub's create endpoint only accepts some settings, so topics and the
        archived/default-branch flags are applied straight after creation.
        The returned repository reflects every step.

        When ``org`` is not an organization but is the authenticated user,
        the repository is created under that user's account instead.
        """
        body = _RepositoryCreateBody(
            name=request.name,
            description=request.description,
            private=request.private,
        )
        created = await self._call(
            "POST",
            f"/orgs/{_segment(org)}/repos",
            "repository",
            RemoteRepository,
            body=body,
        )
        if isinstance(created, NotFound):
            created = await self._create_user_repository(org, body)
        if not isinstance(created, Found):
            return created
        repo = created.payload

        if not isinstance(request.topics, msgspec.UnsetType):
            topics = await self.set_topics(org, repo.name, request.topics)
            if not isinstance(topics, Found):
                return topics
            repo = msgspec.structs.replace(repo, topics=topics.payload)

        patch = RepositoryPatch(
            archived=request.archived, default_branch=request.default_branch
        )
        if not patch.is_empty():
            updated = await self.update_repository(org, repo.name, patch)
            if not isinstance(updated, Found):
                return updated
            repo = msgspec.structs.replace(updated.payload, topics=repo.topics)

        return Found(repo)

    async def _create_user_repository(
        self, owner: str, body: _RepositoryCreateBody
    ) -> GatewayResult[RemoteRepository]:
        # /user/repos always targets the token's own account.
        viewer = await self._call("GET", "/user", "authenticated user", RemoteUser)
        if isinstance(viewer, NotFound):
            return NotFound("organization")
        if not isinstance(viewer, Found):
            return viewer
        if viewer.payload.login.casefold() != owner.casefold():
            log_warning(
                logger,
                "Cannot create repositories for %s as %s",
                owner,
                viewer.payload.login,
            )
            return NotFound("organization")
        return await self._call(
            "POST", "/user/repos", "repository", RemoteRepository, body=body
        )

    async def update_repository(
        self, owner: str, name: str, patch: RepositoryPatch
    ) -> GatewayResult[RemoteRepository]:
        """Apply a partial update; unset patch fields are not sent."""
        return await self._call(
            "PATCH",
            self._repo_path(owner, name),
            "repository",
            RemoteRepository,
            body=patch,
        )

    async def list_topics(self, owner: str, name: str) -> GatewayResult[list[str]]:
        """List a repository's topics."""
        result = await self._call(
            "GET",
            f"{self._repo_path(owner, name)}/topics",
            "repository topics",
            _TopicNames,
        )
        if not isinstance(result, Found):
            return result
        return Found(result.payload.names)

    async def set_topics(
        self, owner: str, name: str, topics: list[str]
    ) -> GatewayResult[list[str]]:
        """Replace every topic on a repository with ``topics``."""
        result = await self._call(
            "PUT",
            f"{self._repo_path(owner, name)}/topics",
            "repository topics",
            _TopicNames,
            body=_TopicNames(names=list(topics)),
        )
        if not isinstance(result, Found):
            return result
        return Found(result.payload.names)

    # Branches

    async def list_branches(
        self, owner: str, repo: str
    ) -> GatewayResult[list[RemoteBranch]]:
        """List a repository's branches."""
        return await self._paginate(
            f"{self._repo_path(owner, repo)}/branches", "branches", RemoteBranch
        )

    async def get_branch_protection(
        self, owner: str, repo: str, branch: str
    ) -> GatewayResult[BranchProtection]:
        """Fetch branch protection; NotFound when the branch is unprotected."""
        return await self._call(
            "GET",
            self._protection_path(owner, repo, branch),
            "branch protection",
            BranchProtection,
        )

    async def update_branch_protection(
        self, owner: str, repo: str, branch: str, request: ProtectionRequest
    ) -> GatewayResult[BranchProtection]:
        """Create or replace branch protection with ``request``."""
        return await self._call(
            "PUT",
            self._protection_path(owner, repo, branch),
            "branch protection",
            BranchProtection,
            body=request,
        )

    async def get_required_signatures(
        self, owner: str, repo: str, branch: str
    ) -> GatewayResult[bool]:
        """Return whether signed commits are required on a branch."""
        result = await self._call(
            "GET",
            f"{self._protection_path(owner, repo, branch)}/required_signatures",
            "required signatures",
            EnabledSetting,
        )
        if not isinstance(result, Found):
            return result
        return Found(result.payload.enabled)

    async def require_signed_commits(
        self, owner: str, repo: str, branch: str, *, enabled: bool
    ) -> GatewayResult[bool]:
        """Enable (POST) or disable (DELETE) required commit signatures."""
        path = f"{self._protection_path(owner, repo, branch)}/required_signatures"
        result = await self._write(
            "POST" if enabled else "DELETE", path, "required signatures"
        )
        if not isinstance(result, Found):
            return result
        return Found(enabled)

    # Teams

    async def list_teams(self, org: str) -> GatewayResult[list[RemoteTeam]]:
        """List an organization's teams."""
        return await self._paginate(f"/orgs/{_segment(org)}/teams", "teams", RemoteTeam)

    async def create_team(
        self, org: str, request: TeamCreate
    ) -> GatewayResult[RemoteTeam]:
        """Create a team."""
        return await self._call(
            "POST", f"/orgs/{_segment(org)}/teams", "team", RemoteTeam, body=request
        )

    async def update_team(
        self, org: str, slug: str, patch: TeamPatch
    ) -> GatewayResult[RemoteTeam]:
        """Apply a partial team update."""
        return await self._call(
            "PATCH",
            f"/orgs/{_segment(org)}/teams/{_segment(slug)}",
            "team",
            RemoteTeam,
            body=patch,
        )

    async def list_team_members(
        self, org: str, slug: str
    ) -> GatewayResult[list[RemoteUser]]:
        """List a team's members."""
        return await self._paginate(
            f"/orgs/{_segment(org)}/teams/{_segment(slug)}/members",
            "team members",
            RemoteUser,
        )

    async def add_team_member(
        self, org: str, slug: str, login: str
    ) -> GatewayResult[None]:
        """Add or confirm a user's team membership."""
        team_path = f"/orgs/{_segment(org)}/teams/{_segment(slug)}"
        return await self._write(
            "PUT",
            f"{team_path}/memberships/{_segment(login)}",
            "team membership",
        )

    # Transport

    @staticmethod
    def _repo_path(owner: str, name: str) -> str:
        return f"/repos/{_segment(owner)}/{_segment(name)}"

    def _protection_path(self, owner: str, repo: str, branch: str) -> str:
        return f"{self._repo_path(owner, repo)}/branches/{_segment(branch)}/protection"

    async def _send(
        self,
        method: str,
        url: str,
        resource: str,
        *,
        body: object | None = None,
        params: dict[str, typ.Any] | None = None,
    ) -> _Outcome:
        """Throttle, send one request and classify any failure."""
        await self._limiter.acquire()
        if not url.startswith(("http://", "https://")):
            url = f"{self._config.api_url}{url}"
        log_debug(logger, "GitHub %s %s", method, url)

        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                content=None if body is None else msgspec.json.encode(body),
                headers=None if body is None else {"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            log_warning(logger, "GitHub %s %s failed: %s", method, url, exc)
            return Failed(resource, GitHubAPIError.transport(exc))

        failure = classify_response(response, resource)
        if failure is None:
            return response
        if isinstance(failure, RateLimited):
            log_error(
                logger,
                "GitHub rate limit hit on %s %s (resets at %s)",
                method,
                url,
                failure.reset_at,
            )
        elif isinstance(failure, Failed):
            log_warning(logger, "GitHub %s %s failed: %s", method, url, failure.error)
        return failure

    async def _call[T](  # noqa: PLR0913
        self,
        method: str,
        path: str,
        resource: str,
        payload_type: type[T],
        *,
        body: object | None = None,
        params: dict[str, typ.Any] | None = None,
    ) -> GatewayResult[T]:
        outcome = await self._send(method, path, resource, body=body, params=params)
        if not isinstance(outcome, httpx.Response):
            return outcome
        return _decode(outcome, payload_type, resource)

    async def _write(
        self, method: str, path: str, resource: str, body: object | None = None
    ) -> GatewayResult[None]:
        """Send a request whose response body is not needed."""
        outcome = await self._send(method, path, resource, body=body)
        if not isinstance(outcome, httpx.Response):
            return outcome
        return Found(None)

    async def _paginate[T](
        self,
        path: str,
        resource: str,
        item_type: type[T],
        *,
        params: dict[str, typ.Any] | None = None,
    ) -> GatewayResult[list[T]]:
        """Collect every page by following ``Link: rel="next"`` headers."""
        items: list[T] = []
        url = path
        query: dict[str, typ.Any] | None = {"per_page": PAGE_SIZE, **(params or {})}

        while True:
            outcome = await self._send("GET", url, resource, params=query)
            if not isinstance(outcome, httpx.Response):
                return outcome
            page = _decode(outcome, list[item_type], resource)
            if not isinstance(page, Found):
                return page
            items.extend(page.payload)

            next_url = outcome.links.get("next", {}).get("url")
            if not next_url:
                return Found(items)
            # The next link already carries per_page and the filters.
            url, query = next_url, None


__all__ = [
    "PAGE_SIZE",
    "GitHubRestConfig",
    "GitHubRestGateway",
    "OrganizationGateway",
    "classify_response",
]
