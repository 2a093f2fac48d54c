"""In-memory GitHub REST API served through ``httpx.MockTransport``.

The fake understands the subset of endpoints the Gateway calls, pages list
endpoints with ``Link`` headers like GitHub does, and records every request
so tests can assert on the writes a run issued.
"""

from __future__ import annotations

import dataclasses
import itertools
import json
import typing as typ
from urllib.parse import unquote

import httpx

from concord.github import GitHubRestConfig, GitHubRestGateway, RateLimiter

API_URL = "https://api.github.test"
DEFAULT_PER_PAGE = 30

_ids = itertools.count(1000)


@dataclasses.dataclass(slots=True)
class FakeBranch:
    """Branch with its protection settings."""

    name: str
    protection: dict[str, typ.Any] | None = None
    signatures: bool = False


@dataclasses.dataclass(slots=True)
class FakeRepository:
    """Repository state held by the fake."""

    name: str
    description: str | None = None
    archived: bool = False
    private: bool = False
    default_branch: str = "main"
    topics: list[str] = dataclasses.field(default_factory=list)
    branches: dict[str, FakeBranch] = dataclasses.field(default_factory=dict)
    id: int = dataclasses.field(default_factory=lambda: next(_ids))

    def payload(self) -> dict[str, typ.Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "archived": self.archived,
            "private": self.private,
            "default_branch": self.default_branch,
            "topics": list(self.topics),
        }


@dataclasses.dataclass(slots=True)
class FakeTeam:
    """Organization team held by the fake."""

    name: str
    slug: str
    description: str | None = None
    privacy: str = "secret"
    members: list[str] = dataclasses.field(default_factory=list)
    id: int = dataclasses.field(default_factory=lambda: next(_ids))

    def payload(self) -> dict[str, typ.Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "privacy": self.privacy,
        }


@dataclasses.dataclass(slots=True)
class FakeAccount:
    """Organization or user account."""

    login: str
    is_org: bool
    members: list[str] = dataclasses.field(default_factory=list)
    repos: dict[str, FakeRepository] = dataclasses.field(default_factory=dict)
    teams: list[FakeTeam] = dataclasses.field(default_factory=list)
    invitations: list[int] = dataclasses.field(default_factory=list)
    id: int = dataclasses.field(default_factory=lambda: next(_ids))

    def payload(self) -> dict[str, typ.Any]:
        public = sum(1 for repo in self.repos.values() if not repo.private)
        return {
            "login": self.login,
            "id": self.id,
            "public_repos": public,
            "total_private_repos": len(self.repos) - public,
        }


class FakeGitHub:
    """Stateful GitHub double; build a Gateway against it with :meth:`gateway`."""

    def __init__(self) -> None:
        self.accounts: dict[str, FakeAccount] = {}
        self.requests: list[httpx.Request] = []
        self.rate_limited: set[tuple[str, str]] = set()
        self.failing: dict[tuple[str, str], int] = {}
        # Login of the user the gateway's token belongs to.
        self.viewer: str | None = None

    # Seeding

    def add_org(self, login: str, *, members: typ.Iterable[str] = ()) -> FakeAccount:
        account = FakeAccount(login=login, is_org=True)
        self.accounts[login.casefold()] = account
        for member in members:
            self.add_user(member)
            account.members.append(member)
        return account

    def add_user(self, login: str) -> FakeAccount:
        key = login.casefold()
        if key not in self.accounts:
            self.accounts[key] = FakeAccount(login=login, is_org=False)
        return self.accounts[key]

    def add_repo(
        self,
        owner: str,
        name: str,
        *,
        branches: typ.Iterable[str] = ("main",),
        **fields: typ.Any,
    ) -> FakeRepository:
        repo = FakeRepository(name=name, **fields)
        for branch in branches:
            repo.branches[branch] = FakeBranch(name=branch)
        self.accounts[owner.casefold()].repos[name.casefold()] = repo
        return repo

    def add_team(
        self,
        org: str,
        name: str,
        *,
        members: typ.Iterable[str] = (),
        **fields: typ.Any,
    ) -> FakeTeam:
        team = FakeTeam(name=name, slug=_slugify(name), members=list(members), **fields)
        self.accounts[org.casefold()].teams.append(team)
        return team

    def protect(
        self,
        owner: str,
        repo: str,
        branch: str,
        *,
        protection: dict[str, typ.Any] | None = None,
        signatures: bool = False,
    ) -> FakeBranch:
        target = self.repo(owner, repo).branches[branch]
        target.protection = protection or {
            "required_status_checks": None,
            "required_pull_request_reviews": None,
        }
        target.signatures = signatures
        return target

    def rate_limit(self, method: str, path: str) -> None:
        """Answer ``method path`` with a secondary rate-limit 403."""
        self.rate_limited.add((method, path))

    def fail(self, method: str, path: str, status: int = 500) -> None:
        """Answer ``method path`` with an error status."""
        self.failing[(method, path)] = status

    # Inspection

    def repo(self, owner: str, name: str) -> FakeRepository:
        return self.accounts[owner.casefold()].repos[name.casefold()]

    def team(self, org: str, name: str) -> FakeTeam:
        for team in self.accounts[org.casefold()].teams:
            if team.name.casefold() == name.casefold():
                return team
        raise KeyError(name)

    @property
    def writes(self) -> list[httpx.Request]:
        """Return every non-GET request received, in order."""
        return [request for request in self.requests if request.method != "GET"]

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        """Return requests matching ``method`` and exact decoded ``path``."""
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    def gateway(self, *, limiter: RateLimiter | None = None) -> GitHubRestGateway:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handle), base_url=API_URL
        )
        return GitHubRestGateway(
            GitHubRestConfig(token="test-token", api_url=API_URL),  # noqa: S106
            http_client=client,
            limiter=limiter or RateLimiter(rate_per_second=1_000_000, burst=1_000),
        )

    # Transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        path = request.url.path

        if (method, path) in self.rate_limited:
            return httpx.Response(
                403,
                json={"message": "You have exceeded a secondary rate limit."},
                headers={
                    "x-ratelimit-remaining": "0",
                    "x-ratelimit-reset": "1700000000",
                },
            )
        if (method, path) in self.failing:
            return httpx.Response(
                self.failing[(method, path)], json={"message": "Server Error"}
            )

        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        segments = tuple(unquote(part) for part in raw_path.strip("/").split("/"))
        body = json.loads(request.content) if request.content else None
        return self._route(request, method, segments, body) or _not_found()

    def _route(  # noqa: C901, PLR0911, PLR0912
        self,
        request: httpx.Request,
        method: str,
        segments: tuple[str, ...],
        body: typ.Any,
    ) -> httpx.Response | None:
        match (method, segments):
            case ("GET", ("orgs", org)):
                account = self._account(org, is_org=True)
                return account and httpx.Response(200, json=account.payload())
            case ("GET", ("users", login)):
                account = self._account(login, is_org=False)
                return account and httpx.Response(200, json=account.payload())
            case ("GET", ("orgs", org, "members")):
                account = self._account(org, is_org=True)
                if account is None:
                    return None
                users = [self.add_user(login) for login in account.members]
                return _page(request, [{"login": u.login, "id": u.id} for u in users])
            case ("POST", ("orgs", org, "invitations")):
                account = self._account(org, is_org=True)
                if account is None:
                    return None
                account.invitations.append(body["invitee_id"])
                return httpx.Response(201, json={"id": next(_ids)})
            case ("GET", ("orgs" | "users" as kind, login, "repos")):
                account = self._account(login, is_org=kind == "orgs")
                if account is None:
                    return None
                repos = [repo.payload() for repo in account.repos.values()]
                return _page(request, repos)
            case ("POST", ("orgs", org, "repos")):
                account = self._account(org, is_org=True)
                return account and self._create_repo(account, body)
            case ("GET", ("user",)):
                account = self._viewer_account()
                return account and httpx.Response(200, json=account.payload())
            case ("POST", ("user", "repos")):
                account = self._viewer_account()
                return account and self._create_repo(account, body)
            case (_, ("repos", owner, name, *rest)):
                repo = self._repo(owner, name)
                if repo is None:
                    return None
                return self._route_repo(request, method, repo, tuple(rest), body)
            case (_, ("orgs", org, "teams", *rest)):
                account = self._account(org, is_org=True)
                if account is None:
                    return None
                return self._route_team(request, method, account, tuple(rest), body)
        return None

    def _route_repo(  # noqa: C901, PLR0911
        self,
        request: httpx.Request,
        method: str,
        repo: FakeRepository,
        rest: tuple[str, ...],
        body: typ.Any,
    ) -> httpx.Response | None:
        match (method, rest):
            case ("GET", ()):
                return httpx.Response(200, json=repo.payload())
            case ("PATCH", ()):
                for field in ("description", "archived", "private", "default_branch"):
                    if field in body:
                        setattr(repo, field, body[field])
                return httpx.Response(200, json=repo.payload())
            case ("GET", ("topics",)):
                return httpx.Response(200, json={"names": list(repo.topics)})
            case ("PUT", ("topics",)):
                repo.topics = list(body["names"])
                return httpx.Response(200, json={"names": list(repo.topics)})
            case ("GET", ("branches",)):
                branches = [
                    {"name": b.name, "protected": b.protection is not None}
                    for b in repo.branches.values()
                ]
                return _page(request, branches)
            case (_, ("branches", branch_name, "protection", *tail)):
                branch = repo.branches.get(branch_name)
                if branch is None:
                    return None
                return self._route_protection(method, branch, tuple(tail), body)
        return None

    @staticmethod
    def _route_protection(  # noqa: PLR0911
        method: str, branch: FakeBranch, tail: tuple[str, ...], body: typ.Any
    ) -> httpx.Response | None:
        match (method, tail):
            case ("PUT", ()):
                branch.protection = body
                return httpx.Response(200, json=_protection_payload(branch))
            case ("GET", ()) if branch.protection is not None:
                return httpx.Response(200, json=_protection_payload(branch))
            case (_, ()):
                return None
        if branch.protection is None:
            return None
        match (method, tail):
            case ("GET", ("required_signatures",)):
                return httpx.Response(200, json={"enabled": branch.signatures})
            case ("POST", ("required_signatures",)):
                branch.signatures = True
                return httpx.Response(200, json={"enabled": True})
            case ("DELETE", ("required_signatures",)):
                branch.signatures = False
                return httpx.Response(204)
        return None

    def _route_team(  # noqa: PLR0911
        self,
        request: httpx.Request,
        method: str,
        account: FakeAccount,
        rest: tuple[str, ...],
        body: typ.Any,
    ) -> httpx.Response | None:
        match (method, rest):
            case ("GET", ()):
                return _page(request, [team.payload() for team in account.teams])
            case ("POST", ()):
                team = FakeTeam(
                    name=body["name"],
                    slug=_slugify(body["name"]),
                    description=body.get("description"),
                    privacy=body.get("privacy", "secret"),
                )
                account.teams.append(team)
                return httpx.Response(201, json=team.payload())
        team = next((t for t in account.teams if t.slug == rest[0]), None)
        if team is None:
            return None
        match (method, rest[1:]):
            case ("PATCH", ()):
                for field in ("description", "privacy"):
                    if field in body:
                        setattr(team, field, body[field])
                return httpx.Response(200, json=team.payload())
            case ("GET", ("members",)):
                users = [self.add_user(login) for login in team.members]
                return _page(request, [{"login": u.login, "id": u.id} for u in users])
            case ("PUT", ("memberships", login)):
                if login.casefold() not in {m.casefold() for m in team.members}:
                    team.members.append(login)
                return httpx.Response(200, json={"state": "active", "role": "member"})
        return None

    def _viewer_account(self) -> FakeAccount | None:
        if self.viewer is None:
            return None
        return self._account(self.viewer, is_org=False)

    @staticmethod
    def _create_repo(account: FakeAccount, body: typ.Any) -> httpx.Response:
        repo = FakeRepository(
            name=body["name"],
            description=body.get("description"),
            private=body.get("private", False),
        )
        account.repos[repo.name.casefold()] = repo
        return httpx.Response(201, json=repo.payload())

    def _account(self, login: str, *, is_org: bool) -> FakeAccount | None:
        account = self.accounts.get(login.casefold())
        if account is None or account.is_org != is_org:
            return None
        return account

    def _repo(self, owner: str, name: str) -> FakeRepository | None:
        account = self.accounts.get(owner.casefold())
        if account is None:
            return None
        return account.repos.get(name.casefold())


def _slugify(name: str) -> str:
    return name.strip().lower().replace(" ", "-")


def _not_found() -> httpx.Response:
    return httpx.Response(404, json={"message": "Not Found"})


def _protection_payload(branch: FakeBranch) -> dict[str, typ.Any]:
    protection = dict(branch.protection or {})
    protection["required_signatures"] = {"enabled": branch.signatures}
    return protection


def _page(request: httpx.Request, items: list[dict[str, typ.Any]]) -> httpx.Response:
    """Return one page of ``items`` with a ``Link`` header when more remain."""
    per_page = int(request.url.params.get("per_page", DEFAULT_PER_PAGE))
    page = int(request.url.params.get("page", 1))
    start = (page - 1) * per_page
    chunk = items[start : start + per_page]

    headers = {}
    if start + per_page < len(items):
        next_url = request.url.copy_set_param("page", page + 1)
        headers["Link"] = f'<{next_url}>; rel="next"'
    return httpx.Response(200, json=chunk, headers=headers)
