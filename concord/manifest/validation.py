"""Validation rules for organization manifests."""

from __future__ import annotations

import re
import typing as typ

from .models import is_set

if typ.TYPE_CHECKING:
    from .models import Organization, Repository, Team

REPO_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class ManifestValidationError(ValueError):
    """Raised when a manifest fails parsing or structural validation."""

    def __init__(self, issues: list[str]) -> None:
        """Capture validation issues whilst preserving the aggregated message."""
        message = "\n".join(issues)
        super().__init__(message)
        self.issues = issues


def validate_manifest(org: Organization) -> Organization:
    """Validate a manifest, returning it unchanged when all checks pass."""
    issues: list[str] = []

    if not org.name.strip():
        issues.append("organization name must not be empty")

    usernames = _check_people(org, issues)

    seen_teams: set[str] = set()
    for team in org.teams:
        key = team.name.casefold()
        if key in seen_teams:
            issues.append(f"duplicate team name '{team.name}'")
        seen_teams.add(key)
        _check_team(team, usernames, issues)

    seen_repos: set[str] = set()
    for repo in org.repositories:
        key = repo.name.casefold()
        if key in seen_repos:
            issues.append(f"duplicate repository name '{repo.name}'")
        seen_repos.add(key)
        _check_repository(repo, issues)

    if issues:
        raise ManifestValidationError(issues)

    return org


def _check_people(org: Organization, issues: list[str]) -> set[str]:
    usernames: set[str] = set()
    for person in org.people:
        key = person.username.casefold()
        if not key.strip():
            issues.append(f"person '{person.name}' is missing a username")
            continue
        if key in usernames:
            issues.append(f"duplicate username '{person.username}'")
        usernames.add(key)
    return usernames


def _check_team(team: Team, usernames: set[str], issues: list[str]) -> None:
    if not team.name.strip():
        issues.append("team name must not be empty")

    issues.extend(
        f"team {team.name} member '{member}' is not listed in people"
        for member in team.members
        if member.casefold() not in usernames
    )


def _check_repository(repo: Repository, issues: list[str]) -> None:
    if not REPO_NAME_PATTERN.match(repo.name):
        issues.append(
            f"repository name '{repo.name}' must contain only letters, digits, "
            "dots, underscores, or dashes"
        )

    if is_set(repo.default_branch) and not repo.default_branch.strip():
        issues.append(f"repository {repo.name} default_branch must not be empty")

    if is_set(repo.labels):
        seen_labels: set[str] = set()
        for label in repo.labels:
            if label.casefold() in seen_labels:
                issues.append(f"repository {repo.name} lists label '{label}' twice")
            seen_labels.add(label.casefold())

    seen_branches: set[str] = set()
    for branch in repo.protected_branches:
        if branch.name in seen_branches:
            issues.append(
                f"repository {repo.name} protects branch '{branch.name}' twice"
            )
        seen_branches.add(branch.name)

        protection = branch.protection
        if protection.required_checks and not is_set(protection.checks_must_pass):
            issues.append(
                f"repository {repo.name} branch {branch.name} lists required_checks "
                "without checks_must_pass"
            )
