"""Typed organization manifest structures.

Optional settings default to ``msgspec.UNSET``. An unset field means
"concord does not manage this setting"; a set field is authoritative, even
when its value is ``false`` or an empty string. Reconcilers must never read
an unset field as "clear this setting".
"""

from __future__ import annotations

import typing as typ

import msgspec


class People(msgspec.Struct, kw_only=True):
    """Organization member.

    Attributes
    ----------
    name : str
        Display name, used in reports only.
    username : str
        GitHub login; matched case-insensitively against remote members.

    """

    name: str
    username: str


class Team(msgspec.Struct, kw_only=True):
    """Organization team and its members.

    Attributes
    ----------
    name : str
        Team name; matched case-insensitively against remote team names.
    description : str, optional
        Team description, managed when set.
    privacy : Literal["secret", "closed"], optional
        Team visibility, managed when set.
    members : list[str]
        Usernames that must belong to the team.

    """

    name: str
    description: str | msgspec.UnsetType = msgspec.UNSET
    privacy: typ.Literal["secret", "closed"] | msgspec.UnsetType = msgspec.UNSET
    members: list[str] = msgspec.field(default_factory=list)


class Protection(msgspec.Struct, kw_only=True):
    """Branch protection rules.

    Attributes
    ----------
    require_pr : bool, optional
        Require pull request reviews before merging.
    checks_must_pass : bool, optional
        Require status checks to pass before merging.
    required_checks : list[str]
        Status check contexts that must pass; only meaningful with
        ``checks_must_pass``.
    signed_commits : bool, optional
        Require signed commits, reconciled through its own endpoint.

    """

    require_pr: bool | msgspec.UnsetType = msgspec.UNSET
    checks_must_pass: bool | msgspec.UnsetType = msgspec.UNSET
    required_checks: list[str] = msgspec.field(default_factory=list)
    signed_commits: bool | msgspec.UnsetType = msgspec.UNSET


class Branch(msgspec.Struct, kw_only=True):
    """Protected branch, identified by name within its repository."""

    name: str
    protection: Protection = msgspec.field(default_factory=Protection)


class Repository(msgspec.Struct, kw_only=True):
    """Repository settings.

    Attributes
    ----------
    name : str
        Repository name and identity key.
    description : str, optional
        Compared case-insensitively with the remote description.
    archived : bool, optional
        Archive flag.
    private : bool, optional
        Visibility flag.
    default_branch : str, optional
        Compared case-insensitively with the remote default branch.
    labels : list[str], optional
        Topics, compared as an unordered set. An explicit empty list clears
        every topic; leaving it unset leaves topics unmanaged.
    protected_branches : list[Branch]
        Branches whose protection is managed.

    """

    name: str
    description: str | msgspec.UnsetType = msgspec.UNSET
    archived: bool | msgspec.UnsetType = msgspec.UNSET
    private: bool | msgspec.UnsetType = msgspec.UNSET
    default_branch: str | msgspec.UnsetType = msgspec.UNSET
    labels: list[str] | msgspec.UnsetType = msgspec.UNSET
    protected_branches: list[Branch] = msgspec.field(default_factory=list)


class Organization(msgspec.Struct, kw_only=True):
    """Top-level manifest for one GitHub organization."""

    name: str
    people: list[People] = msgspec.field(default_factory=list)
    teams: list[Team] = msgspec.field(default_factory=list)
    repositories: list[Repository] = msgspec.field(default_factory=list)


def is_set[T](value: T | msgspec.UnsetType) -> typ.TypeGuard[T]:
    """Return True when a manifest field carries an authoritative value."""
    return not isinstance(value, msgspec.UnsetType)
