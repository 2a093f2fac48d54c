"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers.fake_github import FakeGitHub


def _find_repo_root(start: Path) -> Path:
    for parent in (start, *start.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError


@pytest.fixture(scope="session")
def repo_root() -> Path:
    """Return the repository root directory."""
    return _find_repo_root(Path(__file__).resolve())


@pytest.fixture(scope="session")
def acme_manifest_path(repo_root: Path) -> Path:
    """Return the path to the example acme manifest."""
    return repo_root / "examples" / "acme.yaml"


@pytest.fixture
def github() -> FakeGitHub:
    """Return an in-memory GitHub holding an empty ``acme`` organization."""
    fake = FakeGitHub()
    fake.add_org("acme")
    return fake
