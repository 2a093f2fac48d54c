"""Unit tests for repository and topic reconciliation."""

from __future__ import annotations

import json

import msgspec
import pytest

from concord.github import RemoteRepository, RepositoryCreate, RepositoryPatch
from concord.manifest import Repository
from concord.reconcile import (
    ActionReport,
    LineKind,
    ReconcileMode,
    RepositoryReconciler,
    compute_repository_patch,
    desired_projection,
)
from tests.helpers.fake_github import FakeGitHub


def _reconciler(
    github: FakeGitHub, mode: ReconcileMode
) -> tuple[RepositoryReconciler, ActionReport]:
    report = ActionReport()
    reconciler = RepositoryReconciler(
        github.gateway(), owner="acme", mode=mode, report=report
    )
    return reconciler, report


def _texts(report: ActionReport) -> list[str]:
    return [line.text for line in report.lines]


class TestComputeRepositoryPatch:
    """Tests for compute_repository_patch."""

    def test_only_differing_description_is_patched(self) -> None:
        """A description-only drift yields a description-only patch."""
        desired = Repository(
            name="widgets",
            description="Widget service",
            archived=False,
            private=True,
            default_branch="MAIN",
        )
        current = RemoteRepository(
            name="widgets",
            description="Legacy widgets",
            archived=False,
            private=True,
            default_branch="main",
        )

        patch = compute_repository_patch(desired, current)

        assert patch == RepositoryPatch(description="Widget service")
        assert patch.archived is msgspec.UNSET
        assert patch.private is msgspec.UNSET
        assert patch.default_branch is msgspec.UNSET

    def test_unset_fields_never_clear_remote_values(self) -> None:
        """Fields the manifest omits are left alone whatever their value."""
        current = RemoteRepository(
            name="widgets", description="Anything", archived=True, private=True
        )
        assert compute_repository_patch(Repository(name="widgets"), current).is_empty()

    def test_text_comparison_ignores_case(self) -> None:
        """Description and default branch compare case-insensitively."""
        desired = Repository(
            name="widgets", description="WIDGET service", default_branch="Trunk"
        )
        current = RemoteRepository(
            name="widgets", description="widget Service", default_branch="trunk"
        )
        assert compute_repository_patch(desired, current).is_empty()

    def test_set_false_is_authoritative(self) -> None:
        """An explicit false flag corrects a remote true."""
        desired = Repository(name="widgets", archived=False, private=False)
        current = RemoteRepository(name="widgets", archived=True, private=True)

        patch = compute_repository_patch(desired, current)

        assert patch == RepositoryPatch(archived=False, private=False)

    def test_empty_description_replaces_missing_one(self) -> None:
        """An empty manifest description matches a null remote description."""
        desired = Repository(name="widgets", description="")
        current = RemoteRepository(name="widgets", description=None)
        assert compute_repository_patch(desired, current).is_empty()


def test_desired_projection_sorts_topics() -> None:
    """The creation request carries every set field and sorted topics."""
    repo = Repository(name="widgets", private=True, labels=["zeta", "alpha"])
    assert desired_projection(repo) == RepositoryCreate(
        name="widgets", private=True, topics=["alpha", "zeta"]
    )


class TestTopics:
    """Tests for topic reconciliation."""

    @pytest.mark.asyncio
    async def test_topic_order_is_ignored(self, github: FakeGitHub) -> None:
        """Labels [b, a] match topics [a, b] and nothing is written."""
        github.add_repo("acme", "widgets", topics=["a", "b"])
        reconciler, report = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(Repository(name="widgets", labels=["b", "a"]))

        assert github.writes == []
        assert _texts(report) == ["widgets", "labels are [a, b]"]

    @pytest.mark.asyncio
    async def test_differing_topics_are_replaced(self, github: FakeGitHub) -> None:
        """Any difference replaces the whole topic list in one call."""
        github.add_repo("acme", "widgets", topics=["a", "stale"])
        reconciler, report = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(Repository(name="widgets", labels=["c", "a"]))

        (request,) = github.writes
        assert (request.method, request.url.path) == (
            "PUT",
            "/repos/acme/widgets/topics",
        )
        assert json.loads(request.content) == {"names": ["a", "c"]}
        assert github.repo("acme", "widgets").topics == ["a", "c"]
        assert _texts(report)[-1] == "updated labels to [a, c]"

    @pytest.mark.asyncio
    async def test_explicit_empty_labels_clear_topics(
        self, github: FakeGitHub
    ) -> None:
        """An empty label list is authoritative."""
        github.add_repo("acme", "widgets", topics=["old"])
        reconciler, _ = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(Repository(name="widgets", labels=[]))

        assert github.repo("acme", "widgets").topics == []

    @pytest.mark.asyncio
    async def test_unset_labels_are_not_read(self, github: FakeGitHub) -> None:
        """Unmanaged topics are neither listed nor written."""
        github.add_repo("acme", "widgets", topics=["keep"])
        reconciler, _ = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(Repository(name="widgets"))

        assert not github.calls("GET", "/repos/acme/widgets/topics")
        assert github.repo("acme", "widgets").topics == ["keep"]


class TestRepositoryLifecycle:
    """Tests for create-versus-update branching."""

    @pytest.mark.asyncio
    async def test_absent_repository_is_created_in_full(
        self, github: FakeGitHub
    ) -> None:
        """Creation carries every set field and leaves nothing to update."""
        reconciler, report = _reconciler(github, ReconcileMode.APPLY)
        manifest = Repository(
            name="widgets",
            description="Widget service",
            private=True,
            labels=["service", "python"],
        )

        await reconciler.reconcile(manifest)

        created = github.repo("acme", "widgets")
        assert created.description == "Widget service"
        assert created.private is True
        assert created.topics == ["python", "service"]
        assert [(r.method, r.url.path) for r in github.writes] == [
            ("POST", "/orgs/acme/repos"),
            ("PUT", "/repos/acme/widgets/topics"),
        ]
        assert _texts(report) == [
            "widgets",
            "created repo widgets",
            "set description to 'Widget service'",
            "set topics to [python, service]",
            "set private to 'true'",
            "labels are [python, service]",
        ]
        assert report.lines[1].kind is LineKind.WARN

    @pytest.mark.asyncio
    async def test_dry_run_plans_creation_without_writing(
        self, github: FakeGitHub
    ) -> None:
        """Dry-run reports the same creation in the progressive tense."""
        reconciler, report = _reconciler(github, ReconcileMode.DRY_RUN)

        await reconciler.reconcile(
            Repository(name="widgets", archived=False, default_branch="main")
        )

        assert github.writes == []
        assert _texts(report) == [
            "widgets",
            "creating repo widgets",
            "setting archived to 'false'",
            "setting default branch to 'main'",
        ]

    @pytest.mark.asyncio
    async def test_present_repository_gets_one_partial_update(
        self, github: FakeGitHub
    ) -> None:
        """Drifted fields are sent together in a single PATCH."""
        github.add_repo("acme", "widgets", description="old", private=False)
        reconciler, report = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(
            Repository(name="widgets", description="new", private=True, archived=False)
        )

        (request,) = github.writes
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"description": "new", "private": True}
        assert _texts(report) == [
            "widgets",
            "updated description to 'new'",
            "updated private to 'true'",
        ]

    @pytest.mark.asyncio
    async def test_synced_repository_reports_nothing_to_change(
        self, github: FakeGitHub
    ) -> None:
        """A repository that already matches issues no writes."""
        github.add_repo("acme", "widgets", description="Widget service")
        reconciler, report = _reconciler(github, ReconcileMode.APPLY)

        await reconciler.reconcile(
            Repository(name="widgets", description="widget service")
        )

        assert github.writes == []
        assert report.changes() == []
