"""Repository and topic reconciliation.

Each manifest repository moves through three states: absent, present but
unsynced, and present and synced. An absent repository is created with its
full desired projection, and the created repository becomes the current state
for the update step, which then finds nothing left to change. A present
repository gets one partial update containing only the fields the manifest
sets and that differ remotely.
"""

from __future__ import annotations

import typing as typ

from concord.github.models import RepositoryCreate, RepositoryPatch
from concord.github.results import NotFound
from concord.logging import get_logger, log_info
from concord.manifest.models import is_set

from .branches import BranchProtectionReconciler
from .errors import expect
from .report import LineKind, Verb, listed, quoted

if typ.TYPE_CHECKING:
    from concord.github.client import OrganizationGateway
    from concord.github.models import RemoteRepository
    from concord.manifest.models import Repository

    from .report import ActionReport, ReconcileMode

logger = get_logger(__name__)


def _same_text(left: str | None, right: str) -> bool:
    return (left or "").casefold() == right.casefold()


def desired_projection(repo: Repository) -> RepositoryCreate:
    """Return the creation request for a repository that does not exist."""
    return RepositoryCreate(
        name=repo.name,
        description=repo.description,
        archived=repo.archived,
        private=repo.private,
        default_branch=repo.default_branch,
        topics=sorted(repo.labels) if is_set(repo.labels) else repo.labels,
    )


def compute_repository_patch(
    desired: Repository, current: RemoteRepository
) -> RepositoryPatch:
    """Return a patch holding only the set manifest fields that differ.

    Description and default branch compare case-insensitively. Fields the
    manifest leaves unset stay unset in the patch whatever their remote value.
    """
    patch = RepositoryPatch()

    if is_set(desired.description) and not _same_text(
        current.description, desired.description
    ):
        patch.description = desired.description

    if is_set(desired.archived) and current.archived != desired.archived:
        patch.archived = desired.archived

    if is_set(desired.private) and current.private != desired.private:
        patch.private = desired.private

    if is_set(desired.default_branch) and not _same_text(
        current.default_branch, desired.default_branch
    ):
        patch.default_branch = desired.default_branch

    return patch


def _patch_lines(patch: RepositoryPatch | RepositoryCreate) -> list[str]:
    """Describe the set fields of a patch or creation request, in report order."""
    lines: list[str] = []
    if is_set(patch.description):
        lines.append(f"description to {quoted(patch.description)}")
    if is_set(patch.archived):
        lines.append(f"archived to {quoted(patch.archived)}")
    if isinstance(patch, RepositoryCreate) and is_set(patch.topics):
        lines.append(f"topics to {listed(patch.topics)}")
    if is_set(patch.private):
        lines.append(f"private to {quoted(patch.private)}")
    if is_set(patch.default_branch):
        lines.append(f"default branch to {quoted(patch.default_branch)}")
    return lines


class RepositoryReconciler:
    """Reconcile repositories, their topics and their protected branches."""

    def __init__(
        self,
        gateway: OrganizationGateway,
        *,
        owner: str,
        mode: ReconcileMode,
        report: ActionReport,
    ) -> None:
        """Bind the reconciler to one organization and run mode."""
        self._gateway = gateway
        self._owner = owner
        self._mode = mode
        self._report = report
        self._branches = BranchProtectionReconciler(
            gateway, owner=owner, mode=mode, report=report
        )

    def _slug(self, repo: Repository) -> str:
        return f"{self._owner}/{repo.name}"

    async def reconcile(self, repo: Repository) -> None:
        """Converge one repository: settings, then topics, then branches."""
        log_info(logger, "Reconciling repository %s", self._slug(repo))
        self._report.header(repo.name)

        result = await self._gateway.get_repository(self._owner, repo.name)
        created = isinstance(result, NotFound)
        if created:
            current = await self._create(repo)
        else:
            current = expect(result, f"get repository {self._slug(repo)}")

        await self._update(repo, current)
        await self._reconcile_topics(repo, current, created=created)
        await self._branches.reconcile(repo)

    async def _create(self, repo: Repository) -> RemoteRepository:
        request = desired_projection(repo)
        applied = self._mode.applies
        if applied:
            current = expect(
                await self._gateway.create_repository(self._owner, request),
                f"create repository {self._slug(repo)}",
            )
        else:
            current = request.as_remote()

        self._report.change(
            Verb.CREATE, f"repo {repo.name}", applied=applied, kind=LineKind.WARN
        )
        for line in _patch_lines(request):
            self._report.change(Verb.SET, line, applied=applied)
        return current

    async def _update(self, repo: Repository, current: RemoteRepository) -> None:
        patch = compute_repository_patch(repo, current)
        if patch.is_empty():
            return

        applied = self._mode.applies
        if applied:
            expect(
                await self._gateway.update_repository(self._owner, repo.name, patch),
                f"update repository {self._slug(repo)}",
            )
        for line in _patch_lines(patch):
            self._report.change(Verb.UPDATE, line, applied=applied)

    async def _reconcile_topics(
        self, repo: Repository, current: RemoteRepository, *, created: bool
    ) -> None:
        """Replace all topics when the sorted lists differ."""
        if not is_set(repo.labels):
            return

        if created:
            remote_topics = current.topics
        else:
            remote_topics = expect(
                await self._gateway.list_topics(self._owner, repo.name),
                f"list topics of {self._slug(repo)}",
            )

        desired = sorted(repo.labels)
        if sorted(remote_topics) == desired:
            self._report.info(f"labels are {listed(desired)}")
            return

        applied = self._mode.applies
        if applied:
            expect(
                await self._gateway.set_topics(self._owner, repo.name, desired),
                f"set topics of {self._slug(repo)}",
            )
        self._report.change(
            Verb.UPDATE, f"labels to {listed(desired)}", applied=applied
        )
