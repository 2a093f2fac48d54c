"""Branch protection reconciliation.

Protection content is never compared: an unprotected branch gets a create
call, and an already protected branch gets the same request re-issued on
every apply run. Signed commits are the exception; their flag lives behind a
separate endpoint and is only written when it differs from the manifest.
"""

from __future__ import annotations

import typing as typ

from concord.github.models import (
    ProtectionRequest,
    PullRequestReviews,
    RequiredStatusChecks,
    StatusCheck,
)
from concord.github.results import NotFound
from concord.logging import get_logger, log_info
from concord.manifest.models import is_set

from .errors import expect
from .report import LineKind, Verb, listed, quoted

if typ.TYPE_CHECKING:
    from concord.github.client import OrganizationGateway
    from concord.manifest.models import Branch, Protection, Repository

    from .report import ActionReport, ReconcileMode

logger = get_logger(__name__)


def build_protection_request(protection: Protection) -> ProtectionRequest:
    """Translate manifest rules into a full protection request.

    A pull request review requirement is present only when ``require_pr`` is
    true, and a status check requirement only when ``checks_must_pass`` is
    true; it carries ``required_checks`` as its contexts.
    """
    reviews = PullRequestReviews() if protection.require_pr is True else None

    status_checks = None
    if protection.checks_must_pass is True:
        status_checks = RequiredStatusChecks(
            checks=[StatusCheck(context=name) for name in protection.required_checks]
        )

    return ProtectionRequest(
        required_status_checks=status_checks,
        required_pull_request_reviews=reviews,
    )


def _rule_lines(protection: Protection) -> list[str]:
    lines: list[str] = []
    if is_set(protection.require_pr):
        lines.append(f"require pr to {quoted(protection.require_pr)}")
    if is_set(protection.checks_must_pass):
        lines.append(f"require status checks to {quoted(protection.checks_must_pass)}")
        if protection.required_checks:
            lines.append(f"required checks to {listed(protection.required_checks)}")
    return lines


class BranchProtectionReconciler:
    """Reconcile the protected branches of one repository at a time."""

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

    async def reconcile(self, repo: Repository) -> None:
        """Protect every manifest branch that exists in the repository."""
        if not repo.protected_branches:
            return

        existing = await self._branch_names(repo)
        for branch in repo.protected_branches:
            if branch.name not in existing:
                self._report.warn(
                    f"branch {branch.name} does not exist in repo {repo.name}"
                )
                continue
            await self._reconcile_branch(repo, branch)

    async def _branch_names(self, repo: Repository) -> set[str]:
        result = await self._gateway.list_branches(self._owner, repo.name)
        # A repository that is only planned for creation has no branches yet.
        if isinstance(result, NotFound):
            return set()
        branches = expect(result, f"list branches of {self._owner}/{repo.name}")
        return {branch.name for branch in branches}

    async def _reconcile_branch(self, repo: Repository, branch: Branch) -> None:
        log_info(
            logger,
            "Reconciling protection of %s/%s:%s",
            self._owner,
            repo.name,
            branch.name,
        )
        result = await self._gateway.get_branch_protection(
            self._owner, repo.name, branch.name
        )
        if isinstance(result, NotFound):
            await self._protect(repo, branch, verb=Verb.CREATE)
        else:
            expect(result, self._operation("get protection of", repo, branch))
            self._report.info(f"protected branch '{branch.name}' for repo {repo.name}")
            await self._protect(repo, branch, verb=Verb.UPDATE)

        await self._reconcile_signed_commits(repo, branch)

    async def _protect(self, repo: Repository, branch: Branch, *, verb: Verb) -> None:
        request = build_protection_request(branch.protection)
        applied = self._mode.applies
        if applied:
            expect(
                await self._gateway.update_branch_protection(
                    self._owner, repo.name, branch.name, request
                ),
                self._operation("protect", repo, branch),
            )

        rule_verb = verb
        if verb is Verb.CREATE:
            self._report.change(
                Verb.CREATE,
                f"protected branch {branch.name} for repo {repo.name}",
                applied=applied,
                kind=LineKind.WARN,
            )
            rule_verb = Verb.SET
        for line in _rule_lines(branch.protection):
            self._report.change(rule_verb, line, applied=applied)

    async def _reconcile_signed_commits(self, repo: Repository, branch: Branch) -> None:
        desired = branch.protection.signed_commits
        if not is_set(desired):
            return

        result = await self._gateway.get_required_signatures(
            self._owner, repo.name, branch.name
        )
        # Without protection GitHub reports the signatures endpoint as missing.
        if isinstance(result, NotFound):
            current = False
        else:
            current = expect(result, self._operation("get signatures of", repo, branch))

        if current == desired:
            self._report.info(f"require signed commits is {quoted(desired)}")
            return

        applied = self._mode.applies
        if applied:
            expect(
                await self._gateway.require_signed_commits(
                    self._owner, repo.name, branch.name, enabled=desired
                ),
                self._operation("require signed commits on", repo, branch),
            )
        self._report.change(
            Verb.UPDATE, f"require signed commits to {quoted(desired)}", applied=applied
        )

    def _operation(self, action: str, repo: Repository, branch: Branch) -> str:
        return f"{action} {self._owner}/{repo.name}:{branch.name}"
