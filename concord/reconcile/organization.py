"""Whole-organization reconciliation runs."""

from __future__ import annotations

import enum
import typing as typ

from concord.github.results import NotFound
from concord.logging import get_logger, log_info

from .errors import expect
from .members import MemberReconciler
from .report import ActionReport
from .repositories import RepositoryReconciler
from .teams import TeamReconciler

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from concord.github.client import OrganizationGateway
    from concord.github.models import RemoteRepository
    from concord.manifest.models import Organization

    from .report import ReconcileMode

logger = get_logger(__name__)


class Scope(enum.StrEnum):
    """Entity groups a run can cover."""

    MEMBERS = "members"
    TEAMS = "teams"
    REPOS = "repos"


ALL_SCOPES: tuple[Scope, ...] = (Scope.MEMBERS, Scope.TEAMS, Scope.REPOS)


class OrganizationReconciler:
    """Run the selected reconcilers for one organization in a fixed order.

    Members always run before teams, and teams before repositories,
    whatever order ``scopes`` lists them in. A failure stops the run; changes
    already applied stay applied and the report keeps every line written
    before the failure.
    """

    def __init__(
        self,
        gateway: OrganizationGateway,
        *,
        mode: ReconcileMode,
        report: ActionReport | None = None,
    ) -> None:
        """Bind the run to a Gateway, a mode and the report to append to."""
        self._gateway = gateway
        self._mode = mode
        self.report = report or ActionReport()

    async def run(
        self, org: Organization, scopes: cabc.Iterable[Scope] = ALL_SCOPES
    ) -> ActionReport:
        """Reconcile ``org`` for the requested scopes and return the report."""
        selected = set(scopes)
        log_info(
            logger,
            "Reconciling %s (%s) in %s mode",
            org.name,
            ", ".join(scope.value for scope in ALL_SCOPES if scope in selected),
            self._mode.value,
        )
        self.report.header(f"Org {org.name}")

        if Scope.MEMBERS in selected:
            members = MemberReconciler(
                self._gateway, org=org.name, mode=self._mode, report=self.report
            )
            await members.reconcile(org)

        if Scope.TEAMS in selected:
            teams = TeamReconciler(
                self._gateway, org=org.name, mode=self._mode, report=self.report
            )
            await teams.reconcile(org.teams)

        if Scope.REPOS in selected:
            await self._reconcile_repositories(org)

        return self.report

    async def _reconcile_repositories(self, org: Organization) -> None:
        self.report.header("Repos")

        result = await self._gateway.list_repositories(org.name)
        if isinstance(result, NotFound) and result.resource == "repositories":
            inventory: list[RemoteRepository] = []
        else:
            inventory = expect(result, f"list repositories of {org.name}")

        wanted = {repo.name.casefold() for repo in org.repositories}
        for remote in inventory:
            if remote.name.casefold() not in wanted:
                self.report.warn(
                    f"repo {remote.name} exists in github but not in manifest"
                )

        repositories = RepositoryReconciler(
            self._gateway, owner=org.name, mode=self._mode, report=self.report
        )
        for repo in org.repositories:
            await repositories.reconcile(repo)
