"""Team reconciliation.

Teams follow the repository contract on a smaller field set: a missing team
is created, a present one is patched for the manifest-set fields that differ,
and missing members are added. Nothing is ever removed; remote teams and
team members unknown to the manifest are only reported.
"""

from __future__ import annotations

import typing as typ

from concord.github.models import TeamCreate, TeamPatch
from concord.logging import get_logger, log_info
from concord.manifest.models import is_set

from .errors import expect
from .report import LineKind, Verb, quoted

if typ.TYPE_CHECKING:
    from concord.github.client import OrganizationGateway
    from concord.github.models import RemoteTeam
    from concord.manifest.models import Team

    from .report import ActionReport, ReconcileMode

logger = get_logger(__name__)


def compute_team_patch(desired: Team, current: RemoteTeam) -> TeamPatch:
    """Return a patch with the set manifest fields that differ remotely."""
    patch = TeamPatch()
    description = current.description or ""
    if is_set(desired.description) and description != desired.description:
        patch.description = desired.description
    if is_set(desired.privacy) and current.privacy != desired.privacy:
        patch.privacy = desired.privacy
    return patch


def _field_lines(fields: TeamPatch | TeamCreate) -> list[str]:
    lines: list[str] = []
    if is_set(fields.description):
        lines.append(f"description to {quoted(fields.description)}")
    if is_set(fields.privacy):
        lines.append(f"privacy to {quoted(fields.privacy)}")
    return lines


class TeamReconciler:
    """Reconcile manifest teams and their members."""

    def __init__(
        self,
        gateway: OrganizationGateway,
        *,
        org: str,
        mode: ReconcileMode,
        report: ActionReport,
    ) -> None:
        """Bind the reconciler to one organization and run mode."""
        self._gateway = gateway
        self._org = org
        self._mode = mode
        self._report = report

    async def reconcile(self, teams: list[Team]) -> None:
        """Converge every manifest team, then report unmanaged remote teams."""
        log_info(logger, "Reconciling teams of %s", self._org)
        self._report.header("Teams")

        remote = expect(
            await self._gateway.list_teams(self._org), f"list teams of {self._org}"
        )
        by_name = {team.name.casefold(): team for team in remote}

        for team in teams:
            await self._reconcile_team(team, by_name.get(team.name.casefold()))

        wanted = {team.name.casefold() for team in teams}
        for team in remote:
            if team.name.casefold() not in wanted:
                self._report.warn(
                    f"team {team.name} exists in github but not in manifest"
                )

    async def _reconcile_team(self, team: Team, current: RemoteTeam | None) -> None:
        if current is None:
            slug = await self._create(team)
            # A new team starts without members, whatever the mode.
            members: list[str] = []
        else:
            self._report.info(f"team {team.name} exists in github")
            await self._update(team, current)
            slug = current.slug
            remote_members = expect(
                await self._gateway.list_team_members(self._org, slug),
                f"list members of team {self._org}/{slug}",
            )
            members = [member.login for member in remote_members]

        await self._reconcile_members(team, slug, members)

    async def _create(self, team: Team) -> str | None:
        request = TeamCreate(
            name=team.name, description=team.description, privacy=team.privacy
        )
        applied = self._mode.applies
        slug = None
        if applied:
            created = expect(
                await self._gateway.create_team(self._org, request),
                f"create team {self._org}/{team.name}",
            )
            slug = created.slug

        self._report.change(
            Verb.CREATE, f"team {team.name}", applied=applied, kind=LineKind.WARN
        )
        for line in _field_lines(request):
            self._report.change(Verb.SET, line, applied=applied)
        return slug

    async def _update(self, team: Team, current: RemoteTeam) -> None:
        patch = compute_team_patch(team, current)
        if patch.is_empty():
            return

        applied = self._mode.applies
        if applied:
            expect(
                await self._gateway.update_team(self._org, current.slug, patch),
                f"update team {self._org}/{current.slug}",
            )
        for line in _field_lines(patch):
            self._report.change(Verb.UPDATE, line, applied=applied)

    async def _reconcile_members(
        self, team: Team, slug: str | None, members: list[str]
    ) -> None:
        present = {login.casefold() for login in members}
        applied = self._mode.applies
        for username in team.members:
            if username.casefold() in present:
                continue
            if applied and slug is not None:
                expect(
                    await self._gateway.add_team_member(self._org, slug, username),
                    f"add {username} to team {self._org}/{slug}",
                )
            self._report.change(
                Verb.ADD, f"{username} to team {team.name}", applied=applied
            )

        wanted = {username.casefold() for username in team.members}
        for login in members:
            if login.casefold() not in wanted:
                self._report.warn(f"{login} is in team {team.name} but not in manifest")
