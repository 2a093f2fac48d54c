"""Organization membership reconciliation.

Membership is only ever added to. Remote members missing from the manifest
are reported as unmanaged and left alone; manifest people missing remotely
are queued as invitations during planning and invited in a separate drain
step, so the planning logic can be exercised without touching GitHub.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from concord.logging import get_logger, log_info

from .errors import expect
from .report import Verb

if typ.TYPE_CHECKING:
    from concord.github.client import OrganizationGateway
    from concord.github.models import RemoteUser
    from concord.manifest.models import Organization, People

    from .report import ActionReport, ReconcileMode

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class InviteIntent:
    """A pending invitation for a manifest person."""

    username: str
    name: str


@dataclasses.dataclass(frozen=True, slots=True)
class MembershipPlan:
    """Outcome of comparing manifest people with remote members.

    ``managed`` and ``unmanaged`` keep the remote listing order;
    ``invitations`` keeps the manifest order.
    """

    managed: list[str]
    unmanaged: list[str]
    invitations: list[InviteIntent]


def plan_membership(people: list[People], members: list[RemoteUser]) -> MembershipPlan:
    """Diff manifest people against remote members by case-folded login."""
    wanted = {person.username.casefold() for person in people}
    present = {member.login.casefold() for member in members}

    managed: list[str] = []
    unmanaged: list[str] = []
    for member in members:
        target = managed if member.login.casefold() in wanted else unmanaged
        target.append(member.login)

    invitations = [
        InviteIntent(username=person.username, name=person.name)
        for person in people
        if person.username.casefold() not in present
    ]
    return MembershipPlan(managed=managed, unmanaged=unmanaged, invitations=invitations)


class MemberReconciler:
    """Report on organization members and invite the missing ones."""

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

    async def plan(self, org: Organization) -> MembershipPlan:
        """Fetch members, report each one and return the invitations to issue."""
        log_info(logger, "Planning membership of %s", self._org)
        self._report.header("Members")

        members = expect(
            await self._gateway.list_members(self._org),
            f"list members of {self._org}",
        )
        plan = plan_membership(org.people, members)
        unmanaged = {login.casefold() for login in plan.unmanaged}
        for member in members:
            if member.login.casefold() in unmanaged:
                self._report.warn(
                    f"{member.login} exists in github but not in manifest"
                )
            else:
                self._report.info(f"{member.login} exists in github")
        return plan

    async def drain(self, plan: MembershipPlan) -> None:
        """Issue (or, in dry-run, only report) the planned invitations in order."""
        applied = self._mode.applies
        for intent in plan.invitations:
            if applied:
                account = expect(
                    await self._gateway.get_user(intent.username),
                    f"look up user {intent.username}",
                )
                expect(
                    await self._gateway.create_invitation(self._org, account.id),
                    f"invite {intent.username} to {self._org}",
                )
                log_info(logger, "Invited %s to %s", intent.username, self._org)
            self._report.change(Verb.INVITE, intent.username, applied=applied)

    async def reconcile(self, org: Organization) -> MembershipPlan:
        """Plan and then drain membership changes."""
        plan = await self.plan(org)
        await self.drain(plan)
        return plan
