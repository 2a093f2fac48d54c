"""Reconciliation engine: diff the manifest against GitHub and converge."""

from __future__ import annotations

from .branches import BranchProtectionReconciler, build_protection_request
from .errors import (
    RateLimitExceededError,
    ReconcileError,
    RemoteNotFoundError,
    RemoteOperationError,
    expect,
)
from .members import InviteIntent, MemberReconciler, MembershipPlan, plan_membership
from .organization import ALL_SCOPES, OrganizationReconciler, Scope
from .report import (
    ActionReport,
    LineKind,
    ReconcileMode,
    ReportLine,
    Verb,
    render_report,
)
from .repositories import (
    RepositoryReconciler,
    compute_repository_patch,
    desired_projection,
)
from .teams import TeamReconciler, compute_team_patch

__all__ = [
    "ALL_SCOPES",
    "ActionReport",
    "BranchProtectionReconciler",
    "InviteIntent",
    "LineKind",
    "MemberReconciler",
    "MembershipPlan",
    "OrganizationReconciler",
    "RateLimitExceededError",
    "ReconcileError",
    "ReconcileMode",
    "RemoteNotFoundError",
    "RemoteOperationError",
    "ReportLine",
    "RepositoryReconciler",
    "Scope",
    "TeamReconciler",
    "Verb",
    "build_protection_request",
    "compute_repository_patch",
    "compute_team_patch",
    "desired_projection",
    "expect",
    "plan_membership",
    "render_report",
]
