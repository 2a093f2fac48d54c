"""Command line entry points for concord.

``concord apply`` converges the whole organization; ``concord check ...``
runs the same reconciliation in dry-run mode and only reports.
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
import sys
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter

from concord import __version__
from concord.github import GitHubConfigError, GitHubRestConfig, GitHubRestGateway
from concord.logging import configure_logging, get_logger, log_info, log_warning
from concord.manifest import load_manifest
from concord.reconcile import (
    ALL_SCOPES,
    OrganizationReconciler,
    ReconcileError,
    ReconcileMode,
    Scope,
    render_report,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from concord.github import OrganizationGateway

logger = get_logger(__name__)

app = App(
    name="concord",
    help="Reconcile a GitHub organization against a YAML manifest",
    version=__version__,
)
apply_app = App(name="apply", help="Apply a manifest to GitHub.")
check_app = App(name="check", help="Report what applying a manifest would change.")
app.command(apply_app)
app.command(check_app)

LogLevelOption = typ.Annotated[str, Parameter(env_var="CONCORD_LOG_LEVEL")]


@dataclasses.dataclass(frozen=True, slots=True)
class RunSettings:
    """Run-wide settings that are not specific to the GitHub client."""

    timeout_s: float | None = None

    @classmethod
    def from_env(cls) -> RunSettings:
        """Read ``CONCORD_RUN_TIMEOUT_S``; unset or blank means no timeout.

        Raises
        ------
        ValueError
            If the value is not a positive number.

        """
        raw = os.environ.get("CONCORD_RUN_TIMEOUT_S", "").strip()
        if not raw:
            return cls()
        try:
            timeout_s = float(raw)
        except ValueError as exc:
            msg = f"CONCORD_RUN_TIMEOUT_S must be a number, got: {raw!r}"
            raise ValueError(msg) from exc
        if timeout_s <= 0:
            msg = f"CONCORD_RUN_TIMEOUT_S must be positive, got: {timeout_s}"
            raise ValueError(msg)
        return cls(timeout_s=timeout_s)


def _setup_logging(log_level: str) -> None:
    normalized, invalid = configure_logging(log_level)
    if invalid:
        log_warning(
            logger, "Invalid log level %r, falling back to %s", log_level, normalized
        )


def _print_error(exc: object) -> None:
    print(f"error: {exc}", file=sys.stderr)


async def reconcile_manifest(
    manifest: Path,
    *,
    mode: ReconcileMode,
    scopes: cabc.Iterable[Scope] = ALL_SCOPES,
    gateway: OrganizationGateway | None = None,
) -> int:
    """Load ``manifest``, reconcile it and print the report.

    A Gateway is built from the environment unless one is supplied. The
    report is printed even when the run fails part way, followed by a
    formatted error on stderr.

    Returns
    -------
    int
        0 on success, 1 on any manifest, configuration or remote failure.

    """
    try:
        org = load_manifest(manifest)
        settings = RunSettings.from_env()
        owned = None
        if gateway is None:
            owned = GitHubRestGateway(GitHubRestConfig.from_env())
            gateway = owned
    except (GitHubConfigError, ValueError) as exc:
        _print_error(exc)
        return 1

    reconciler = OrganizationReconciler(gateway, mode=mode)
    try:
        async with asyncio.timeout(settings.timeout_s):
            await reconciler.run(org, scopes)
    except ReconcileError as exc:
        _print_report(reconciler)
        _print_error(exc)
        return 1
    except TimeoutError:
        _print_report(reconciler)
        _print_error(f"run exceeded {settings.timeout_s}s")
        return 1
    finally:
        if owned is not None:
            await owned.aclose()

    _print_report(reconciler)
    log_info(logger, "Reconciliation of %s finished", org.name)
    return 0


def _print_report(reconciler: OrganizationReconciler) -> None:
    rendered = render_report(reconciler.report)
    if rendered:
        print(rendered)


def _run(
    manifest: Path, *, mode: ReconcileMode, scopes: tuple[Scope, ...], log_level: str
) -> int:
    _setup_logging(log_level)
    return asyncio.run(reconcile_manifest(manifest, mode=mode, scopes=scopes))


@apply_app.default
def apply(manifest: Path, /, *, log_level: LogLevelOption = "INFO") -> int:
    """Apply members, teams and repositories from a manifest.

    Args:
        manifest: Path to the organization manifest.
        log_level: Log level for diagnostic output.

    """
    return _run(
        manifest, mode=ReconcileMode.APPLY, scopes=ALL_SCOPES, log_level=log_level
    )


@apply_app.command(name="teams")
def apply_teams(manifest: Path, /, *, log_level: LogLevelOption = "INFO") -> int:
    """Apply only the teams from a manifest.

    Args:
        manifest: Path to the organization manifest.
        log_level: Log level for diagnostic output.

    """
    return _run(
        manifest, mode=ReconcileMode.APPLY, scopes=(Scope.TEAMS,), log_level=log_level
    )


@check_app.command(name="members")
def check_members(manifest: Path, /, *, log_level: LogLevelOption = "INFO") -> int:
    """Report membership changes without applying them.

    Args:
        manifest: Path to the organization manifest.
        log_level: Log level for diagnostic output.

    """
    return _run(
        manifest,
        mode=ReconcileMode.DRY_RUN,
        scopes=(Scope.MEMBERS,),
        log_level=log_level,
    )


@check_app.command(name="teams")
def check_teams(manifest: Path, /, *, log_level: LogLevelOption = "INFO") -> int:
    """Report team changes without applying them.

    Args:
        manifest: Path to the organization manifest.
        log_level: Log level for diagnostic output.

    """
    return _run(
        manifest, mode=ReconcileMode.DRY_RUN, scopes=(Scope.TEAMS,), log_level=log_level
    )


@check_app.command(name="repos")
def check_repos(manifest: Path, /, *, log_level: LogLevelOption = "INFO") -> int:
    """Report repository changes without applying them.

    Args:
        manifest: Path to the organization manifest.
        log_level: Log level for diagnostic output.

    """
    return _run(
        manifest, mode=ReconcileMode.DRY_RUN, scopes=(Scope.REPOS,), log_level=log_level
    )


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
