"""Ordered action reports produced by reconciliation.

Reconcilers never print. Each decision is appended to an
:class:`ActionReport` as a :class:`ReportLine`; dry-run and apply runs append
the same lines, and only the tense of the verb differs. That tense comes from
``ReportLine.applied``, which is set when the write was actually issued.
"""

from __future__ import annotations

import dataclasses
import enum


class ReconcileMode(enum.Enum):
    """Whether decisions are only reported or also carried out."""

    DRY_RUN = "dry-run"
    APPLY = "apply"

    @property
    def applies(self) -> bool:
        """Return True when write calls should be issued."""
        return self is ReconcileMode.APPLY


class LineKind(enum.StrEnum):
    """Category markers consumed by renderers."""

    HEADER = "header"
    INFO = "info"
    ADD = "add"
    WARN = "warn"


class Verb(enum.Enum):
    """Action verbs with their planned and applied forms."""

    CREATE = ("creating", "created")
    SET = ("setting", "set")
    UPDATE = ("updating", "updated")
    INVITE = ("inviting", "invited")
    ADD = ("adding", "added")

    def form(self, *, applied: bool) -> str:
        """Return the past tense when applied, else the progressive form."""
        planned, done = self.value
        return done if applied else planned


@dataclasses.dataclass(frozen=True, slots=True)
class ReportLine:
    """A single reported decision or observation."""

    kind: LineKind
    detail: str
    verb: Verb | None = None
    applied: bool = False

    @property
    def text(self) -> str:
        """Return the human-readable line."""
        if self.verb is None:
            return self.detail
        return f"{self.verb.form(applied=self.applied)} {self.detail}"

    @property
    def decision(self) -> tuple[LineKind, Verb | None, str]:
        """Return the tense-independent content of the line."""
        return (self.kind, self.verb, self.detail)


@dataclasses.dataclass(slots=True)
class ActionReport:
    """Append-only sequence of report lines for one run."""

    lines: list[ReportLine] = dataclasses.field(default_factory=list)

    def header(self, title: str) -> None:
        """Start a section."""
        self.lines.append(ReportLine(LineKind.HEADER, title))

    def info(self, detail: str) -> None:
        """Record an observation that needs no action."""
        self.lines.append(ReportLine(LineKind.INFO, detail))

    def warn(self, detail: str) -> None:
        """Record an observation an operator should notice."""
        self.lines.append(ReportLine(LineKind.WARN, detail))

    def change(
        self,
        verb: Verb,
        detail: str,
        *,
        applied: bool,
        kind: LineKind = LineKind.ADD,
    ) -> None:
        """Record a planned (or, when ``applied``, performed) change."""
        self.lines.append(ReportLine(kind, detail, verb=verb, applied=applied))

    def decisions(self) -> list[tuple[LineKind, Verb | None, str]]:
        """Return every line without tense, for comparing runs."""
        return [line.decision for line in self.lines]

    def changes(self) -> list[ReportLine]:
        """Return the lines that describe a change."""
        return [line for line in self.lines if line.verb is not None]


_MARKERS = {
    LineKind.INFO: "-",
    LineKind.ADD: "+",
    LineKind.WARN: "!",
}


def render_report(report: ActionReport) -> str:
    """Render a report as plain text with section headers and line markers."""
    rendered: list[str] = []
    for line in report.lines:
        if line.kind is LineKind.HEADER:
            if rendered:
                rendered.append("")
            rendered.append(f"== {line.text}")
            continue
        rendered.append(f"  {_MARKERS[line.kind]} {line.text}")
    return "\n".join(rendered)


def quoted(value: object) -> str:
    """Format a scalar value the way report lines quote it."""
    if isinstance(value, bool):
        return f"'{str(value).lower()}'"
    return f"'{value}'"


def listed(values: list[str]) -> str:
    """Format a list of names the way report lines bracket it."""
    return "[" + ", ".join(values) + "]"
