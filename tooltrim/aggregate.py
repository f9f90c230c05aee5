"""Aggregators: derive summaries from record collections and cross-check them.

Derived counts win over counts a tool printed itself. A reported value is
only used when no record collection could be decoded at all.
"""

from collections import Counter
from collections.abc import Iterable

from .log import get_logger
from .models import (
    ComposeAction,
    ComposeEntity,
    ComposeSummary,
    Diagnostic,
    DiffFile,
    DiffSummary,
    LintSummary,
    Severity,
    TestCase,
    TestStatus,
    TestSummary,
)

_log = get_logger("aggregate")


def reconcile(label: str, derived, reported):
    """Return the derived value, logging when a reported value disagrees."""
    if reported is not None and derived != reported:
        _log.warning("%s: decoded %s but tool reported %s; keeping decoded value",
                     label, derived, reported)
    return derived


def diff_summary(files: list[DiffFile], reported: DiffSummary | None = None) -> DiffSummary:
    derived = DiffSummary(
        total_files=len(files),
        total_additions=sum(f.additions for f in files),
        total_deletions=sum(f.deletions for f in files),
    )
    if reported is not None:
        for field in ("total_files", "total_additions", "total_deletions"):
            reconcile(f"git.diff {field}", getattr(derived, field), getattr(reported, field))
    return derived


def lint_summary(diagnostics: list[Diagnostic], reported: dict | None = None, **source) -> LintSummary:
    """Count diagnostics per severity.

    ``source`` carries values the tool reports that cannot be derived from
    the diagnostics (files checked, fixable counts); they are kept as-is.
    """
    counts = Counter(d.severity for d in diagnostics)
    summary = LintSummary(
        total=len(diagnostics),
        errors=counts[Severity.ERROR],
        warnings=counts[Severity.WARNING],
        infos=counts[Severity.INFO],
        **source,
    )
    for field, value in (reported or {}).items():
        reconcile(f"lint {field}", getattr(summary, field), value)
    return summary


def test_summary(
    tests: list[TestCase], duration: float | None = None, reported: TestSummary | None = None
) -> TestSummary:
    counts = Counter(t.status for t in tests)
    summary = TestSummary(
        total=len(tests),
        passed=counts[TestStatus.PASSED],
        failed=counts[TestStatus.FAILED],
        skipped=counts[TestStatus.SKIPPED],
        errors=counts[TestStatus.ERROR],
        duration=duration,
    )
    if reported is not None:
        for field in ("total", "passed", "failed", "skipped", "errors"):
            reconcile(f"test.run {field}", getattr(summary, field), getattr(reported, field))
    return summary


def compose_summary(entities: Iterable[ComposeEntity]) -> ComposeSummary:
    containers = 0
    failed = 0
    seen: Counter = Counter()
    for entity in entities:
        if entity.kind == "container":
            containers += 1
        if entity.failed:
            failed += 1
        # an entity counts once per action even if the marker repeats
        seen.update(set(entity.actions))
    return ComposeSummary(
        containers=containers,
        created=seen[ComposeAction.CREATED],
        started=seen[ComposeAction.STARTED],
        stopped=seen[ComposeAction.STOPPED],
        removed=seen[ComposeAction.REMOVED],
        failed=failed,
    )
