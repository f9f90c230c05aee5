"""Table-driven mappings from tool vocabulary to canonical enums.

Every classifier is total: an unrecognized token maps to the most
conservative canonical value instead of raising.
"""

from .models import ComposeAction, FileStatus, Severity, TestStatus

# ── git porcelain ────────────────────────────────────────────────────

# porcelain and --name-status share this alphabet
_STATUS_CODES = {
    "A": FileStatus.ADDED,
    "M": FileStatus.MODIFIED,
    "T": FileStatus.MODIFIED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.COPIED,
    "U": FileStatus.CONFLICT,
}

_CONFLICT_PAIRS = frozenset({"AA"})


def classify_status_code(code: str) -> FileStatus:
    """Map one porcelain/name-status letter to a FileStatus (default: modified)."""
    return _STATUS_CODES.get(code[:1].upper(), FileStatus.MODIFIED)


def is_conflict(index: str, worktree: str) -> bool:
    """True for unmerged XY pairs: any side U, or both added.

    DD (both deleted) is deliberately left out and decodes as a staged
    deletion plus a worktree deletion.
    """
    return index == "U" or worktree == "U" or (index + worktree) in _CONFLICT_PAIRS


# ── diagnostics severity ─────────────────────────────────────────────

_SEVERITY_NUMBERS = {
    2: Severity.ERROR,
    1: Severity.WARNING,
    0: Severity.INFO,
}

_SEVERITY_WORDS = {
    "error": Severity.ERROR,
    "fatal": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "info": Severity.INFO,
    "information": Severity.INFO,
    "hint": Severity.INFO,
    "style": Severity.INFO,
    "note": Severity.INFO,
    "off": Severity.INFO,
}


def classify_severity(value) -> Severity:
    """Fold numeric (ESLint) or word severities into error/warning/info."""
    if isinstance(value, bool):
        return Severity.WARNING
    if isinstance(value, int):
        return _SEVERITY_NUMBERS.get(value, Severity.WARNING)
    if isinstance(value, str):
        word = value.strip().lower()
        if word.isdigit():
            return _SEVERITY_NUMBERS.get(int(word), Severity.WARNING)
        return _SEVERITY_WORDS.get(word, Severity.WARNING)
    return Severity.WARNING


# ── docker compose action markers ────────────────────────────────────

_COMPOSE_ACTIONS = {
    "created": ComposeAction.CREATED,
    "recreated": ComposeAction.CREATED,
    "creating": ComposeAction.CREATED,
    "recreating": ComposeAction.CREATED,
    "started": ComposeAction.STARTED,
    "starting": ComposeAction.STARTED,
    "running": ComposeAction.STARTED,
    "healthy": ComposeAction.STARTED,
    "stopped": ComposeAction.STOPPED,
    "stopping": ComposeAction.STOPPED,
    "killed": ComposeAction.STOPPED,
    "removed": ComposeAction.REMOVED,
    "removing": ComposeAction.REMOVED,
}


def classify_compose_action(word: str) -> ComposeAction | None:
    """Map a compose progress word to a lifecycle action, None if it is not one."""
    return _COMPOSE_ACTIONS.get(word.strip().lower())


# ── test outcomes ────────────────────────────────────────────────────

_TEST_STATUSES = {
    "passed": TestStatus.PASSED,
    "pass": TestStatus.PASSED,
    "xpass": TestStatus.PASSED,
    "xpassed": TestStatus.PASSED,
    "ok": TestStatus.PASSED,
    "failed": TestStatus.FAILED,
    "fail": TestStatus.FAILED,
    "error": TestStatus.ERROR,
    "errored": TestStatus.ERROR,
    "skipped": TestStatus.SKIPPED,
    "skip": TestStatus.SKIPPED,
    "xfail": TestStatus.SKIPPED,
    "xfailed": TestStatus.SKIPPED,
    "pending": TestStatus.SKIPPED,
    "todo": TestStatus.SKIPPED,
    "disabled": TestStatus.SKIPPED,
    "focused": TestStatus.SKIPPED,
}


def classify_test_status(word: str) -> TestStatus:
    """Map a runner outcome word to a TestStatus (default: skipped)."""
    return _TEST_STATUSES.get(word.strip().lower(), TestStatus.SKIPPED)
