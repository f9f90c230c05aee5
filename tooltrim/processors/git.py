"""Git output processor: status (porcelain v1), diff (numstat) and log."""

import re

from .. import aggregate
from ..classify import classify_status_code, is_conflict
from ..log import get_logger
from ..models import (
    Commit,
    CommitCompact,
    DiffFile,
    DiffFileCompact,
    DiffSummary,
    FileStatus,
    GitDiffCompact,
    GitDiffResult,
    GitLogCompact,
    GitLogResult,
    GitStatusCompact,
    GitStatusResult,
    LogSummary,
    StatusEntry,
    StatusSummary,
)
from ..normalize import timestamp_to_canonical
from ..render import Lines, plural
from .base import Processor

_log = get_logger("processors.git")

# ## main...origin/main [ahead 2, behind 1]
_BRANCH_RE = re.compile(
    r"^##\s+(?:No commits yet on |Initial commit on )?(.+?)(?:\.\.\.(\S+))?(?:\s+\[([^\]]*)\])?\s*$"
)
_XY_CODES = frozenset(" MTADRCU?!")
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")

_NUMSTAT_RE = re.compile(r"^(\d+|-)\t(\d+|-)\t(.+)$")
_BRACE_RENAME_RE = re.compile(r"^(.*)\{(.*) => (.*)\}(.*)$")
_SHORTSTAT_RE = re.compile(
    r"^\s*(\d+) files? changed(?:, (\d+) insertions?\(\+\))?(?:, (\d+) deletions?\(-\))?\s*$"
)
_NAME_STATUS_RE = re.compile(r"^([A-Z])\d*\t([^\t]+)(?:\t([^\t]+))?$")

_LOG_FIELDS = 7
_COMMIT_RE = re.compile(r"^commit ([0-9a-f]{7,64})(?:\s+\((.*)\))?\s*$")
_AUTHOR_RE = re.compile(r"^Author:\s*(.*?)\s*(?:<([^>]*)>)?\s*$")
_DATE_RE = re.compile(r"^(?:Author)?Date:\s*(.+?)\s*$")
_ONELINE_RE = re.compile(r"^([0-9a-f]{7,64}) (?:\((.*?)\) )?(.*)$")

_C_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "t": 0x09,
    "n": 0x0A,
    "v": 0x0B,
    "f": 0x0C,
    "r": 0x0D,
    '"': 0x22,
    "\\": 0x5C,
}
_OCTAL_RE = re.compile(r"[0-7]{3}")


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of paths with spaces, escapes or non-ASCII bytes."""
    if len(path) < 2 or path[0] != '"' or path[-1] != '"':
        return path
    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            if _OCTAL_RE.match(body, i + 1):
                out.append(int(body[i + 1 : i + 4], 8) & 0xFF)
                i += 4
                continue
            code = _C_ESCAPES.get(body[i + 1])
            if code is not None:
                out.append(code)
                i += 2
                continue
        out.extend(ch.encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def _closing_quote(text: str) -> int:
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i
        i += 1
    return -1


def split_rename(path: str) -> tuple[str | None, str]:
    """Split a porcelain ``old -> new`` path; quoted sides may contain ' -> '."""
    if path.startswith('"'):
        end = _closing_quote(path)
        if end != -1 and path[end + 1 : end + 5] == " -> ":
            return unquote_path(path[: end + 1]), unquote_path(path[end + 5 :])
    old, sep, new = path.partition(" -> ")
    if not sep:
        return None, unquote_path(path)
    return unquote_path(old), unquote_path(new)


def split_numstat_path(path: str) -> tuple[str | None, str]:
    """Resolve numstat rename notation to (old_path, new_path)."""
    m = _BRACE_RENAME_RE.match(path)
    if m:
        prefix, old, new, suffix = m.groups()
        old_path = re.sub(r"/{2,}", "/", f"{prefix}{old}{suffix}").lstrip("/")
        new_path = re.sub(r"/{2,}", "/", f"{prefix}{new}{suffix}").lstrip("/")
        return old_path, new_path
    old, sep, new = path.partition(" => ")
    if sep:
        return unquote_path(old), unquote_path(new)
    return None, unquote_path(path)


class GitProcessor(Processor):
    priority = 20
    operations = ("git.status", "git.diff", "git.log")

    @property
    def name(self) -> str:
        return "git"

    def decode(self, operation, stdout, stderr="", exit_code=0, **context):
        stdout, stderr = self._clean(operation, stdout, stderr)
        outcome = self._outcome("git", stderr, exit_code)
        if operation == "git.status":
            return self._decode_status(stdout, outcome, context.get("branch_line"))
        if operation == "git.diff":
            return self._decode_diff(stdout, outcome, context.get("name_status"))
        if operation == "git.log":
            return self._decode_log(stdout, outcome)
        raise ValueError(f"git processor cannot decode {operation!r}")

    # ── status ───────────────────────────────────────────────────────

    def _decode_status(self, stdout: str, outcome: dict, branch_line: str | None):
        lines = stdout.splitlines()
        header = branch_line
        if lines and lines[0].startswith("## "):
            header = lines.pop(0)

        fields: dict = {}
        if header:
            fields.update(self._parse_branch(header))

        staged: list[StatusEntry] = []
        modified: list[str] = []
        deleted: list[str] = []
        untracked: list[str] = []
        conflicts: list[str] = []
        decoded = bool(fields)

        for line in lines:
            if len(line) < 4 or line[2] != " " or not {line[0], line[1]} <= _XY_CODES:
                if line.strip():
                    _log.debug("skipping unrecognized status line: %r", line)
                continue
            x, y, path = line[0], line[1], line[3:]
            decoded = True
            if x == "?" and y == "?":
                untracked.append(unquote_path(path))
                continue
            if x == "!" and y == "!":
                continue
            if x in "RC" or y in "RC":
                old_file, file = split_rename(path)
            else:
                old_file, file = None, unquote_path(path)
            if is_conflict(x, y):
                conflicts.append(file)
                continue
            if x not in " ?":
                staged.append(
                    StatusEntry(file=file, status=classify_status_code(x), old_file=old_file)
                )
            if y in ("M", "T", "A"):
                modified.append(file)
            elif y == "D":
                deleted.append(file)

        summary = StatusSummary(
            staged=len(staged),
            modified=len(modified),
            deleted=len(deleted),
            untracked=len(untracked),
            conflicts=len(conflicts),
        )
        parse_error = None
        if not decoded and stdout.strip():
            parse_error = "no porcelain status lines found"
        return GitStatusResult(
            **outcome,
            **fields,
            staged=staged,
            modified=modified,
            deleted=deleted,
            untracked=untracked,
            conflicts=conflicts,
            clean=not (staged or modified or deleted or untracked or conflicts),
            summary=summary,
            parse_error=parse_error,
        )

    @staticmethod
    def _parse_branch(header: str) -> dict:
        m = _BRANCH_RE.match(header.strip())
        if not m:
            return {}
        branch, upstream, tracking = m.groups()
        fields = {"branch": branch}
        if upstream:
            fields["upstream"] = upstream
            tracking = tracking or ""
            ahead = _AHEAD_RE.search(tracking)
            behind = _BEHIND_RE.search(tracking)
            if "gone" not in tracking:
                fields["ahead"] = int(ahead.group(1)) if ahead else 0
                fields["behind"] = int(behind.group(1)) if behind else 0
        return fields

    # ── diff ─────────────────────────────────────────────────────────

    def _decode_diff(self, stdout: str, outcome: dict, name_status: str | None):
        statuses = self._parse_name_status(name_status or "")
        files: list[DiffFile] = []
        reported: DiffSummary | None = None
        unrecognized = 0

        for line in stdout.splitlines():
            if not line.strip():
                continue
            m = _NUMSTAT_RE.match(line)
            if m:
                added, removed, path = m.groups()
                files.append(self._diff_file(added, removed, path, statuses))
                continue
            m = _SHORTSTAT_RE.match(line)
            if m:
                reported = DiffSummary(
                    total_files=int(m.group(1)),
                    total_additions=int(m.group(2) or 0),
                    total_deletions=int(m.group(3) or 0),
                )
                continue
            unrecognized += 1

        if files:
            return GitDiffResult(
                **outcome, files=files, summary=aggregate.diff_summary(files, reported)
            )
        if reported is not None:
            return GitDiffResult(**outcome, files=None, summary=reported)
        parse_error = "no numstat lines found" if unrecognized else None
        return GitDiffResult(**outcome, parse_error=parse_error)

    @staticmethod
    def _parse_name_status(text: str) -> dict[str, tuple[FileStatus, str | None]]:
        statuses = {}
        for line in text.splitlines():
            m = _NAME_STATUS_RE.match(line.strip())
            if not m:
                continue
            code, first, second = m.groups()
            status = classify_status_code(code)
            if second is not None:
                statuses[unquote_path(second)] = (status, unquote_path(first))
            else:
                statuses[unquote_path(first)] = (status, None)
        return statuses

    @staticmethod
    def _diff_file(added: str, removed: str, path: str, statuses: dict) -> DiffFile:
        binary = added == "-" and removed == "-"
        additions = 0 if added == "-" else int(added)
        deletions = 0 if removed == "-" else int(removed)
        old_file, file = split_numstat_path(path)

        known = statuses.get(file)
        if known is not None:
            status, listed_old = known
            old_file = old_file or listed_old
        elif old_file is not None:
            status = FileStatus.RENAMED
        elif additions > 0 and deletions == 0:
            status = FileStatus.ADDED
        elif deletions > 0 and additions == 0:
            status = FileStatus.DELETED
        else:
            status = FileStatus.MODIFIED

        return DiffFile(
            file=file,
            status=status,
            additions=additions,
            deletions=deletions,
            old_file=old_file,
            binary=True if binary else None,
        )

    # ── log ──────────────────────────────────────────────────────────

    def _decode_log(self, stdout: str, outcome: dict):
        lines = [line for line in stdout.splitlines() if line.strip()]
        commits: list[Commit] | None = None
        if any("\x1f" in line for line in lines):
            commits = self._parse_delimited_log(lines)
        elif any(_COMMIT_RE.match(line) for line in lines):
            commits = self._parse_block_log(stdout.splitlines())
        elif lines and all(_ONELINE_RE.match(line) for line in lines):
            commits = self._parse_oneline_log(lines)

        if commits is None:
            parse_error = "unrecognized git log format" if lines else None
            return GitLogResult(**outcome, parse_error=parse_error)
        return GitLogResult(**outcome, commits=commits, summary=LogSummary(total=len(commits)))

    @staticmethod
    def _parse_delimited_log(lines: list[str]) -> list[Commit]:
        commits = []
        for line in lines:
            parts = line.strip("\x1e").split("\x1f")
            if len(parts) < _LOG_FIELDS:
                _log.debug("skipping short log record: %r", line)
                continue
            full, short, author, email, date, refs, *subject = parts
            commits.append(
                Commit(
                    hash=full,
                    short_hash=short or full[:7],
                    author=author or None,
                    email=email or None,
                    date=timestamp_to_canonical(date) if date else None,
                    refs=refs.strip() or None,
                    # subject may itself contain the delimiter
                    message="\x1f".join(subject),
                )
            )
        return commits

    @staticmethod
    def _parse_block_log(lines: list[str]) -> list[Commit]:
        commits = []
        current: dict | None = None

        def flush():
            if current is not None:
                commits.append(Commit(**current))

        for line in lines:
            m = _COMMIT_RE.match(line)
            if m:
                flush()
                full, refs = m.groups()
                current = {"hash": full, "short_hash": full[:7], "refs": refs, "message": ""}
                continue
            if current is None:
                continue
            if line.startswith("Author:"):
                am = _AUTHOR_RE.match(line)
                current["author"] = am.group(1) or None
                current["email"] = am.group(2)
            elif line.startswith(("Date:", "AuthorDate:")):
                dm = _DATE_RE.match(line)
                if dm:
                    current["date"] = timestamp_to_canonical(dm.group(1))
            elif line.startswith("    ") and not current["message"] and line.strip():
                current["message"] = line.strip()
        flush()
        return commits

    @staticmethod
    def _parse_oneline_log(lines: list[str]) -> list[Commit]:
        commits = []
        for line in lines:
            short, refs, message = _ONELINE_RE.match(line).groups()
            commits.append(Commit(hash=short, short_hash=short, refs=refs, message=message))
        return commits

    # ── compact ──────────────────────────────────────────────────────

    def compact(self, result):
        if isinstance(result, GitStatusResult):
            return GitStatusCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                branch=result.branch,
                ahead=result.ahead,
                behind=result.behind,
                clean=result.clean,
                summary=result.summary,
                conflicts=result.conflicts or None,
            )
        if isinstance(result, GitDiffResult):
            files = [
                DiffFileCompact(file=f.file, additions=f.additions, deletions=f.deletions)
                for f in result.files or ()
            ]
            return GitDiffCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                summary=result.summary,
                files=files or None,
            )
        if isinstance(result, GitLogResult):
            commits = [
                CommitCompact(short_hash=c.short_hash, message=c.message, refs=c.refs)
                for c in result.commits
            ]
            return GitLogCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                summary=result.summary,
                commits=commits or None,
            )
        raise TypeError(f"git processor cannot compact {type(result).__name__}")

    # ── presenters ───────────────────────────────────────────────────

    def format(self, result):
        if isinstance(result, GitStatusResult):
            return self._format_status(result, full=True)
        if isinstance(result, GitDiffResult):
            lines = Lines(self._diff_header(result.summary))
            for f in result.files or ():
                name = f"{f.old_file} => {f.file}" if f.old_file else f.file
                counts = "binary" if f.binary else f"+{f.additions} -{f.deletions}"
                lines.detail(f"{f.status.value}: {name} ({counts})")
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        if isinstance(result, GitLogResult):
            lines = Lines(plural(result.summary.total, "commit"))
            for c in result.commits:
                refs = f" ({c.refs})" if c.refs else ""
                who = f" - {c.author}" if c.author else ""
                when = f", {c.date}" if c.date else ""
                lines.detail(f"{c.short_hash}{refs} {c.message}{who}{when}")
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        raise TypeError(f"git processor cannot format {type(result).__name__}")

    def format_compact(self, compact):
        if isinstance(compact, GitStatusCompact):
            return self._format_status(compact, full=False)
        if isinstance(compact, GitDiffCompact):
            lines = Lines(self._diff_header(compact.summary))
            for f in compact.files or ():
                lines.detail(f"{f.file} +{f.additions} -{f.deletions}")
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        if isinstance(compact, GitLogCompact):
            lines = Lines(plural(compact.summary.total, "commit"))
            for c in compact.commits or ():
                lines.detail(f"{c.short_hash} {c.message}")
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        raise TypeError(f"git processor cannot format {type(compact).__name__}")

    @staticmethod
    def _diff_header(summary: DiffSummary) -> str:
        if not summary.total_files:
            return "no changes"
        return (
            f"{plural(summary.total_files, 'file')} changed, "
            f"+{summary.total_additions} -{summary.total_deletions}"
        )

    def _format_status(self, status, full: bool) -> str:
        branch = status.branch or "(unknown branch)"
        tracking = []
        if status.ahead:
            tracking.append(f"ahead {status.ahead}")
        if status.behind:
            tracking.append(f"behind {status.behind}")
        header = branch + (f" [{', '.join(tracking)}]" if tracking else "")
        s = status.summary
        if status.clean:
            lines = Lines(f"{header}: clean")
        else:
            counts = [
                f"{value} {label}"
                for label, value in (
                    ("staged", s.staged),
                    ("modified", s.modified),
                    ("deleted", s.deleted),
                    ("untracked", s.untracked),
                    ("conflicts", s.conflicts),
                )
                if value
            ]
            lines = Lines(f"{header}: {', '.join(counts)}")
        if full:
            lines.section(
                "staged:",
                (
                    f"{e.status.value}: {e.old_file} -> {e.file}"
                    if e.old_file
                    else f"{e.status.value}: {e.file}"
                    for e in status.staged
                ),
            )
            lines.section("modified:", status.modified)
            lines.section("deleted:", status.deleted)
            lines.section("untracked:", status.untracked)
        lines.section("conflicts:", status.conflicts or ())
        self._add_error(lines, status.error, status.parse_error)
        return lines.render()
