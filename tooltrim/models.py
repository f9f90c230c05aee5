"""Canonical results, records and compact projections.

Each operation has one frozen result model tagged by ``operation`` and one
compact model whose fields are an explicit subset of it. Optional fields are
``None`` when the raw output carried no such signal; ``None`` fields are
dropped on serialization.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FileStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    CONFLICT = "conflict"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ComposeAction(str, Enum):
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"
    REMOVED = "removed"


class TestStatus(str, Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


class ErrorCategory(str, Enum):
    COMMAND_NOT_FOUND = "command-not-found"
    PERMISSION_DENIED = "permission-denied"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid-input"
    NOT_FOUND = "not-found"
    NETWORK_ERROR = "network-error"
    AUTHENTICATION_ERROR = "authentication-error"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration-error"
    ALREADY_EXISTS = "already-exists"
    COMMAND_FAILED = "command-failed"


class Model(BaseModel):
    """Base for every record, summary and result: immutable, closed field set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ToolError(Model):
    """Structured detail for a failed upstream tool run."""

    category: ErrorCategory
    message: str
    exit_code: int
    suggestion: str


class Result(Model):
    """Fields shared by every canonical result and compact projection."""

    operation: str
    success: bool
    error: ToolError | None = None
    # Set when the raw output could not be decoded at all ("no data" as
    # opposed to "zero items"); compact projections carry it unchanged.
    parse_error: str | None = None


class CanonicalResult(Result):
    pass


class CompactProjection(Result):
    pass


# ── git ──────────────────────────────────────────────────────────────


class StatusEntry(Model):
    file: str
    status: FileStatus
    old_file: str | None = None


class StatusSummary(Model):
    staged: int = 0
    modified: int = 0
    deleted: int = 0
    untracked: int = 0
    conflicts: int = 0


class GitStatusResult(CanonicalResult):
    operation: Literal["git.status"] = "git.status"
    branch: str | None = None
    upstream: str | None = None
    ahead: int | None = None
    behind: int | None = None
    staged: list[StatusEntry] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    untracked: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    clean: bool = True
    summary: StatusSummary = Field(default_factory=StatusSummary)


class GitStatusCompact(CompactProjection):
    operation: Literal["git.status"] = "git.status"
    branch: str | None = None
    ahead: int | None = None
    behind: int | None = None
    clean: bool
    summary: StatusSummary
    conflicts: list[str] | None = None


class DiffFile(Model):
    file: str
    status: FileStatus
    additions: int
    deletions: int
    old_file: str | None = None
    binary: bool | None = None


class DiffSummary(Model):
    total_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0


class GitDiffResult(CanonicalResult):
    operation: Literal["git.diff"] = "git.diff"
    # None when only a --shortstat line was available.
    files: list[DiffFile] | None = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)


class DiffFileCompact(Model):
    file: str
    additions: int
    deletions: int


class GitDiffCompact(CompactProjection):
    operation: Literal["git.diff"] = "git.diff"
    summary: DiffSummary
    files: list[DiffFileCompact] | None = None


class Commit(Model):
    hash: str
    short_hash: str
    author: str | None = None
    email: str | None = None
    date: str | None = None
    refs: str | None = None
    message: str


class LogSummary(Model):
    total: int = 0


class GitLogResult(CanonicalResult):
    operation: Literal["git.log"] = "git.log"
    commits: list[Commit] = Field(default_factory=list)
    summary: LogSummary = Field(default_factory=LogSummary)


class CommitCompact(Model):
    short_hash: str
    message: str
    refs: str | None = None


class GitLogCompact(CompactProjection):
    operation: Literal["git.log"] = "git.log"
    summary: LogSummary
    commits: list[CommitCompact] | None = None


# ── docker ───────────────────────────────────────────────────────────


class ContainerStats(Model):
    id: str | None = None
    name: str
    cpu_percent: float = 0.0
    memory_usage: str | None = None
    memory_limit: str | None = None
    memory_usage_bytes: int = 0
    memory_limit_bytes: int = 0
    memory_percent: float = 0.0
    net_in_bytes: int = 0
    net_out_bytes: int = 0
    block_read_bytes: int = 0
    block_write_bytes: int = 0
    pids: int = 0


class StatsSummary(Model):
    total: int = 0
    memory_usage_bytes: int = 0


class DockerStatsResult(CanonicalResult):
    operation: Literal["docker.stats"] = "docker.stats"
    containers: list[ContainerStats] = Field(default_factory=list)
    summary: StatsSummary = Field(default_factory=StatsSummary)


class ContainerStatsCompact(Model):
    name: str
    cpu_percent: float
    memory_percent: float
    memory_usage_bytes: int


class DockerStatsCompact(CompactProjection):
    operation: Literal["docker.stats"] = "docker.stats"
    summary: StatsSummary
    containers: list[ContainerStatsCompact] | None = None


class ComposeEntity(Model):
    kind: Literal["container", "network", "volume", "image"]
    name: str
    state: ComposeAction | None = None
    actions: list[ComposeAction] = Field(default_factory=list)
    failed: bool = False


class ComposeSummary(Model):
    containers: int = 0
    created: int = 0
    started: int = 0
    stopped: int = 0
    removed: int = 0
    failed: int = 0


class ComposeResult(CanonicalResult):
    operation: Literal["docker.compose.up", "docker.compose.down"]
    entities: list[ComposeEntity] = Field(default_factory=list)
    summary: ComposeSummary = Field(default_factory=ComposeSummary)


class ComposeEntityCompact(Model):
    kind: Literal["container", "network", "volume", "image"]
    name: str
    failed: bool


class ComposeCompact(CompactProjection):
    operation: Literal["docker.compose.up", "docker.compose.down"]
    summary: ComposeSummary
    entities: list[ComposeEntityCompact] | None = None


# ── lint ─────────────────────────────────────────────────────────────


class Diagnostic(Model):
    file: str
    line: int = 0
    column: int | None = None
    severity: Severity
    rule: str | None = None
    message: str


class LintSummary(Model):
    total: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    files_checked: int | None = None
    fixable_errors: int | None = None
    fixable_warnings: int | None = None


class LintResult(CanonicalResult):
    operation: Literal["lint"] = "lint"
    tool: str
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    summary: LintSummary = Field(default_factory=LintSummary)


class LintCompact(CompactProjection):
    operation: Literal["lint"] = "lint"
    tool: str
    summary: LintSummary
    diagnostics: list[Diagnostic] | None = None


# ── tests ────────────────────────────────────────────────────────────


class TestCase(Model):
    __test__ = False

    name: str
    file: str | None = None
    status: TestStatus
    duration: float | None = None


class TestFailure(Model):
    __test__ = False

    name: str
    file: str | None = None
    line: int | None = None
    message: str | None = None
    expected: str | None = None
    actual: str | None = None


class TestSummary(Model):
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    duration: float | None = None


class TestRunResult(CanonicalResult):
    __test__ = False

    operation: Literal["test.run"] = "test.run"
    framework: str
    summary: TestSummary = Field(default_factory=TestSummary)
    # None when only the runner's summary line could be decoded.
    tests: list[TestCase] | None = None
    failures: list[TestFailure] = Field(default_factory=list)


class TestFailureCompact(Model):
    __test__ = False

    name: str
    message: str | None = None


class TestRunCompact(CompactProjection):
    __test__ = False

    operation: Literal["test.run"] = "test.run"
    framework: str
    summary: TestSummary
    failures: list[TestFailureCompact] | None = None


class CoverageFile(Model):
    file: str
    statements: int
    missed: int
    branches: int | None = None
    partial_branches: int | None = None
    cover: float
    missing: str | None = None


class CoverageSummary(Model):
    statements: int = 0
    missed: int = 0
    branches: int | None = None
    partial_branches: int | None = None
    cover: float = 0.0


class CoverageResult(CanonicalResult):
    operation: Literal["test.coverage"] = "test.coverage"
    framework: str
    summary: CoverageSummary = Field(default_factory=CoverageSummary)
    files: list[CoverageFile] = Field(default_factory=list)


class CoverageFileCompact(Model):
    file: str
    cover: float


class CoverageCompact(CompactProjection):
    operation: Literal["test.coverage"] = "test.coverage"
    framework: str
    summary: CoverageSummary
    files: list[CoverageFileCompact] | None = None
