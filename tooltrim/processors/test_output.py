"""Test output processor: pytest text, jest/vitest JSON and pytest-cov tables."""

import json
import re

from .. import aggregate, config
from ..classify import classify_test_status
from ..log import get_logger
from ..models import (
    CoverageCompact,
    CoverageFile,
    CoverageFileCompact,
    CoverageResult,
    CoverageSummary,
    TestCase,
    TestFailure,
    TestFailureCompact,
    TestRunCompact,
    TestRunResult,
    TestStatus,
    TestSummary,
)
from ..normalize import duration_to_seconds, strip_ansi
from ..render import Lines, plural
from .base import Processor

_log = get_logger("processors.test")

# tests/test_foo.py::test_bar PASSED  [ 50%]
_PYTEST_VERBOSE_RE = re.compile(
    r"^(?P<node>\S+?::.+?)\s+(?P<status>PASSED|FAILED|ERROR|SKIPPED|XFAIL|XPASS)"
    r"(?:\s+.*?)?(?:\s+\[\s*\d+%\])?\s*$"
)
# FAILED tests/test_foo.py::test_baz - AssertionError: assert 1 == 2
_PYTEST_SHORT_RE = re.compile(
    r"^(?P<status>FAILED|ERROR)\s+(?P<node>\S+?)(?:\s+-\s+(?P<message>.*))?\s*$"
)
# ===== 1 failed, 9 passed, 2 skipped in 0.42s =====
_PYTEST_HEADER_RE = re.compile(
    r"^=*\s*(?P<counts>(?:\d+ [a-z]+(?:, )?)+|no tests ran)"
    r"\s+in\s+(?P<duration>[\d.]+s)\b.*?=*\s*$"
)
_PYTEST_COUNT_RE = re.compile(r"(\d+) ([a-z]+)")
_HEADER_FIELDS = {
    "passed": "passed",
    "xpassed": "passed",
    "failed": "failed",
    "skipped": "skipped",
    "xfailed": "skipped",
    "error": "errors",
    "errors": "errors",
}

_JEST_EXPECTED_RE = re.compile(r"Expected[:\s]+(.+)")
_JEST_RECEIVED_RE = re.compile(r"Received[:\s]+(.+)")

_COVERAGE_HEADER_RE = re.compile(r"^Name\s+Stmts\s+Miss(?P<branch>\s+Branch\s+BrPart)?\s+Cover")
_COVERAGE_ROW_RE = re.compile(
    r"^(?P<file>\S.*?)\s+(?P<stmts>\d+)\s+(?P<miss>\d+)"
    r"(?:\s+(?P<branch>\d+)\s+(?P<brpart>\d+))?\s+(?P<cover>\d+(?:\.\d+)?)%"
    r"(?:\s+(?P<missing>.*?))?\s*$"
)


def _split_node(node: str) -> tuple[str | None, str]:
    file, sep, name = node.partition("::")
    return (file, name) if sep else (None, node)


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) and value else None


def _int_or_none(value) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


# ── jest shapes ──────────────────────────────────────────────────────


def _jest_assertions(suite: dict) -> list | None:
    """jest >= 24 and vitest: ``assertionResults``."""
    results = suite.get("assertionResults")
    return results if isinstance(results, list) else None


def _jest_legacy_assertions(suite: dict) -> list | None:
    """Older reporters nest tests under ``testResults``."""
    results = suite.get("testResults")
    return results if isinstance(results, list) else None


_JEST_SHAPES = (_jest_assertions, _jest_legacy_assertions)


def _jest_tests(suite: dict) -> list:
    for shape in _JEST_SHAPES:
        found = shape(suite)
        if found is not None:
            return found
    return []


class TestOutputProcessor(Processor):
    __test__ = False

    priority = 50
    operations = ("test.run", "test.coverage")

    @property
    def name(self) -> str:
        return "test"

    def decode(self, operation, stdout, stderr="", exit_code=0, **context):
        stdout, stderr = self._clean(operation, stdout, stderr)
        framework = (context.get("framework") or "").lower() or None
        if operation == "test.run":
            if framework is None:
                framework = "jest" if stdout.lstrip().startswith("{") else "pytest"
            outcome = self._outcome(framework, stderr, exit_code)
            if framework in ("jest", "vitest"):
                return self._decode_jest(framework, stdout, outcome)
            return self._decode_pytest(framework, stdout, outcome)
        if operation == "test.coverage":
            framework = framework or "pytest"
            outcome = self._outcome(framework, stderr, exit_code)
            return self._decode_coverage(framework, stdout, outcome)
        raise ValueError(f"test processor cannot decode {operation!r}")

    # ── pytest ───────────────────────────────────────────────────────

    def _decode_pytest(self, framework: str, stdout: str, outcome: dict) -> TestRunResult:
        tests: dict[str, TestCase] = {}
        failures: dict[str, TestFailure] = {}
        statuses: dict[str, str] = {}
        header: TestSummary | None = None

        for line in stdout.splitlines():
            m = _PYTEST_SHORT_RE.match(line)
            if m:
                statuses[m.group("node")] = m.group("status")
                file, name = _split_node(m.group("node"))
                failures[m.group("node")] = TestFailure(
                    name=name,
                    file=file,
                    message=(m.group("message") or "").strip() or None,
                )
                continue
            m = _PYTEST_VERBOSE_RE.match(line)
            if m:
                node = m.group("node")
                file, name = _split_node(node)
                # a node reported twice (call then teardown) keeps its last outcome
                tests[node] = TestCase(
                    name=name, file=file, status=classify_test_status(m.group("status"))
                )
                continue
            m = _PYTEST_HEADER_RE.match(line.strip())
            if m:
                header = self._parse_pytest_header(m)

        # short-summary nodes with no verbose line (collection errors, -q runs)
        # still count towards the derived summary
        if tests:
            for node, failure in failures.items():
                if node not in tests:
                    status = TestStatus.ERROR if statuses[node] == "ERROR" else TestStatus.FAILED
                    tests[node] = TestCase(name=failure.name, file=failure.file, status=status)

        if not failures:
            # no short summary section: fall back to the verbose outcomes
            for node, test in tests.items():
                if test.status in (TestStatus.FAILED, TestStatus.ERROR):
                    failures[node] = TestFailure(name=test.name, file=test.file)

        failure_list = list(failures.values())

        if tests:
            records = list(tests.values())
            duration = header.duration if header is not None else None
            summary = aggregate.test_summary(records, duration=duration, reported=header)
            return TestRunResult(
                **outcome,
                framework=framework,
                summary=summary,
                tests=records,
                failures=failure_list,
            )
        if header is not None:
            return TestRunResult(
                **outcome, framework=framework, summary=header, failures=failure_list
            )
        parse_error = "no pytest summary line found" if stdout.strip() else None
        return TestRunResult(
            **outcome, framework=framework, failures=failure_list, parse_error=parse_error
        )

    @staticmethod
    def _parse_pytest_header(m) -> TestSummary:
        counts = {"passed": 0, "failed": 0, "skipped": 0, "errors": 0}
        for value, word in _PYTEST_COUNT_RE.findall(m.group("counts")):
            field = _HEADER_FIELDS.get(word)
            if field is not None:
                counts[field] += int(value)
        return TestSummary(
            total=sum(counts.values()),
            duration=duration_to_seconds(m.group("duration")),
            **counts,
        )

    # ── jest / vitest ────────────────────────────────────────────────

    def _decode_jest(self, framework: str, stdout: str, outcome: dict) -> TestRunResult:
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError:
            data = None
        if not isinstance(data, dict):
            parse_error = f"{framework} output is not a JSON report" if stdout.strip() else None
            return TestRunResult(**outcome, framework=framework, parse_error=parse_error)

        tests: list[TestCase] = []
        failures: list[TestFailure] = []
        starts, ends = [], []
        suites = data.get("testResults")
        for suite in suites if isinstance(suites, list) else ():
            if not isinstance(suite, dict):
                continue
            if isinstance(suite.get("startTime"), (int, float)):
                starts.append(suite["startTime"])
            if isinstance(suite.get("endTime"), (int, float)):
                ends.append(suite["endTime"])
            file = _str_or_none(suite.get("name")) or _str_or_none(suite.get("testFilePath"))
            for test in _jest_tests(suite):
                if not isinstance(test, dict):
                    continue
                self._add_jest_test(test, file, tests, failures)

        duration = None
        if starts and ends:
            duration = round((max(ends) - min(starts)) / 1000, 3)

        reported = None
        if _int_or_none(data.get("numTotalTests")) is not None:
            counts = {
                key: _int_or_none(data.get(key)) or 0
                for key in ("numPassedTests", "numFailedTests", "numPendingTests", "numTodoTests")
            }
            reported = TestSummary(
                total=data["numTotalTests"],
                passed=counts["numPassedTests"],
                failed=counts["numFailedTests"],
                skipped=counts["numPendingTests"] + counts["numTodoTests"],
                duration=duration,
            )

        if tests:
            summary = aggregate.test_summary(tests, duration=duration, reported=reported)
            return TestRunResult(
                **outcome, framework=framework, summary=summary, tests=tests, failures=failures
            )
        if reported is not None:
            return TestRunResult(**outcome, framework=framework, summary=reported, failures=failures)
        return TestRunResult(
            **outcome,
            framework=framework,
            failures=failures,
            parse_error=f"{framework} report has no test results",
        )

    @staticmethod
    def _add_jest_test(test: dict, file, tests: list, failures: list):
        name = (
            _str_or_none(test.get("fullName")) or _str_or_none(test.get("title")) or "unnamed test"
        )
        status = classify_test_status(str(test.get("status", "")))
        duration = test.get("duration")
        tests.append(
            TestCase(
                name=name,
                file=file,
                status=status,
                duration=duration / 1000 if isinstance(duration, (int, float)) else None,
            )
        )
        if status != TestStatus.FAILED:
            return
        messages = test.get("failureMessages")
        if not isinstance(messages, list):
            messages = []
        message = strip_ansi("\n".join(m for m in messages if isinstance(m, str))).strip()
        expected = _JEST_EXPECTED_RE.search(message)
        actual = _JEST_RECEIVED_RE.search(message)
        location = test.get("location") or {}
        failures.append(
            TestFailure(
                name=name,
                file=file,
                line=_int_or_none(location.get("line")) if isinstance(location, dict) else None,
                message=message.splitlines()[0] if message else "Test failed",
                expected=expected.group(1).strip() if expected else None,
                actual=actual.group(1).strip() if actual else None,
            )
        )

    # ── coverage ─────────────────────────────────────────────────────

    def _decode_coverage(self, framework: str, stdout: str, outcome: dict) -> CoverageResult:
        files: list[CoverageFile] = []
        total: CoverageFile | None = None
        in_table = False
        has_branches = False

        for line in stdout.splitlines():
            m = _COVERAGE_HEADER_RE.match(line.strip())
            if m:
                in_table = True
                has_branches = bool(m.group("branch"))
                continue
            if not in_table or not line.strip() or set(line.strip()) == {"-"}:
                continue
            m = _COVERAGE_ROW_RE.match(line.strip())
            if not m:
                continue
            row = CoverageFile(
                file=m.group("file"),
                statements=int(m.group("stmts")),
                missed=int(m.group("miss")),
                branches=int(m.group("branch")) if has_branches and m.group("branch") else None,
                partial_branches=(
                    int(m.group("brpart")) if has_branches and m.group("brpart") else None
                ),
                cover=float(m.group("cover")),
                missing=m.group("missing") or None,
            )
            if row.file == "TOTAL":
                total = row
            else:
                files.append(row)

        if total is None and not files:
            parse_error = "no coverage table found" if stdout.strip() else None
            return CoverageResult(**outcome, framework=framework, parse_error=parse_error)

        summary = self._coverage_summary(files, total)
        return CoverageResult(**outcome, framework=framework, summary=summary, files=files)

    @staticmethod
    def _coverage_summary(files: list[CoverageFile], total: CoverageFile | None) -> CoverageSummary:
        if total is not None:
            statements = sum(f.statements for f in files)
            if files and statements != total.statements:
                # skip_covered hides fully covered files from the per-file rows
                _log.debug(
                    "coverage rows cover %d of %d statements; using TOTAL row",
                    statements,
                    total.statements,
                )
            return CoverageSummary(
                statements=total.statements,
                missed=total.missed,
                branches=total.branches,
                partial_branches=total.partial_branches,
                cover=total.cover,
            )
        if len(files) == 1:
            only = files[0]
            return CoverageSummary(
                statements=only.statements,
                missed=only.missed,
                branches=only.branches,
                partial_branches=only.partial_branches,
                cover=only.cover,
            )
        statements = sum(f.statements for f in files)
        missed = sum(f.missed for f in files)
        cover = round((statements - missed) / statements * 100, 2) if statements else 100.0
        return CoverageSummary(statements=statements, missed=missed, cover=cover)

    # ── compact ──────────────────────────────────────────────────────

    def compact(self, result):
        if isinstance(result, TestRunResult):
            failures = [TestFailureCompact(name=f.name, message=f.message) for f in result.failures]
            return TestRunCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                framework=result.framework,
                summary=result.summary,
                failures=failures or None,
            )
        if isinstance(result, CoverageResult):
            threshold = config.get("coverage_compact_threshold")
            low = [
                CoverageFileCompact(file=f.file, cover=f.cover)
                for f in result.files
                if f.cover < threshold
            ]
            return CoverageCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                framework=result.framework,
                summary=result.summary,
                files=low or None,
            )
        raise TypeError(f"test processor cannot compact {type(result).__name__}")

    # ── presenters ───────────────────────────────────────────────────

    @staticmethod
    def _run_header(framework: str, summary: TestSummary) -> str:
        took = f" in {summary.duration:.2f}s" if summary.duration is not None else ""
        if summary.total and summary.total == summary.passed:
            return f"{framework}: all {plural(summary.total, 'test')} passed{took}"
        if not summary.total:
            return f"{framework}: no tests ran{took}"
        parts = [f"{summary.passed} passed", f"{summary.failed} failed"]
        if summary.skipped:
            parts.append(f"{summary.skipped} skipped")
        if summary.errors:
            parts.append(plural(summary.errors, "error"))
        return f"{framework}: {', '.join(parts)}{took}"

    @staticmethod
    def _coverage_header(framework: str, summary: CoverageSummary) -> str:
        header = (
            f"{framework} coverage: {summary.cover:g}% "
            f"({summary.statements - summary.missed}/{summary.statements} statements"
        )
        if summary.branches is not None:
            header += f", {summary.partial_branches or 0} partial of {summary.branches} branches"
        return header + ")"

    def format(self, result):
        if isinstance(result, TestRunResult):
            lines = Lines(self._run_header(result.framework, result.summary))
            for f in result.failures:
                where = f"{f.file}:{f.line} " if f.file and f.line else ""
                message = f": {f.message}" if f.message else ""
                lines.detail(f"FAIL {where}{f.name}{message}")
                if f.expected is not None or f.actual is not None:
                    lines.detail(f"  expected {f.expected}, received {f.actual}")
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        if isinstance(result, CoverageResult):
            lines = Lines(self._coverage_header(result.framework, result.summary))
            for f in result.files:
                missing = f"  missing {f.missing}" if f.missing else ""
                lines.detail(f"{f.file}: {f.cover:g}%{missing}")
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        raise TypeError(f"test processor cannot format {type(result).__name__}")

    def format_compact(self, compact):
        if isinstance(compact, TestRunCompact):
            lines = Lines(self._run_header(compact.framework, compact.summary))
            for f in compact.failures or ():
                lines.detail(f"FAIL {f.name}" + (f": {f.message}" if f.message else ""))
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        if isinstance(compact, CoverageCompact):
            lines = Lines(self._coverage_header(compact.framework, compact.summary))
            threshold = config.get("coverage_compact_threshold")
            lines.section(
                f"below {threshold:g}%:",
                (f"{f.file}: {f.cover:g}%" for f in compact.files or ()),
            )
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        raise TypeError(f"test processor cannot format {type(compact).__name__}")
