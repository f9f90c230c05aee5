"""Lint output processor: ESLint, Stylelint, ShellCheck, Biome and Oxlint JSON."""

import json

from .. import aggregate
from ..classify import classify_severity
from ..log import get_logger
from ..models import Diagnostic, LintCompact, LintResult, Severity
from ..render import Lines, plural
from .base import Processor

_log = get_logger("processors.lint")


def sniff_tool(payload) -> str | None:
    """Guess the linter from a decoded JSON document (None for JSON lines)."""
    if isinstance(payload, dict):
        if "comments" in payload:
            return "shellcheck"
        if "diagnostics" in payload:
            return "biome"
        if "message" in payload:
            return "oxlint"
        return None
    if isinstance(payload, list):
        first = next((item for item in payload if isinstance(item, dict)), None)
        if first is None:
            return None
        if "messages" in first or "filePath" in first:
            return "eslint"
        if "warnings" in first or "source" in first:
            return "stylelint"
        if "code" in first and "level" in first:
            return "shellcheck"
    return None


def _message_text(value) -> str | None:
    """Biome messages are either strings or lists of markup nodes."""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = [node.get("content", "") for node in value if isinstance(node, dict)]
        return "".join(parts) or None
    return None


# ── biome location shapes ────────────────────────────────────────────


def _biome_location_v2(location: dict):
    """Biome 2: ``path`` is a string, ``start`` carries line/column."""
    if not isinstance(location.get("path"), str):
        return None
    start = location.get("start")
    if not isinstance(start, dict):
        start = {}
    return location["path"], start.get("line"), start.get("column")


def _biome_location_v1(location: dict):
    """Biome 1: ``path.file`` plus ``sourceCode`` line/column numbers."""
    path = location.get("path")
    if not isinstance(path, dict) or "file" not in path:
        return None
    source = location.get("sourceCode")
    if not isinstance(source, dict):
        source = {}
    return path["file"], source.get("lineNumber"), source.get("columnNumber")


_BIOME_LOCATIONS = (_biome_location_v2, _biome_location_v1)


def _biome_location(location) -> tuple[str, int, int | None]:
    if isinstance(location, dict):
        for shape in _BIOME_LOCATIONS:
            found = shape(location)
            if found is not None:
                file, line, column = found
                return (
                    _str_or_none(file) or "unknown",
                    _int_or_none(line) or 0,
                    _int_or_none(column),
                )
    return "unknown", 0, None


def _int_or_none(value) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _str_or_none(value) -> str | None:
    """Non-empty strings pass through; numeric ids (``"ruleId": 5``) are stringified."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _list(value) -> list:
    return value if isinstance(value, list) else []


def _json_lines(text: str) -> list[dict]:
    """JSON objects from line-delimited output; other lines are skipped."""
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            _log.debug("skipping non-JSON lint line: %r", line)
            continue
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


class LintOutputProcessor(Processor):
    priority = 40
    operations = ("lint",)

    @property
    def name(self) -> str:
        return "lint"

    def decode(self, operation, stdout, stderr="", exit_code=0, **context):
        if operation != "lint":
            raise ValueError(f"lint processor cannot decode {operation!r}")
        stdout, stderr = self._clean(operation, stdout, stderr)
        tool = (context.get("tool") or "").lower() or None
        outcome = self._outcome(tool or "linter", stderr, exit_code)

        text = stdout.strip()
        if not text:
            return LintResult(**outcome, tool=tool or "unknown")

        payload = None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            # oxlint emits one JSON object per line
            if tool in (None, "oxlint"):
                entries = _json_lines(text)
                if entries:
                    return self._decode_oxlint(entries, outcome)
            return LintResult(
                **outcome,
                tool=tool or "unknown",
                parse_error=f"{tool or 'lint'} output is not valid JSON",
            )

        tool = tool or sniff_tool(payload)
        if tool == "eslint":
            return self._decode_eslint(payload, outcome)
        if tool == "stylelint":
            return self._decode_stylelint(payload, outcome)
        if tool == "shellcheck":
            return self._decode_shellcheck(payload, outcome)
        if tool == "biome":
            return self._decode_biome(payload, outcome)
        if tool == "oxlint":
            entries = payload if isinstance(payload, list) else [payload]
            return self._decode_oxlint(entries, outcome)
        return LintResult(
            **outcome,
            tool=tool or "unknown",
            parse_error="unrecognized lint payload",
        )

    def _result(self, tool, outcome, diagnostics, payload_ok=True, reported=None, **source):
        return LintResult(
            **outcome,
            tool=tool,
            diagnostics=diagnostics,
            summary=aggregate.lint_summary(diagnostics, reported, **source),
            parse_error=None if payload_ok else f"unexpected {tool} JSON shape",
        )

    def _decode_eslint(self, payload, outcome) -> LintResult:
        if not isinstance(payload, list):
            return self._result("eslint", outcome, [], payload_ok=False)
        diagnostics = []
        fixable_errors = fixable_warnings = 0
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            fixable_errors += _int_or_none(entry.get("fixableErrorCount")) or 0
            fixable_warnings += _int_or_none(entry.get("fixableWarningCount")) or 0
            for msg in _list(entry.get("messages")):
                if not isinstance(msg, dict):
                    continue
                diagnostics.append(
                    Diagnostic(
                        file=_str_or_none(entry.get("filePath")) or "unknown",
                        line=_int_or_none(msg.get("line")) or 0,
                        column=_int_or_none(msg.get("column")),
                        severity=classify_severity(msg.get("severity")),
                        rule=_str_or_none(msg.get("ruleId")),
                        message=_str_or_none(msg.get("message")) or "",
                    )
                )
        return self._result(
            "eslint",
            outcome,
            diagnostics,
            files_checked=len(payload),
            fixable_errors=fixable_errors,
            fixable_warnings=fixable_warnings,
        )

    def _decode_stylelint(self, payload, outcome) -> LintResult:
        if not isinstance(payload, list):
            return self._result("stylelint", outcome, [], payload_ok=False)
        diagnostics = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            for warning in _list(entry.get("warnings")):
                if not isinstance(warning, dict):
                    continue
                diagnostics.append(
                    Diagnostic(
                        file=_str_or_none(entry.get("source")) or "unknown",
                        line=_int_or_none(warning.get("line")) or 0,
                        column=_int_or_none(warning.get("column")),
                        severity=classify_severity(warning.get("severity")),
                        rule=_str_or_none(warning.get("rule")),
                        message=_str_or_none(warning.get("text")) or "",
                    )
                )
        return self._result("stylelint", outcome, diagnostics, files_checked=len(payload))

    def _decode_shellcheck(self, payload, outcome) -> LintResult:
        # json1 wraps the findings in {"comments": [...]}, plain json is the bare list
        if isinstance(payload, dict) and isinstance(payload.get("comments"), list):
            findings = payload["comments"]
        elif isinstance(payload, list):
            findings = payload
        else:
            return self._result("shellcheck", outcome, [], payload_ok=False)
        diagnostics = []
        files = set()
        for finding in findings:
            if not isinstance(finding, dict):
                continue
            file = _str_or_none(finding.get("file")) or "unknown"
            files.add(file)
            code = _str_or_none(finding.get("code"))
            diagnostics.append(
                Diagnostic(
                    file=file,
                    line=_int_or_none(finding.get("line")) or 0,
                    column=_int_or_none(finding.get("column")),
                    severity=classify_severity(finding.get("level")),
                    rule=f"SC{code}" if code is not None else None,
                    message=_str_or_none(finding.get("message")) or "",
                )
            )
        return self._result("shellcheck", outcome, diagnostics, files_checked=len(files))

    def _decode_biome(self, payload, outcome) -> LintResult:
        if not isinstance(payload, dict):
            return self._result("biome", outcome, [], payload_ok=False)
        diagnostics = []
        files = set()
        for diag in _list(payload.get("diagnostics")):
            if not isinstance(diag, dict):
                continue
            file, line, column = _biome_location(diag.get("location"))
            files.add(file)
            message = _message_text(diag.get("description")) or _message_text(diag.get("message"))
            diagnostics.append(
                Diagnostic(
                    file=file,
                    line=line,
                    column=_int_or_none(column),
                    severity=classify_severity(diag.get("severity")),
                    rule=_str_or_none(diag.get("category")),
                    message=message or "unknown diagnostic",
                )
            )
        reported = {}
        summary = payload.get("summary")
        if isinstance(summary, dict):
            for source_key, field in (("errors", "errors"), ("warnings", "warnings")):
                if isinstance(summary.get(source_key), int):
                    reported[field] = summary[source_key]
        return self._result(
            "biome", outcome, diagnostics, reported=reported, files_checked=len(files)
        )

    def _decode_oxlint(self, entries: list, outcome) -> LintResult:
        diagnostics = []
        files = set()
        for entry in entries:
            # summary objects carry no message
            if not isinstance(entry, dict):
                continue
            message = _str_or_none(entry.get("message"))
            if message is None:
                continue
            file = _str_or_none(entry.get("file")) or "unknown"
            files.add(file)
            diagnostics.append(
                Diagnostic(
                    file=file,
                    line=_int_or_none(entry.get("line")) or 0,
                    column=_int_or_none(entry.get("column")),
                    severity=classify_severity(entry.get("severity")),
                    rule=_str_or_none(entry.get("ruleId")),
                    message=message,
                )
            )
        return self._result("oxlint", outcome, diagnostics, files_checked=len(files))

    # ── compact ──────────────────────────────────────────────────────

    def compact(self, result):
        if not isinstance(result, LintResult):
            raise TypeError(f"lint processor cannot compact {type(result).__name__}")
        errors = [d for d in result.diagnostics if d.severity == Severity.ERROR]
        return LintCompact(
            success=result.success,
            error=result.error,
            parse_error=result.parse_error,
            tool=result.tool,
            summary=result.summary,
            diagnostics=errors or None,
        )

    # ── presenters ───────────────────────────────────────────────────

    @staticmethod
    def _header(tool: str, summary, parse_error: str | None = None) -> str:
        if parse_error and not summary.total:
            return f"{tool}: no diagnostics decoded"
        if not summary.total:
            return f"{tool}: no issues found"
        parts = [plural(summary.errors, "error"), plural(summary.warnings, "warning")]
        if summary.infos:
            parts.append(plural(summary.infos, "info", "infos"))
        checked = summary.files_checked
        where = f" in {plural(checked, 'file')}" if checked else ""
        return f"{tool}: {', '.join(parts)}{where}"

    @staticmethod
    def _diagnostic_line(d: Diagnostic) -> str:
        position = f"{d.file}:{d.line}" + (f":{d.column}" if d.column is not None else "")
        rule = f" [{d.rule}]" if d.rule else ""
        return f"{position} {d.severity.value}: {d.message}{rule}"

    def format(self, result):
        lines = Lines(self._header(result.tool, result.summary, result.parse_error))
        for d in result.diagnostics:
            lines.detail(self._diagnostic_line(d))
        self._add_error(lines, result.error, result.parse_error)
        return lines.render()

    def format_compact(self, compact):
        lines = Lines(self._header(compact.tool, compact.summary, compact.parse_error))
        for d in compact.diagnostics or ():
            lines.detail(self._diagnostic_line(d))
        self._add_error(lines, compact.error, compact.parse_error)
        return lines.render()
