"""Docker output processor: stats (JSON lines) and compose up/down progress."""

import json
import re

from .. import aggregate
from ..classify import classify_compose_action
from ..log import get_logger
from ..models import (
    ComposeCompact,
    ComposeEntity,
    ComposeEntityCompact,
    ComposeResult,
    ContainerStats,
    ContainerStatsCompact,
    DockerStatsCompact,
    DockerStatsResult,
    StatsSummary,
)
from ..normalize import percent_to_float, size_pair_to_bytes
from ..render import Lines, plural
from .base import Processor

_log = get_logger("processors.docker")

# compose v2:  ✔ Container myapp-web-1  Started   0.4s
_COMPOSE_V2_RE = re.compile(
    r"^\s*(?P<glyph>[✔✘✓✗⠿!])?\s*(?P<kind>Container|Network|Volume|Image)\s+"
    r"(?P<name>\S+)\s+(?P<word>[A-Za-z]+)\b"
)
# compose v1:  Creating myapp_web_1 ... done
_COMPOSE_V1_RE = re.compile(
    r"^\s*(?P<word>Creating|Recreating|Starting|Stopping|Removing)\s+"
    r"(?P<name>\S+)\s+\.\.\.\s*(?P<result>\w+)?"
)
# compose v1:  Creating network "myapp_default" with the default driver
_COMPOSE_V1_RESOURCE_RE = re.compile(
    r'^\s*(?P<word>Creating|Removing)\s+(?P<kind>network|volume)\s+"?(?P<name>[^"\s]+)"?'
)
_FAILED_GLYPHS = frozenset("✘✗")
_FAILED_WORDS = frozenset({"error", "failed"})


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _stats_from_current(data: dict) -> ContainerStats | None:
    """docker >= 20: ``ID`` plus ``Name``."""
    container_id = _str_or_none(data.get("ID"))
    if container_id is None:
        return None
    return _container_stats(container_id, _str_or_none(data.get("Name")) or container_id, data)


def _stats_from_legacy(data: dict) -> ContainerStats | None:
    """Older engines: ``Container`` holds the id or name."""
    container = _str_or_none(data.get("Container"))
    if container is None:
        return None
    return _container_stats(container, _str_or_none(data.get("Name")) or container, data)


_STATS_SHAPES = (_stats_from_current, _stats_from_legacy)


def _container_stats(container_id: str, name: str, data: dict) -> ContainerStats:
    mem_raw = _str_or_none(data.get("MemUsage")) or ""
    mem_usage, mem_limit = size_pair_to_bytes(mem_raw)
    net_in, net_out = size_pair_to_bytes(_str_or_none(data.get("NetIO")) or "")
    block_read, block_write = size_pair_to_bytes(_str_or_none(data.get("BlockIO")) or "")
    used, _, limit = mem_raw.partition("/")
    pids = str(data.get("PIDs") or "").strip()
    return ContainerStats(
        id=container_id,
        name=name,
        cpu_percent=percent_to_float(_str_or_none(data.get("CPUPerc")) or ""),
        memory_usage=used.strip() or None,
        memory_limit=limit.strip() or None,
        memory_usage_bytes=mem_usage,
        memory_limit_bytes=mem_limit,
        memory_percent=percent_to_float(_str_or_none(data.get("MemPerc")) or ""),
        net_in_bytes=net_in,
        net_out_bytes=net_out,
        block_read_bytes=block_read,
        block_write_bytes=block_write,
        pids=int(pids) if pids.isdigit() else 0,
    )


class DockerProcessor(Processor):
    priority = 30
    operations = ("docker.stats", "docker.compose.up", "docker.compose.down")

    @property
    def name(self) -> str:
        return "docker"

    def decode(self, operation, stdout, stderr="", exit_code=0, **context):
        stdout, stderr = self._clean(operation, stdout, stderr)
        outcome = self._outcome("docker", stderr, exit_code)
        if operation == "docker.stats":
            return self._decode_stats(stdout, outcome)
        if operation in ("docker.compose.up", "docker.compose.down"):
            # compose writes progress to stderr; some wrappers fold it into stdout
            return self._decode_compose(operation, stderr + "\n" + stdout, outcome, exit_code)
        raise ValueError(f"docker processor cannot decode {operation!r}")

    # ── stats ────────────────────────────────────────────────────────

    def _decode_stats(self, stdout: str, outcome: dict) -> DockerStatsResult:
        containers: list[ContainerStats] = []
        nonblank = 0
        for line in stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            nonblank += 1
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                _log.debug("skipping non-JSON stats line: %r", line)
                continue
            if not isinstance(data, dict):
                continue
            for shape in _STATS_SHAPES:
                stats = shape(data)
                if stats is not None:
                    containers.append(stats)
                    break
            else:
                _log.debug("skipping stats line without container id: %r", line)

        parse_error = None
        if nonblank and not containers:
            parse_error = "no JSON stats lines found"
        summary = StatsSummary(
            total=len(containers),
            memory_usage_bytes=sum(c.memory_usage_bytes for c in containers),
        )
        return DockerStatsResult(
            **outcome, containers=containers, summary=summary, parse_error=parse_error
        )

    # ── compose ──────────────────────────────────────────────────────

    def _decode_compose(
        self, operation: str, text: str, outcome: dict, exit_code: int
    ) -> ComposeResult:
        entities: dict[tuple[str, str], dict] = {}

        for line in text.splitlines():
            parsed = self._parse_compose_line(line)
            if parsed is None:
                continue
            kind, name, action, failed = parsed
            entity = entities.setdefault(
                (kind, name), {"kind": kind, "name": name, "actions": [], "failed": False}
            )
            if action is not None and (not entity["actions"] or entity["actions"][-1] != action):
                entity["actions"].append(action)
            entity["failed"] = entity["failed"] or failed

        records = [
            ComposeEntity(
                kind=e["kind"],
                name=e["name"],
                state=e["actions"][-1] if e["actions"] else None,
                actions=e["actions"],
                failed=e["failed"],
            )
            for e in entities.values()
        ]
        parse_error = None
        if not records and text.strip() and exit_code == 0:
            parse_error = "no compose progress lines found"
        return ComposeResult(
            operation=operation,
            **outcome,
            entities=records,
            summary=aggregate.compose_summary(records),
            parse_error=parse_error,
        )

    @staticmethod
    def _parse_compose_line(line: str):
        """Return (kind, name, action, failed) for a progress line, else None."""
        m = _COMPOSE_V2_RE.match(line)
        if m:
            word = m.group("word")
            failed = m.group("glyph") in _FAILED_GLYPHS or word.lower() in _FAILED_WORDS
            action = classify_compose_action(word)
            if action is None and not failed:
                return None
            return m.group("kind").lower(), m.group("name").strip('"'), action, failed
        m = _COMPOSE_V1_RESOURCE_RE.match(line)
        if m:
            return m.group("kind"), m.group("name"), classify_compose_action(m.group("word")), False
        m = _COMPOSE_V1_RE.match(line)
        if m:
            result = (m.group("result") or "").lower()
            failed = result in _FAILED_WORDS
            return "container", m.group("name"), classify_compose_action(m.group("word")), failed
        return None

    # ── compact ──────────────────────────────────────────────────────

    def compact(self, result):
        if isinstance(result, DockerStatsResult):
            containers = [
                ContainerStatsCompact(
                    name=c.name,
                    cpu_percent=c.cpu_percent,
                    memory_percent=c.memory_percent,
                    memory_usage_bytes=c.memory_usage_bytes,
                )
                for c in result.containers
            ]
            return DockerStatsCompact(
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                summary=result.summary,
                containers=containers or None,
            )
        if isinstance(result, ComposeResult):
            failed = [
                ComposeEntityCompact(kind=e.kind, name=e.name, failed=e.failed)
                for e in result.entities
                if e.failed
            ]
            return ComposeCompact(
                operation=result.operation,
                success=result.success,
                error=result.error,
                parse_error=result.parse_error,
                summary=result.summary,
                entities=failed or None,
            )
        raise TypeError(f"docker processor cannot compact {type(result).__name__}")

    # ── presenters ───────────────────────────────────────────────────

    def format(self, result):
        if isinstance(result, DockerStatsResult):
            lines = Lines(self._stats_header(result.summary))
            for c in result.containers:
                lines.detail(
                    f"{c.name}: cpu {c.cpu_percent:.2f}%, "
                    f"mem {c.memory_usage or c.memory_usage_bytes} / "
                    f"{c.memory_limit or c.memory_limit_bytes} ({c.memory_percent:.2f}%), "
                    f"pids {c.pids}"
                )
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        if isinstance(result, ComposeResult):
            lines = Lines(self._compose_header(result.operation, result.summary))
            for e in result.entities:
                history = ", ".join(a.value for a in e.actions) or "no state"
                marker = " FAILED" if e.failed else ""
                lines.detail(f"{e.kind} {e.name}: {history}{marker}")
            self._add_error(lines, result.error, result.parse_error)
            return lines.render()
        raise TypeError(f"docker processor cannot format {type(result).__name__}")

    def format_compact(self, compact):
        if isinstance(compact, DockerStatsCompact):
            lines = Lines(self._stats_header(compact.summary))
            for c in compact.containers or ():
                lines.detail(
                    f"{c.name}: cpu {c.cpu_percent:.2f}%, mem {c.memory_percent:.2f}%"
                )
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        if isinstance(compact, ComposeCompact):
            lines = Lines(self._compose_header(compact.operation, compact.summary))
            lines.section("failed:", (f"{e.kind} {e.name}" for e in compact.entities or ()))
            self._add_error(lines, compact.error, compact.parse_error)
            return lines.render()
        raise TypeError(f"docker processor cannot format {type(compact).__name__}")

    @staticmethod
    def _stats_header(summary: StatsSummary) -> str:
        mib = summary.memory_usage_bytes / 1024**2
        return f"{plural(summary.total, 'container')}, {mib:.1f}MiB memory in use"

    @staticmethod
    def _compose_header(operation: str, summary) -> str:
        verb = operation.rsplit(".", 1)[-1]
        parts = [plural(summary.containers, "container")]
        for label in ("created", "started", "stopped", "removed", "failed"):
            value = getattr(summary, label)
            if value:
                parts.append(f"{value} {label}")
        return f"compose {verb}: " + ", ".join(parts)
