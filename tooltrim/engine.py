"""Output engine: routes raw tool output through decode, compact, select and present."""

from typing import NamedTuple

from . import config
from .compactor import estimate_tokens
from .log import get_logger
from .models import CanonicalResult, CompactProjection
from .normalize import strip_ansi
from .processors import discover_processors

_log = get_logger("engine")


class Payload(NamedTuple):
    """What the caller hands back to the agent."""

    mode: str  # "full" or "compact"
    structured: CanonicalResult | CompactProjection
    text: str


def select_output(
    result: CanonicalResult,
    compact: CompactProjection,
    raw_output: str | None,
    force_full: bool = False,
) -> CanonicalResult | CompactProjection:
    """Pick the full result unless it costs more than the raw output would.

    With no raw output to compare against the compact form is returned.
    """
    if force_full:
        return result
    if raw_output is None:
        return compact
    full_tokens = estimate_tokens(result)
    raw_tokens = estimate_tokens(raw_output)
    if full_tokens < config.get("compact_size_ratio") * raw_tokens:
        return result
    return compact


class OutputEngine:
    """Dispatches each operation to the first processor that handles it."""

    def __init__(self):
        self.processors = discover_processors()

    def operations(self) -> list[str]:
        ops = []
        for processor in self.processors:
            ops.extend(op for op in processor.operations if op not in ops)
        return sorted(ops)

    def processor_for(self, operation: str):
        for processor in self.processors:
            if processor.can_handle(operation):
                return processor
        raise KeyError(f"unknown operation: {operation}")

    def decode(self, operation: str, stdout: str, stderr: str = "", exit_code: int = 0, **context):
        return self.processor_for(operation).decode(operation, stdout, stderr, exit_code, **context)

    def present(self, structured: CanonicalResult | CompactProjection) -> str:
        processor = self.processor_for(structured.operation)
        if isinstance(structured, CompactProjection):
            return processor.format_compact(structured)
        return processor.format(structured)

    def run(
        self,
        operation: str,
        stdout: str,
        stderr: str = "",
        exit_code: int = 0,
        force_full: bool = False,
        **context,
    ) -> Payload:
        """Decode raw output and return the cheaper faithful representation."""
        processor = self.processor_for(operation)
        result = processor.decode(operation, stdout, stderr, exit_code, **context)
        compact = processor.compact(result)

        raw = strip_ansi(stdout + stderr)
        chosen = select_output(result, compact, raw or None, force_full=force_full)
        mode = "compact" if chosen is compact else "full"
        _log.debug(
            "%s: %s via %s (raw %d chars)", operation, mode, processor.name, len(raw)
        )
        return Payload(mode=mode, structured=chosen, text=self.present(chosen))
