"""Base class shared by every output processor."""

from abc import ABC, abstractmethod

from ..errors import tool_error
from ..models import CanonicalResult, CompactProjection, ToolError
from ..normalize import _require_str, strip_ansi
from ..render import Lines


class Processor(ABC):
    """Adapter for one upstream tool family.

    A processor turns the raw output of an already-run command into a
    canonical result (``decode``), projects it down (``compact``) and renders
    either form as text (``format`` / ``format_compact``). Processors hold
    no state between calls.
    """

    priority: int = 50
    operations: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str: ...

    def can_handle(self, operation: str) -> bool:
        return operation in self.operations

    @abstractmethod
    def decode(
        self, operation: str, stdout: str, stderr: str = "", exit_code: int = 0, **context
    ) -> CanonicalResult: ...

    @abstractmethod
    def compact(self, result: CanonicalResult) -> CompactProjection: ...

    @abstractmethod
    def format(self, result: CanonicalResult) -> str: ...

    @abstractmethod
    def format_compact(self, compact: CompactProjection) -> str: ...

    # -- helpers --------------------------------------------------------

    def _clean(self, operation: str, stdout: str, stderr: str) -> tuple[str, str]:
        _require_str(stdout, f"{self.name}.decode({operation!r}) stdout")
        _require_str(stderr, f"{self.name}.decode({operation!r}) stderr")
        return strip_ansi(stdout), strip_ansi(stderr)

    def _outcome(self, tool: str, stderr: str, exit_code: int) -> dict:
        """success/error fields; the exit code decides success."""
        return {
            "success": exit_code == 0,
            "error": tool_error(tool, stderr, exit_code),
        }

    @staticmethod
    def _add_error(lines: Lines, error: ToolError | None, parse_error: str | None = None):
        if error is not None:
            lines.add(f"error ({error.category.value}, exit {error.exit_code}): {error.message}")
            lines.add(f"hint: {error.suggestion}")
        if parse_error:
            lines.add(f"could not decode output: {parse_error}")
