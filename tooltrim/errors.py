"""Classify a failed upstream tool run into a structured ToolError.

Order of the checks matters: more specific patterns come first, e.g.
"permission denied (publickey)" is an authentication error, not a
permission error.
"""

import re

from . import config
from .models import ErrorCategory, ToolError
from .normalize import strip_ansi

_PATTERNS: list[tuple[ErrorCategory, tuple[str, ...]]] = [
    (ErrorCategory.TIMEOUT, ("timed out", "timeout")),
    (
        ErrorCategory.COMMAND_NOT_FOUND,
        (
            "command not found",
            "not recognized",
            "enoent",
            "no such file or directory",
        ),
    ),
    (
        ErrorCategory.AUTHENTICATION_ERROR,
        (
            "authentication",
            "authenticated",
            "credential",
            "unauthorized",
            "permission denied (publickey",
            "login required",
        ),
    ),
    (
        ErrorCategory.PERMISSION_DENIED,
        (
            "permission denied",
            "eacces",
            "eperm",
            "access denied",
            "operation not permitted",
        ),
    ),
    (
        ErrorCategory.NETWORK_ERROR,
        (
            "connection refused",
            "econnrefused",
            "etimedout",
            "econnreset",
            "enetunreach",
            "could not resolve host",
            "network is unreachable",
            "dns resolution failed",
        ),
    ),
    (ErrorCategory.ALREADY_EXISTS, ("already exists", "already exist")),
    (
        ErrorCategory.CONFIGURATION_ERROR,
        (
            "missing config",
            "configuration error",
            "config file not found",
            "invalid configuration",
            "no configuration",
            ".eslintrc",
            "tsconfig",
            "could not read config",
        ),
    ),
    (ErrorCategory.CONFLICT, ("conflict", "lock file", "locked")),
    (
        ErrorCategory.NOT_FOUND,
        (
            "not found",
            "does not exist",
            "no such",
            "unknown revision",
            "pathspec",
        ),
    ),
]

_STATUS_CODE_RE = {
    ErrorCategory.AUTHENTICATION_ERROR: re.compile(r" 40[13][ :]"),
    ErrorCategory.NOT_FOUND: re.compile(r" 404[ :]"),
}

_SUGGESTIONS = {
    ErrorCategory.COMMAND_NOT_FOUND: 'Ensure "{tool}" is installed and available in your PATH.',
    ErrorCategory.PERMISSION_DENIED: (
        "Check file/directory permissions or run with elevated privileges."
    ),
    ErrorCategory.TIMEOUT: (
        "The command took too long. Retry with a longer timeout or a smaller scope."
    ),
    ErrorCategory.INVALID_INPUT: "Check the input parameters and try again.",
    ErrorCategory.NOT_FOUND: "Verify the resource (file, branch, ref, etc.) exists.",
    ErrorCategory.NETWORK_ERROR: "Check your network connection and try again.",
    ErrorCategory.AUTHENTICATION_ERROR: (
        "Verify your credentials or tokens are valid and not expired."
    ),
    ErrorCategory.CONFLICT: "Resolve the conflict or release the lock and retry.",
    ErrorCategory.CONFIGURATION_ERROR: (
        "Check that all required config files exist and are valid."
    ),
    ErrorCategory.ALREADY_EXISTS: (
        "The resource already exists. Use a different name or remove it first."
    ),
    ErrorCategory.COMMAND_FAILED: 'Inspect the error message from "{tool}" for more details.',
}


def classify_error_category(text: str, exit_code: int) -> ErrorCategory:
    """Pick the most specific category for an error text (default: command-failed)."""
    if exit_code == 124:
        return ErrorCategory.TIMEOUT
    lower = text.lower()
    for category, needles in _PATTERNS:
        if any(needle in lower for needle in needles):
            return category
        status_re = _STATUS_CODE_RE.get(category)
        if status_re and status_re.search(lower):
            return category
    return ErrorCategory.COMMAND_FAILED


def _trim_message(text: str) -> str:
    max_lines = config.get("error_message_max_lines")
    lines = [line.rstrip() for line in text.strip().splitlines() if line.strip()]
    if len(lines) > max_lines:
        lines = lines[-max_lines:]
    return "\n".join(lines)


def tool_error(tool: str, stderr: str, exit_code: int) -> ToolError | None:
    """Build a ToolError for a non-zero exit that left error text behind.

    Returns None when the run succeeded or the tool said nothing on stderr;
    in the latter case the failure is already carried by the decoded records
    (failing tests, lint errors).
    """
    if exit_code == 0:
        return None
    text = strip_ansi(stderr).strip()
    if not text:
        return None
    category = classify_error_category(text, exit_code)
    return ToolError(
        category=category,
        message=_trim_message(text) or f"{tool} failed with exit code {exit_code}",
        exit_code=exit_code,
        suggestion=_SUGGESTIONS[category].format(tool=tool),
    )
