"""Toolbox error hierarchy with categorised error translation.

Translates terse ``toolbox``/podman output into error types that carry a
``fix_suggestion`` string, so the CLI can tell the user what to do next
without them needing to know podman internals.

Error categories:
    ToolboxExistsError      : a container with that name already exists
    ToolboxImagePullError   : image not found, pull failed
    ToolboxPermissionError  : permission denied (podman socket, devices)
    ToolboxTimeoutError     : command hit its timeout and was killed
    ToolboxCommandError     : generic fallback with output snippet
"""

from __future__ import annotations

from llmbench.exceptions import ToolboxError

__all__ = [
    "ToolboxCommandError",
    "ToolboxExistsError",
    "ToolboxImagePullError",
    "ToolboxPermissionError",
    "ToolboxTimeoutError",
    "capture_output_snippet",
    "translate_toolbox_error",
]


class _TranslatedToolboxError(ToolboxError):
    def __init__(self, message: str, fix_suggestion: str, output_snippet: str | None = None):
        super().__init__(message)
        self.fix_suggestion = fix_suggestion
        self.output_snippet = output_snippet


class ToolboxExistsError(_TranslatedToolboxError):
    """A toolbox container with the requested name already exists."""


class ToolboxImagePullError(_TranslatedToolboxError):
    """Toolbox image could not be found or pulled."""


class ToolboxPermissionError(_TranslatedToolboxError):
    """Permission denied talking to podman or opening devices."""


class ToolboxTimeoutError(_TranslatedToolboxError):
    """Toolbox command exceeded its wall-clock limit and was killed."""


class ToolboxCommandError(_TranslatedToolboxError):
    """Generic toolbox failure (unrecognised output pattern)."""


def capture_output_snippet(output: str, max_lines: int = 20) -> str:
    """Return the last ``max_lines`` lines of ``output``."""
    lines = output.splitlines()
    if len(lines) <= max_lines:
        return output
    return "\n".join(lines[-max_lines:])


# Patterns checked in order; first match wins. Matching is case-insensitive.

_EXISTS_PATTERNS = [
    "already exists",
    "name is already in use",
]

_IMAGE_PULL_PATTERNS = [
    "manifest unknown",
    "unable to pull",
    "failed to pull",
    "image not known",
    "repository does not exist",
    "name unknown",
    "no such image",
]

_PERMISSION_PATTERNS = [
    "permission denied",
    "operation not permitted",
    "access denied",
]


def translate_toolbox_error(
    returncode: int | None,
    output: str,
    name: str,
    image: str | None = None,
    timed_out: bool = False,
) -> ToolboxError:
    """Translate a failed toolbox command into a categorised ToolboxError.

    Args:
        returncode: Exit code of the ``toolbox`` process (None if never started).
        output: Combined stdout/stderr captured from the command.
        name: Toolbox container name the command targeted.
        image: Image reference, embedded in pull suggestions.
        timed_out: Whether the command was killed for exceeding its timeout.

    Returns:
        A ToolboxError subclass with ``fix_suggestion`` and ``output_snippet``.
    """
    snippet = capture_output_snippet(output)
    lower = output.lower()

    if timed_out or returncode in (124, -9, -15):
        return ToolboxTimeoutError(
            message=f"Toolbox command for '{name}' was killed (exit code {returncode}).",
            fix_suggestion="Large images take a while to pull; pull it with podman first.",
            output_snippet=snippet,
        )

    if any(pat in lower for pat in _EXISTS_PATTERNS):
        return ToolboxExistsError(
            message=f"Toolbox '{name}' already exists.",
            fix_suggestion=f"Remove it first to recreate it: toolbox rm --force {name}",
            output_snippet=snippet,
        )

    if any(pat in lower for pat in _IMAGE_PULL_PATTERNS):
        target = image or name
        return ToolboxImagePullError(
            message=f"Image not found or could not be pulled: {target}",
            fix_suggestion=f"podman pull {target}",
            output_snippet=snippet,
        )

    if any(pat in lower for pat in _PERMISSION_PATTERNS):
        return ToolboxPermissionError(
            message="Permission denied while creating or entering the toolbox.",
            fix_suggestion="Check that your user is in the 'video' and 'render' groups.",
            output_snippet=snippet,
        )

    return ToolboxCommandError(
        message=f"Toolbox command for '{name}' exited with code {returncode}.",
        fix_suggestion="Check the toolbox output above for details.",
        output_snippet=snippet,
    )
