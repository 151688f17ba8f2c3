"""Subprocess wrapper for the external npm tools.

npm audit and npm outdated exit non-zero whenever they have something to
report, so the exit status alone says little. Every invocation is mapped to a
ToolResult whose state separates "exited non-zero but printed a report" from
"produced nothing at all". Callers branch on the state; nothing here raises
for tool problems.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class ToolState(Enum):
    """How an external tool invocation ended."""

    OK = "ok"
    FINDINGS = "findings"  # non-zero exit, stdout captured
    ERROR = "error"  # non-zero exit, nothing on stdout
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


@dataclass
class ToolResult:
    """Captured output of one external command."""

    command: list[str]
    state: ToolState
    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None
    error: str | None = None

    @property
    def has_output(self) -> bool:
        """True when stdout is usable, whatever the exit status was."""
        return self.state in (ToolState.OK, ToolState.FINDINGS)

    @property
    def succeeded(self) -> bool:
        """True only for a zero exit status."""
        return self.state is ToolState.OK

    @property
    def failure_text(self) -> str:
        """Best text to classify a failure from."""
        return self.stderr or self.error or ""


def run_tool(
    command: list[str],
    cwd: Path | str | None = None,
    timeout: float | None = None,
) -> ToolResult:
    """Run a command and capture its output.

    Args:
        command: Command to run as list of strings.
        cwd: Working directory (the npm project root).
        timeout: Optional timeout in seconds. None waits for the tool to finish.

    Returns:
        ToolResult describing the outcome.
    """
    logger.debug("Running %s in %s", " ".join(command), cwd or ".")
    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        return ToolResult(
            command=command,
            state=ToolState.TIMEOUT,
            error=f"Command timed out after {timeout}s",
        )
    except FileNotFoundError:
        cmd_name = command[0] if command else "command"
        return ToolResult(
            command=command,
            state=ToolState.UNAVAILABLE,
            error=f"Command not found: {cmd_name}",
        )
    except PermissionError:
        return ToolResult(command=command, state=ToolState.ERROR, error="Permission denied")
    except OSError as e:
        return ToolResult(command=command, state=ToolState.ERROR, error=f"OS error: {e}")

    stdout = proc.stdout or ""
    stderr = proc.stderr or ""

    if proc.returncode == 0:
        state = ToolState.OK
        error = None
    elif stdout.strip():
        state = ToolState.FINDINGS
        error = None
    else:
        state = ToolState.ERROR
        error = f"Exit code {proc.returncode}"

    logger.debug("%s finished with %s (exit %s)", command[0], state.value, proc.returncode)
    return ToolResult(
        command=command,
        state=state,
        stdout=stdout,
        stderr=stderr,
        returncode=proc.returncode,
        error=error,
    )
