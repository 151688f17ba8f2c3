"""Shared builders for tests."""

import json
from pathlib import Path

from rabbithole.runner import ToolResult, ToolState


def write_manifest(project_dir: Path, manifest: dict) -> None:
    (project_dir / "package.json").write_text(json.dumps(manifest))


def tool_ok(stdout: str = "", stderr: str = "") -> ToolResult:
    return ToolResult(
        command=["npm"], state=ToolState.OK, stdout=stdout, stderr=stderr, returncode=0
    )


def tool_findings(stdout: str, returncode: int = 1) -> ToolResult:
    return ToolResult(
        command=["npm"], state=ToolState.FINDINGS, stdout=stdout, returncode=returncode
    )


def tool_error(stderr: str = "", returncode: int = 1, error: str | None = None) -> ToolResult:
    return ToolResult(
        command=["npm"],
        state=ToolState.ERROR,
        stderr=stderr,
        returncode=returncode,
        error=error or f"Exit code {returncode}",
    )


def tool_unavailable() -> ToolResult:
    return ToolResult(command=["npm"], state=ToolState.UNAVAILABLE, error="Command not found: npm")
