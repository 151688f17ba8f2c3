"""npm audit normalization and npm audit fix.

npm audit exits non-zero whenever it finds something, so its stdout is
parsed whatever the exit status. Only a run that produced no output at all,
or output that is not the expected JSON shape, degrades to an empty result.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from rabbithole.models import (
    SEVERITY_ORDER,
    AuditFixResult,
    AuditResult,
    FixAvailable,
    FixTarget,
    Vulnerability,
    empty_summary,
    severity_rank,
)
from rabbithole.runner import run_tool

logger = logging.getLogger(__name__)

TRANSITIVE_TITLE = "Transitive vulnerability"
FORCE_HINT_ERROR = "Could not resolve dependencies. Try with --force."
FIX_FAILED_ERROR = "npm audit fix failed"
UNEXPECTED_FIX_ERROR = "Unexpected error running npm audit fix"

_RECOGNIZED = {level.value for level in SEVERITY_ORDER}

# npm prints e.g. "added 2 packages, removed 1 package, changed 5 packages"
_ADDED = re.compile(r"added\s+(\d+)")
_REMOVED = re.compile(r"removed\s+(\d+)")
_CHANGED = re.compile(r"changed\s+(\d+)")


def _parse_fix_available(raw: Any) -> FixAvailable:
    if isinstance(raw, dict):
        return FixTarget(name=str(raw.get("name", "")), version=str(raw.get("version", "")))
    return raw is True


def _direct_source(via: Any) -> dict[str, Any] | None:
    """First via entry that describes an advisory rather than naming a dependency."""
    if not isinstance(via, list):
        return None
    for item in via:
        if isinstance(item, dict) and "title" in item:
            return item
    return None


def parse_audit_output(data: Any) -> AuditResult:
    """Normalize a parsed `npm audit --json` payload.

    Returns an empty result if the payload has no vulnerabilities map.
    """
    if not isinstance(data, dict):
        return AuditResult()
    entries = data.get("vulnerabilities")
    if not isinstance(entries, dict):
        logger.debug("npm audit payload has no vulnerabilities map")
        return AuditResult()

    vulnerabilities: list[Vulnerability] = []
    summary = empty_summary()

    for name, entry in entries.items():
        if not isinstance(entry, dict):
            continue
        severity = str(entry.get("severity", ""))
        source = _direct_source(entry.get("via"))
        vulnerabilities.append(
            Vulnerability(
                name=str(name),
                severity=severity,
                title=str(source.get("title") or TRANSITIVE_TITLE) if source else TRANSITIVE_TITLE,
                url=str(source.get("url") or "") if source else "",
                affected_range=str(entry.get("range", "")),
                fix_available=_parse_fix_available(entry.get("fixAvailable")),
            )
        )
        if severity in _RECOGNIZED:
            summary[severity] += 1
        else:
            logger.debug("Unrecognized severity %r for %s", severity, name)

    # sorted() is stable, equal severities keep npm's order
    vulnerabilities = sorted(vulnerabilities, key=lambda v: severity_rank(v.severity))
    return AuditResult(vulnerabilities=vulnerabilities, summary=summary)


def run_audit(
    cwd: Path | str | None = None,
    npm: str = "npm",
    timeout: float | None = None,
) -> AuditResult:
    """Run `npm audit --json` and normalize the report."""
    result = run_tool([npm, "audit", "--json"], cwd=cwd, timeout=timeout)
    if not result.has_output:
        logger.warning("npm audit produced no output: %s", result.error or result.stderr.strip())
        return AuditResult()

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.warning("npm audit JSON parse error: %s", e)
        return AuditResult()

    return parse_audit_output(data)


def parse_fix_counts(text: str) -> tuple[int, int, int]:
    """Extract (added, removed, changed) package counts from npm output."""

    def _count(pattern: re.Pattern[str]) -> int:
        match = pattern.search(text)
        return int(match.group(1)) if match else 0

    return _count(_ADDED), _count(_REMOVED), _count(_CHANGED)


def run_audit_fix(
    force: bool = False,
    cwd: Path | str | None = None,
    npm: str = "npm",
    timeout: float | None = None,
) -> AuditFixResult:
    """Run `npm audit fix` and report what changed.

    Audits before and after to count fixed vulnerabilities. The fixed count
    never goes below zero, even when the fix pulls in new advisories.
    """
    try:
        before = run_audit(cwd=cwd, npm=npm, timeout=timeout)

        command = [npm, "audit", "fix"]
        if force:
            command.append("--force")
        result = run_tool(command, cwd=cwd, timeout=timeout)

        # npm audit fix can exit non-zero and still have fixed things
        if not result.has_output:
            failure = result.failure_text
            logger.warning("npm audit fix failed: %s", failure.strip())
            return AuditFixResult(
                success=False,
                remaining_vulnerabilities=before.total,
                error=FORCE_HINT_ERROR if "ERESOLVE" in failure else FIX_FAILED_ERROR,
            )

        added, removed, changed = parse_fix_counts(result.stdout)
        after = run_audit(cwd=cwd, npm=npm, timeout=timeout)

        return AuditFixResult(
            success=True,
            added=added,
            removed=removed,
            changed=changed,
            fixed_vulnerabilities=max(0, before.total - after.total),
            remaining_vulnerabilities=after.total,
        )
    except Exception:
        logger.exception("Unexpected error running npm audit fix")
        return AuditFixResult(success=False, error=UNEXPECTED_FIX_ERROR)
