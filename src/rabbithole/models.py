"""Value objects shared by the scan and update flows.

Every scan or update invocation builds fresh instances; nothing here is
persisted or shared between runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

MISSING_VERSION = "MISSING"
UNKNOWN_VERSION = "unknown"
UNKNOWN_AGE = "unknown"

_LEADING_NON_DIGITS = re.compile(r"^[^0-9]*")


class Severity(str, Enum):
    """Advisory severity as reported by npm audit."""

    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank, critical first."""
        return SEVERITY_ORDER.index(self)


SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MODERATE,
    Severity.LOW,
    Severity.INFO,
)

# Unrecognized severities sort after info
UNKNOWN_SEVERITY_RANK = len(SEVERITY_ORDER)


def severity_rank(severity: str) -> int:
    """Return the sort rank for a raw severity string."""
    try:
        return Severity(severity).rank
    except ValueError:
        return UNKNOWN_SEVERITY_RANK


def empty_summary() -> dict[str, int]:
    return {level.value: 0 for level in SEVERITY_ORDER}


@dataclass(frozen=True)
class FixTarget:
    """Specific remediation named by npm audit (e.g. a major bump of a parent)."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


FixAvailable = Union[bool, FixTarget]


@dataclass
class Vulnerability:
    """A single npm audit finding."""

    name: str
    severity: str
    title: str
    url: str
    affected_range: str
    fix_available: FixAvailable = False

    @property
    def is_fixable(self) -> bool:
        return isinstance(self.fix_available, FixTarget) or self.fix_available is True

    def to_dict(self) -> dict[str, Any]:
        fix: Any = self.fix_available
        if isinstance(fix, FixTarget):
            fix = {"name": fix.name, "version": fix.version}
        return {
            "name": self.name,
            "severity": self.severity,
            "title": self.title,
            "url": self.url,
            "range": self.affected_range,
            "fixAvailable": fix,
        }


@dataclass
class AuditResult:
    """Normalized npm audit report, sorted critical first."""

    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=empty_summary)

    @property
    def total(self) -> int:
        return len(self.vulnerabilities)

    @property
    def fixable_count(self) -> int:
        return sum(1 for v in self.vulnerabilities if v.is_fixable)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "summary": dict(self.summary),
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
        }


class DependencyKind(str, Enum):
    """Where a package is declared in package.json."""

    DIRECT = "direct"
    DEV = "dev"


def leading_major(version: str) -> int | None:
    """Leading numeric component of a version string, ignoring range prefixes."""
    head = _LEADING_NON_DIGITS.sub("", version).split(".")[0]
    match = re.match(r"\d+", head)
    return int(match.group()) if match else None


def is_major_update(current: str, latest: str) -> bool:
    """True when the latest major version is greater than the current one."""
    current_major = leading_major(current)
    latest_major = leading_major(latest)
    if current_major is None or latest_major is None:
        return False
    return latest_major > current_major


@dataclass
class OutdatedPackage:
    """A package reported by npm outdated."""

    name: str
    current: str
    wanted: str
    latest: str
    location: str
    kind: DependencyKind

    @property
    def is_major(self) -> bool:
        return is_major_update(self.current, self.latest)

    @property
    def is_dev(self) -> bool:
        return self.kind is DependencyKind.DEV

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "current": self.current,
            "wanted": self.wanted,
            "latest": self.latest,
            "location": self.location,
            "kind": self.kind.value,
        }


@dataclass
class OutdatedResult:
    """Outdated packages, direct dependencies first then alphabetical."""

    packages: list[OutdatedPackage] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.packages)

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.packages]

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "packages": [p.to_dict() for p in self.packages]}


@dataclass
class RegistryMetadata:
    """Registry facts about the latest published version of a package."""

    name: str
    deprecated: str | bool = False
    last_publish_date: str = ""
    last_publish_age: str = UNKNOWN_AGE
    is_stale: bool = False

    @property
    def is_deprecated(self) -> bool:
        return self.deprecated is not False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "deprecated": self.deprecated,
            "lastPublishDate": self.last_publish_date,
            "lastPublishAge": self.last_publish_age,
            "isStale": self.is_stale,
        }


@dataclass
class ScanReport:
    """Everything the scan command found."""

    audit: AuditResult
    outdated: OutdatedResult
    deprecated: list[RegistryMetadata] = field(default_factory=list)
    stale: list[RegistryMetadata] = field(default_factory=list)

    @classmethod
    def from_sources(
        cls,
        audit: AuditResult,
        outdated: OutdatedResult,
        metadata: list[RegistryMetadata],
    ) -> ScanReport:
        """Merge the three sources.

        A deprecated package is never also listed as stale.
        """
        return cls(
            audit=audit,
            outdated=outdated,
            deprecated=[m for m in metadata if m.is_deprecated],
            stale=[m for m in metadata if m.is_stale and not m.is_deprecated],
        )

    @property
    def has_issues(self) -> bool:
        return bool(self.audit.total or self.outdated.total or self.deprecated or self.stale)

    def to_dict(self) -> dict[str, Any]:
        return {
            "audit": self.audit.to_dict(),
            "outdated": self.outdated.to_dict(),
            "deprecated": [m.to_dict() for m in self.deprecated],
            "stale": [m.to_dict() for m in self.stale],
        }


@dataclass
class UpdateOptions:
    """Flags for the update command."""

    all: bool = False
    exact: bool = True
    force: bool = False
    fix: bool = False


@dataclass
class UpdateResult:
    """Outcome of installing one package at its latest version."""

    name: str
    previous_version: str
    new_version: str
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "previousVersion": self.previous_version,
            "newVersion": self.new_version,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class AuditFixResult:
    """Outcome of npm audit fix."""

    success: bool
    added: int = 0
    removed: int = 0
    changed: int = 0
    fixed_vulnerabilities: int = 0
    remaining_vulnerabilities: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "added": self.added,
            "removed": self.removed,
            "changed": self.changed,
            "fixedVulnerabilities": self.fixed_vulnerabilities,
            "remainingVulnerabilities": self.remaining_vulnerabilities,
            "error": self.error,
        }
