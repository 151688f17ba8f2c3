"""npm outdated normalization."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rabbithole.manifest import ManifestError, ManifestStore
from rabbithole.models import MISSING_VERSION, DependencyKind, OutdatedPackage, OutdatedResult
from rabbithole.runner import run_tool

logger = logging.getLogger(__name__)


def parse_outdated_output(data: Any, dev_names: set[str]) -> OutdatedResult:
    """Normalize a parsed `npm outdated --json` payload.

    The dependency kind comes from package.json's devDependencies, not from
    npm. Direct dependencies sort before dev dependencies, each group by name.
    """
    if not isinstance(data, dict) or not data:
        return OutdatedResult()

    packages: list[OutdatedPackage] = []
    for name, info in data.items():
        if not isinstance(info, dict):
            continue
        packages.append(
            OutdatedPackage(
                name=str(name),
                # declared but never installed
                current=str(info.get("current") or MISSING_VERSION),
                wanted=str(info.get("wanted", "")),
                latest=str(info.get("latest", "")),
                location=str(info.get("location") or ""),
                kind=DependencyKind.DEV if name in dev_names else DependencyKind.DIRECT,
            )
        )

    packages.sort(key=lambda p: (p.kind is DependencyKind.DEV, p.name))
    return OutdatedResult(packages=packages)


def get_outdated(
    store: ManifestStore,
    cwd: Path | str | None = None,
    npm: str = "npm",
    timeout: float | None = None,
) -> OutdatedResult:
    """Run `npm outdated --json` for the project and classify each package."""
    try:
        dev_names = store.dev_dependency_names()
    except ManifestError as e:
        logger.warning("Cannot check outdated packages: %s", e)
        return OutdatedResult()

    # npm outdated exits 1 when anything is outdated
    result = run_tool([npm, "outdated", "--json"], cwd=cwd or store.project_dir, timeout=timeout)
    if not result.has_output:
        logger.warning("npm outdated produced no output: %s", result.error or result.stderr.strip())
        return OutdatedResult()

    if not result.stdout.strip():
        return OutdatedResult()

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.warning("npm outdated JSON parse error: %s", e)
        return OutdatedResult()

    return parse_outdated_output(data, dev_names)
