"""Install packages at their latest version, one at a time.

Each install rewrites package.json, so installs never run concurrently.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path

from rabbithole.manifest import ManifestError, ManifestStore
from rabbithole.models import UNKNOWN_VERSION, DependencyKind, UpdateOptions, UpdateResult
from rabbithole.runner import run_tool

logger = logging.getLogger(__name__)

PEER_CONFLICT_REASON = "Peer dependency conflict (use --force to bypass)"
NOT_FOUND_REASON = "Package not found in registry"
PERMISSION_REASON = "Permission denied"
NETWORK_REASON = "Network error"
UNKNOWN_REASON = "Unknown error"

_NPM_ERROR_PREFIX = re.compile(r"npm (ERR!|error)\s*")

ProgressCallback = Callable[[UpdateResult, int, int], None]


def extract_error_reason(stderr: str) -> str:
    """Classify an npm install failure from its error output."""
    if "ERESOLVE" in stderr:
        return PEER_CONFLICT_REASON
    if "404" in stderr or "Not Found" in stderr:
        return NOT_FOUND_REASON
    if "EACCES" in stderr:
        return PERMISSION_REASON
    if "ETIMEDOUT" in stderr or "ENOTFOUND" in stderr:
        return NETWORK_REASON

    for line in stderr.splitlines():
        if "npm ERR!" in line or "npm error" in line:
            return _NPM_ERROR_PREFIX.sub("", line, count=1).strip()

    return UNKNOWN_REASON


def _safe_declared_version(store: ManifestStore, name: str) -> str:
    try:
        return store.declared_version(name)
    except ManifestError as e:
        logger.warning("Cannot read declared version of %s: %s", name, e)
        return UNKNOWN_VERSION


def _safe_kind(store: ManifestStore, name: str) -> DependencyKind:
    try:
        return store.kind_of(name)
    except ManifestError:
        return DependencyKind.DIRECT


def build_install_command(
    name: str, options: UpdateOptions, kind: DependencyKind, npm: str = "npm"
) -> list[str]:
    """npm install arguments for one package."""
    command = [npm, "install", f"{name}@latest"]
    command.append("--save-dev" if kind is DependencyKind.DEV else "--save")
    if options.exact:
        command.append("--save-exact")
    if options.force:
        command.append("--legacy-peer-deps")
    return command


def update_package(
    name: str,
    options: UpdateOptions,
    store: ManifestStore,
    npm: str = "npm",
    timeout: float | None = None,
) -> UpdateResult:
    """Install the latest version of a package and report the version change.

    A failed install leaves new_version equal to previous_version.
    """
    previous_version = _safe_declared_version(store, name)
    command = build_install_command(name, options, _safe_kind(store, name), npm=npm)

    result = run_tool(command, cwd=store.project_dir, timeout=timeout)

    if result.succeeded:
        return UpdateResult(
            name=name,
            previous_version=previous_version,
            new_version=_safe_declared_version(store, name),
            success=True,
        )

    if result.stderr:
        reason = extract_error_reason(result.stderr)
    else:
        reason = result.error or UNKNOWN_REASON
    logger.info("Update of %s failed: %s", name, reason)

    return UpdateResult(
        name=name,
        previous_version=previous_version,
        new_version=previous_version,
        success=False,
        error=reason,
    )


def update_packages(
    names: list[str],
    options: UpdateOptions,
    store: ManifestStore,
    on_progress: ProgressCallback | None = None,
    npm: str = "npm",
    timeout: float | None = None,
) -> list[UpdateResult]:
    """Update packages sequentially, reporting (result, index, total) after each."""
    results: list[UpdateResult] = []
    total = len(names)

    for index, name in enumerate(names):
        result = update_package(name, options, store, npm=npm, timeout=timeout)
        results.append(result)
        if on_progress is not None:
            on_progress(result, index, total)

    return results
