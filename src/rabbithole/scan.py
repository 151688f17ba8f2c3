"""Builds the scan report from npm audit, npm outdated and the registry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from rabbithole.audit import run_audit
from rabbithole.config import Config
from rabbithole.manifest import ManifestStore
from rabbithole.models import ScanReport
from rabbithole.outdated import get_outdated
from rabbithole.registry import get_multiple_package_metadata

logger = logging.getLogger(__name__)


def build_scan_report(store: ManifestStore, config: Config | None = None) -> ScanReport:
    """Collect and merge every dependency-health signal for a project.

    npm audit and npm outdated run in parallel, then registry metadata is
    fetched for every declared dependency.

    Raises:
        ManifestError: If package.json is missing or unreadable.
    """
    config = config or Config()

    # Fatal precondition; everything below degrades instead of raising
    names = store.all_dependency_names()

    with ThreadPoolExecutor(max_workers=2) as executor:
        audit_future = executor.submit(
            run_audit,
            cwd=store.project_dir,
            npm=config.npm_command,
            timeout=config.command_timeout,
        )
        outdated_future = executor.submit(
            get_outdated,
            store,
            npm=config.npm_command,
            timeout=config.command_timeout,
        )
        audit = audit_future.result()
        outdated = outdated_future.result()

    logger.debug("Fetching registry metadata for %d packages", len(names))
    metadata = get_multiple_package_metadata(
        names,
        base_url=config.registry_url,
        timeout=config.request_timeout,
    )

    return ScanReport.from_sources(audit, outdated, metadata)
