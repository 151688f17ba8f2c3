"""Pytest configuration for rabbithole tests."""

from pathlib import Path

import pytest
from helpers import write_manifest

from rabbithole.manifest import ManifestStore


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project directory with a small package.json."""
    write_manifest(
        tmp_path,
        {
            "name": "demo",
            "dependencies": {"express": "4.18.0", "lodash": "^4.17.20"},
            "devDependencies": {"vitest": "1.0.0", "storybook": "7.6.0"},
        },
    )
    return tmp_path


@pytest.fixture
def store(project: Path) -> ManifestStore:
    return ManifestStore(project)
