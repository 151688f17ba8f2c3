"""Read access to the project's package.json.

npm install rewrites package.json, so the store never caches: every query
re-reads the file. The core only ever reads the manifest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rabbithole.models import UNKNOWN_VERSION, DependencyKind

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


class ManifestError(Exception):
    """Raised when package.json is missing or unreadable."""

    pass


class ManifestStore:
    """Explicit handle on a project's package.json.

    Example:
        store = ManifestStore(Path.cwd())
        if store.exists():
            version = store.declared_version("express")
    """

    def __init__(self, project_dir: Path | str | None = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self.path = self.project_dir / MANIFEST_NAME

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, Any]:
        """Read and parse package.json.

        Raises:
            ManifestError: If the file is missing, unreadable or not a JSON object.
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ManifestError(f"No {MANIFEST_NAME} found in {self.project_dir}")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestError(f"Could not read {self.path}: {e}")
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON in {self.path}: {e}")

        if not isinstance(data, dict):
            raise ManifestError(f"{self.path} does not contain a JSON object")
        return data

    def _section(self, data: dict[str, Any], key: str) -> dict[str, str]:
        section = data.get(key) or {}
        if not isinstance(section, dict):
            logger.warning("Ignoring malformed %r section in %s", key, self.path)
            return {}
        return {str(name): str(spec) for name, spec in section.items()}

    def dependencies(self) -> dict[str, str]:
        return self._section(self.load(), "dependencies")

    def dev_dependencies(self) -> dict[str, str]:
        return self._section(self.load(), "devDependencies")

    def dev_dependency_names(self) -> set[str]:
        return set(self.dev_dependencies())

    def all_dependency_names(self) -> list[str]:
        """Declared names, dependencies first, in file order."""
        data = self.load()
        names = list(self._section(data, "dependencies"))
        names += [n for n in self._section(data, "devDependencies") if n not in names]
        return names

    def declared_version(self, name: str) -> str:
        """Version spec as written in package.json, or "unknown" if not declared."""
        data = self.load()
        deps = self._section(data, "dependencies")
        if name in deps:
            return deps[name]
        return self._section(data, "devDependencies").get(name, UNKNOWN_VERSION)

    def kind_of(self, name: str) -> DependencyKind:
        if name in self.dev_dependencies():
            return DependencyKind.DEV
        return DependencyKind.DIRECT
