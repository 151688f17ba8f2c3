"""User configuration management.

Persists user preferences to ~/.config/rabbithole/config.toml
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

# tomli-w for writing (tomllib is read-only)
import tomli_w

# tomllib is stdlib in 3.11+, use tomli as fallback for 3.10
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found,no-redef]

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "rabbithole"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"


@dataclass
class Config:
    """User configuration settings."""

    registry_url: str = DEFAULT_REGISTRY_URL
    npm_command: str = "npm"
    request_timeout: float = 10.0
    # None lets npm run to completion
    command_timeout: float | None = None
    exact: bool = True

    # File path for this config (not persisted)
    _path: Path = field(default=DEFAULT_CONFIG_PATH, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization.

        TOML has no null, so an unset command_timeout is left out.
        """
        data: dict[str, Any] = {
            "registry_url": self.registry_url,
            "npm_command": self.npm_command,
            "request_timeout": self.request_timeout,
            "exact": self.exact,
        }
        if self.command_timeout is not None:
            data["command_timeout"] = self.command_timeout
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> Config:
        """Create config from dictionary."""
        timeout = data.get("command_timeout")
        return cls(
            registry_url=str(data.get("registry_url", DEFAULT_REGISTRY_URL)).rstrip("/"),
            npm_command=data.get("npm_command", "npm"),
            request_timeout=float(data.get("request_timeout", 10.0)),
            command_timeout=float(timeout) if timeout is not None else None,
            exact=bool(data.get("exact", True)),
            _path=path or DEFAULT_CONFIG_PATH,
        )

    def save(self) -> None:
        """Save configuration to file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "wb") as f:
            tomli_w.dump(self.to_dict(), f)

    def update(self, **kwargs: Any) -> None:
        """Update config values and save."""
        for key, value in kwargs.items():
            if hasattr(self, key) and not key.startswith("_"):
                setattr(self, key, value)
        self.save()


def config_keys() -> list[str]:
    """Names of the user-settable keys."""
    return [f.name for f in fields(Config) if not f.name.startswith("_")]


def coerce_value(key: str, raw: str) -> Any:
    """Convert a command-line string to the type of a config key.

    Raises:
        ValueError: If the key is unknown or the value does not fit its type.
    """
    if key not in config_keys():
        raise ValueError(f"Unknown config key: {key}")
    if key == "exact":
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Expected a boolean for {key}, got {raw!r}")
    if key == "request_timeout":
        return float(raw)
    if key == "command_timeout":
        return None if raw.strip().lower() in ("", "none") else float(raw)
    if key == "registry_url":
        return raw.rstrip("/")
    return raw


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file.

    Args:
        path: Optional custom config path. Defaults to ~/.config/rabbithole/config.toml

    Returns:
        Config object with loaded or default settings.
    """
    config_path = path or DEFAULT_CONFIG_PATH

    if not config_path.exists():
        # Return defaults, don't create file until save()
        return Config(_path=config_path)

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        return Config.from_dict(data, path=config_path)
    except (tomllib.TOMLDecodeError, OSError, TypeError, ValueError) as e:
        # If config is corrupt, return defaults but preserve path
        print(f"Warning: Could not load config from {config_path}: {e}", file=sys.stderr)
        return Config(_path=config_path)
