"""Configuration loading and persistence for tagsync."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import TagsyncConfig
from .resolver import LEGACY_ENV_KEYS, flatten_for_env, resolve_with_precedence
from .resolver import env_overrides as parse_env

DEFAULT_CONFIG_PATH = Path("~/.tagsync/config.yaml")
_HEADER_LINES = (
    "# tagsync configuration file",
    "# Edit with `tagsync config edit` or `tagsync config set KEY --value VALUE`.",
)


class ConfigManager:
    """Read, validate, and write the YAML configuration file.

    Effective settings combine, from weakest to strongest: model defaults,
    the YAML file, environment variables, and explicit CLI overrides.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> TagsyncConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted or nested overrides taking precedence over all else.
            include_env: Whether environment variables are consulted.
            ensure_file: Create a default file first when none exists.
            env_overrides: Environment mapping used instead of the process environment.

        Raises:
            ConfigError: If the file is unreadable or a value fails validation.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer: dict[str, Any] | None = None
        if include_env:
            env_layer = parse_env(self._env if env_overrides is None else env_overrides)

        return resolve_with_precedence(
            defaults=TagsyncConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_layer or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the mapping stored in the file without defaults applied."""
        return self._read_file()

    def save(self, config: TagsyncConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to disk, replacing the previous contents."""
        if isinstance(config, TagsyncConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Write a file with default values unless one is already present."""
        if not self._path.exists():
            self._write_file(TagsyncConfig().model_dump(mode="python"))
        return self._path

    def read_text(self) -> str:
        """Return the raw file contents, or an empty string when missing."""
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def _read_file(self) -> dict[str, Any]:
        text = self.read_text()
        if not text:
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file {self._path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return data

    def _write_file(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        lines = [*_HEADER_LINES, f"# Last updated: {stamp}"]
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text("\n".join(lines) + "\n" + body, encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LEGACY_ENV_KEYS",
    "TagsyncConfig",
    "flatten_for_env",
    "resolve_with_precedence",
]
