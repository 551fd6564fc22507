"""Configuration management for clipstash."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError, ConfigWriteError
from .models import ClipstashConfig
from .resolver import ENV_PREFIX, flatten_for_env, parse_env_overrides, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.clipstash/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # clipstash configuration file
    # Generated automatically; manage via `clipstash config edit` or `clipstash config set`.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> ClipstashConfig:
        """Load configuration data from disk, applying precedence rules."""
        if ensure_file:
            self.ensure_exists()

        env_data: Mapping[str, str] | None = None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env

        return resolve_with_precedence(
            defaults=ClipstashConfig(),
            file_overrides=self._read_file(),
            env_overrides=parse_env_overrides(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored on disk."""
        return self._read_file()

    def save(self, config: ClipstashConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, ClipstashConfig):
            data = config.model_dump(mode="json")
        else:
            data = dict(config)
        self._write_file(data)

    def set_value(self, key: str, value: Any) -> ClipstashConfig:
        """Assign a dotted ``key`` in the config file after validating the result.

        Args:
            key: Dotted path such as ``history.max_items``.
            value: Parsed value to store.

        Returns:
            ClipstashConfig: Configuration resolved from the updated file contents.

        Raises:
            ConfigError: If the key is malformed or the resulting config is invalid.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("KEY must specify a dotted path such as 'history.max_items'.")

        file_data = self._read_file()
        node = file_data
        for segment in segments[:-1]:
            existing = node.setdefault(segment, {})
            if not isinstance(existing, dict):
                raise ConfigError(
                    f"Cannot assign into '{segment}' because it is not a mapping in the config file."
                )
            node = existing
        node[segments[-1]] = value

        resolved = resolve_with_precedence(defaults=ClipstashConfig(), file_overrides=file_data)
        self._write_file(file_data)
        return resolved

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(ClipstashConfig().model_dump(mode="json"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")

        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        serialized = yaml.safe_dump(dict(data), sort_keys=False)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(
                _CONFIG_HEADER + f"# Last updated: {stamp}\n" + serialized, encoding="utf-8"
            )
        except OSError as exc:
            raise ConfigWriteError(f"Unable to write {self._config_path}: {exc}") from exc


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ClipstashConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "parse_env_overrides",
    "ENV_PREFIX",
    "ConfigError",
    "ConfigWriteError",
]
