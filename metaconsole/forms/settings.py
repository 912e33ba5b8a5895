"""Console project settings loader.

Reads project-specific configuration from .metaconsole.yaml in the project
root, so teams can point the console at their metadata catalog and extend
the system alias table without code changes.

Example .metaconsole.yaml:
    console:
      catalog_path: ./catalog.yaml      # YAML metadata catalog
      env_file: ./.env                  # Loaded before ${VAR} expansion
      system_aliases:                   # Extra stored types per system label
        BigQuery: [GCP, GBQ]
      date_types: [date, datetime, timestamp, datetime2]
      metadata_retry_attempts: 3        # 1 disables retries
      metadata_retry_backoff: 0.5
      log_json: false
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from metaconsole.forms.constants import DATE_TYPES, SYSTEM_ALIASES
from metaconsole.lib.env import expand_options, load_env_file
from metaconsole.lib.resilience import RetryConfig

logger = logging.getLogger(__name__)

SETTINGS_FILE = ".metaconsole.yaml"


@dataclass
class ConsoleSettings:
    """Console configuration settings."""

    # YAML catalog served by the catalog provider
    catalog_path: str | None = None

    # Extra connection types accepted per system label, merged over the
    # built-in alias table
    system_aliases: dict[str, list[str]] = field(default_factory=dict)

    # Column types an effective date column may have
    date_types: list[str] = field(default_factory=lambda: list(DATE_TYPES))

    # Metadata lookup retries; 1 means a single attempt
    metadata_retry_attempts: int = 1
    metadata_retry_backoff: float = 0.5

    # Emit JSON log lines from the command line
    log_json: bool = False

    # .env file loaded before settings are expanded
    env_file: str | None = None

    @classmethod
    def load(cls, project_root: Path | None = None) -> "ConsoleSettings":
        """Load settings from .metaconsole.yaml in project root.

        Args:
            project_root: Project root directory. Defaults to cwd.

        Returns:
            ConsoleSettings with values from config file or defaults.
        """
        root = project_root or Path.cwd()
        config_path = root / SETTINGS_FILE

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            return cls.from_dict(config.get("console", {}), project_root=root)
        except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed %s: %s", config_path, e)
            return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any], project_root: Path | None = None) -> "ConsoleSettings":
        root = project_root or Path.cwd()
        env_file = data.get("env_file")
        if env_file:
            load_env_file(root / env_file)
        data = expand_options(data)

        defaults = cls()
        aliases = data.get("system_aliases") or {}
        return cls(
            catalog_path=data.get("catalog_path", defaults.catalog_path),
            system_aliases={str(k): [str(v) for v in values] for k, values in aliases.items()},
            date_types=[str(t) for t in data.get("date_types", defaults.date_types)],
            metadata_retry_attempts=int(
                data.get("metadata_retry_attempts", defaults.metadata_retry_attempts)
            ),
            metadata_retry_backoff=float(
                data.get("metadata_retry_backoff", defaults.metadata_retry_backoff)
            ),
            log_json=bool(data.get("log_json", defaults.log_json)),
            env_file=env_file,
        )

    def get_catalog_path(self, project_root: Path | None = None) -> Path | None:
        """Get absolute path to the catalog file, if one is configured."""
        if not self.catalog_path:
            return None
        root = project_root or Path.cwd()
        return (root / self.catalog_path).resolve()

    def alias_table(self) -> dict[str, frozenset[str]]:
        """Built-in system aliases extended with the configured ones."""
        table = dict(SYSTEM_ALIASES)
        for label, accepted in self.system_aliases.items():
            table[label] = table.get(label, frozenset()) | frozenset(accepted)
        return table

    def retry_config(self) -> RetryConfig | None:
        """Retry policy for metadata lookups, or None when disabled."""
        if self.metadata_retry_attempts <= 1:
            return None
        return RetryConfig(
            max_attempts=self.metadata_retry_attempts,
            backoff_seconds=self.metadata_retry_backoff,
            retry_exceptions=(OSError, TimeoutError),
        )


# Global settings instance (loaded on first access)
_settings: ConsoleSettings | None = None


def get_settings(reload: bool = False) -> ConsoleSettings:
    """Get the global console settings.

    Args:
        reload: Force reload from config file.

    Returns:
        ConsoleSettings instance.
    """
    global _settings
    if _settings is None or reload:
        _settings = ConsoleSettings.load()
    return _settings
