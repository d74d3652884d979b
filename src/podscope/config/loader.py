"""
Dashboard configuration file loading.

Search order:
1. Explicit path (--config flag or PODSCOPE_CONFIG_PATH)
2. .podscope/dashboard.yaml (project root)
3. ~/.podscope/dashboard.yaml (user home)
4. Built-in default dashboard
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from podscope.config.defaults import default_dashboard
from podscope.config.schema import DashboardConfig
from podscope.core.errors import ConfigurationError

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".podscope"
CONFIG_FILE_NAME = "dashboard.yaml"


def get_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the dashboard configuration file to use.

    Returns:
        Path to config file or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        return None

    cwd_config = Path.cwd() / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME
    if home_config.exists():
        return home_config

    return None


def read_data_file(path: Path) -> Any:
    """Read a YAML or JSON file (chosen by suffix). Missing or empty files read as None."""
    if not path.exists():
        return None
    text = path.read_text()
    if not text.strip():
        return None
    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not parse {path}", {"path": str(path), "error": str(exc)}) from exc


def write_data_file(path: Path, data: Any) -> None:
    """Write data as YAML or JSON (chosen by suffix), creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".json":
        path.write_text(json.dumps(data, indent=2, sort_keys=False) + "\n")
    else:
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


class ConfigLoader:
    """Loads the dashboard configuration from file or defaults."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or get_config_path()

    def load(self) -> DashboardConfig:
        """Load configuration from file, falling back to the default dashboard."""
        if self.config_path and self.config_path.exists():
            return self._load_from_file(self.config_path)
        return DashboardConfig.from_dict(default_dashboard())

    def _load_from_file(self, path: Path) -> DashboardConfig:
        try:
            data = read_data_file(path) or {}
            config = DashboardConfig.from_dict(data)
            logger.debug("loaded_config", path=str(path))
            return config
        except (ConfigurationError, PydanticValidationError) as e:
            logger.warning("failed_to_load_config", path=str(path), error=str(e))
            return DashboardConfig.from_dict(default_dashboard())

    def save(self, config: DashboardConfig, path: Path | None = None) -> Path:
        """Save configuration to file."""
        target_path = path or self.config_path or (Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME)
        write_data_file(target_path, config.to_dict())
        logger.info("saved_config", path=str(target_path))
        return target_path


def load_config(path: str | Path | None = None) -> DashboardConfig:
    """
    Convenience function to load the dashboard configuration.

    Args:
        path: Optional explicit config file path

    Returns:
        DashboardConfig instance
    """
    config_path = Path(path) if path else get_config_path()
    return ConfigLoader(config_path).load()
