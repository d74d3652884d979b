"""
Dashboard configuration storage.

Persists two documents:
- the dashboard configuration (pages, providers, base queries)
- the user-override query library, kept apart so removing an override
  reverts to the base query

Both are plain YAML/JSON files. Every write is synchronous and complete
before the call returns.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from podscope.config.defaults import default_dashboard
from podscope.config.loader import read_data_file, write_data_file
from podscope.config.schema import DashboardConfig, PageConfig, QueryLibrary
from podscope.core.errors import ConfigurationError, NotFoundError, ValidationError
from podscope.queries.library import merge_libraries

logger = structlog.get_logger()

USER_QUERIES_KEY = "userQueries"


@dataclass(frozen=True)
class ImportResult:
    success: bool
    error: str | None = None


class DashboardStorage:
    """File-backed store for the dashboard config and user queries."""

    def __init__(self, config_path: Path, user_queries_path: Path) -> None:
        self.config_path = Path(config_path)
        self.user_queries_path = Path(user_queries_path)

    # === Dashboard configuration ===

    def load_stored_config(self) -> DashboardConfig:
        """Load the stored dashboard config, or the default one if absent or invalid."""
        try:
            data = read_data_file(self.config_path)
            if data:
                return DashboardConfig.from_dict(data)
        except (ConfigurationError, PydanticValidationError) as e:
            logger.error("failed_to_load_dashboard_config", path=str(self.config_path), error=str(e))
        return DashboardConfig.from_dict(default_dashboard())

    def load_config(self) -> DashboardConfig:
        """Load the dashboard config with user queries merged into ``queries``."""
        config = self.load_stored_config()
        user_queries = self.load_user_queries()
        if user_queries:
            config = config.model_copy(update={"queries": merge_libraries(config.queries, user_queries)})
        return config

    def save_config(self, config: DashboardConfig | dict[str, Any]) -> DashboardConfig:
        """Validate and persist the dashboard config."""
        try:
            data = config if isinstance(config, dict) else config.to_dict()
            validated = DashboardConfig.from_dict(data)
        except PydanticValidationError as e:
            logger.error("failed_to_save_dashboard_config", error=str(e))
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        write_data_file(self.config_path, validated.to_dict())
        logger.debug("saved_dashboard_config", path=str(self.config_path))
        return validated

    def load_base_queries(self) -> QueryLibrary:
        return self.load_stored_config().queries

    # ConfigSource protocol used by the history manager. A snapshot holds the
    # stored dashboard plus the user-override queries under USER_QUERIES_KEY.

    def current_config(self) -> dict[str, Any]:
        config = self.load_stored_config().to_dict()
        config[USER_QUERIES_KEY] = self.load_user_queries()
        return config

    def apply_config(self, config: dict[str, Any]) -> None:
        data = copy.deepcopy(config)
        user_queries = data.pop(USER_QUERIES_KEY, None)
        self.save_config(data)
        if user_queries is not None:
            self.save_user_queries(user_queries)

    # === User queries ===

    def load_user_queries(self) -> QueryLibrary:
        try:
            data = read_data_file(self.user_queries_path)
        except ConfigurationError as e:
            logger.error("failed_to_load_user_queries", path=str(self.user_queries_path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            str(namespace): {str(name): str(template) for name, template in queries.items()}
            for namespace, queries in data.items()
            if isinstance(queries, dict)
        }

    def save_user_queries(self, queries: QueryLibrary) -> None:
        write_data_file(self.user_queries_path, queries)

    def save_user_query(self, namespace: str, name: str, template: str) -> None:
        """Add or update a single user query."""
        queries = self.load_user_queries()
        queries.setdefault(namespace, {})[name] = template
        self.save_user_queries(queries)

    def delete_user_query(self, namespace: str, name: str) -> bool:
        """Delete a user query; an emptied namespace is removed too."""
        queries = self.load_user_queries()
        namespace_queries = queries.get(namespace)
        if not namespace_queries or name not in namespace_queries:
            return False

        del namespace_queries[name]
        if not namespace_queries:
            del queries[namespace]
        self.save_user_queries(queries)
        return True

    # === Import / export ===

    def export_config(self) -> str:
        return json.dumps(self.load_config().to_dict(), indent=2)

    def import_config(self, text: str) -> ImportResult:
        """Validate and store a JSON (or YAML) dashboard document."""
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                return ImportResult(success=False, error=f"Invalid JSON: {e}")
        if not isinstance(data, dict):
            return ImportResult(success=False, error="Configuration must be an object")
        try:
            self.save_config(data)
        except ConfigurationError as e:
            return ImportResult(success=False, error=e.message)
        return ImportResult(success=True)

    def reset_to_defaults(self) -> DashboardConfig:
        """Drop stored config and user queries."""
        for path in (self.config_path, self.user_queries_path):
            if path.exists():
                path.unlink()
        logger.info("config_reset_to_defaults")
        return DashboardConfig.from_dict(default_dashboard())

    # === Pages ===

    def add_page(self, page: PageConfig | dict[str, Any]) -> DashboardConfig:
        config = self.load_stored_config()
        new_page = page if isinstance(page, PageConfig) else PageConfig.model_validate(page)
        if config.get_page(new_page.id) is not None:
            raise ValidationError(f"Page already exists: {new_page.id}", {"page": new_page.id})
        config.pages.append(new_page)
        return self.save_config(config)

    def update_page(self, page_id: str, updates: dict[str, Any]) -> DashboardConfig:
        config = self.load_stored_config()
        data = config.to_dict()
        for page in data["pages"]:
            if page["id"] == page_id:
                page.update(updates)
                return self.save_config(data)
        raise NotFoundError(f"Page not found: {page_id}", {"page": page_id})

    def delete_page(self, page_id: str) -> DashboardConfig:
        config = self.load_stored_config()
        if config.get_page(page_id) is None:
            raise NotFoundError(f"Page not found: {page_id}", {"page": page_id})
        if len(config.pages) <= 1:
            raise ValidationError("Cannot delete the last page", {"page": page_id})
        config.pages = [p for p in config.pages if p.id != page_id]
        return self.save_config(config)
