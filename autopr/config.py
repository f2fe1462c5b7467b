"""Configuration management for autopr.

Two JSON files are merged into one validated ``Config``:

* the global file ``~/.autopr/config.json`` (language, tokens, AI backend)
* the project file ``<git root>/.autopr.json`` (branches, patterns, reviewers)

Environment variables prefixed with ``AUTOPR_`` override both at load time
and are never written back.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from autopr.models import (
    GLOBAL_FIELDS,
    PROJECT_FIELDS,
    Config,
    GlobalConfig,
    ProjectConfig,
    ReviewerGroup,
    RotationStrategy,
)
from autopr.utils.logger import get_logger
from autopr.utils.shell import get_git_root

logger = get_logger(__name__)

GLOBAL_CONFIG_DIR_NAME = ".autopr"
GLOBAL_CONFIG_FILE_NAME = "config.json"
PROJECT_CONFIG_FILE_NAME = ".autopr.json"
REVIEWER_STATE_FILE_NAME = "reviewer-state.json"
ENV_PREFIX = "AUTOPR_"


class ConfigError(Exception):
    """Configuration error."""
    pass


class NotConfiguredError(ConfigError):
    """Required configuration (such as a GitHub token) is missing."""
    pass


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` through a temporary file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp_path, path)


class ConfigManager:
    """Configuration manager for the global and project JSON files."""

    def __init__(self):
        """Initialize configuration manager."""
        self._config: Optional[Config] = None
        self._global_config_path = Path.home() / GLOBAL_CONFIG_DIR_NAME / GLOBAL_CONFIG_FILE_NAME
        self._project_config_path: Optional[Path] = None

    @property
    def global_config_path(self) -> Path:
        return self._global_config_path

    @property
    def project_config_path(self) -> Path:
        """Project config path at the git root, or the cwd outside a repository."""
        if self._project_config_path is None:
            root = get_git_root() or Path.cwd()
            self._project_config_path = root / PROJECT_CONFIG_FILE_NAME
        return self._project_config_path

    @property
    def reviewer_state_path(self) -> Path:
        return self._global_config_path.parent / REVIEWER_STATE_FILE_NAME

    def _load_json_file(self, path: Path) -> Dict[str, Any]:
        """Load a JSON object from ``path``.

        Args:
            path: Path to JSON file

        Returns:
            Parsed data, or an empty dict when the file does not exist

        Raises:
            ConfigError: If the file cannot be read or is not a JSON object
        """
        if not path.exists():
            return {}

        logger.debug(f"Loading config file: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse JSON file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        return data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides.

        ``AUTOPR_GITHUB_TOKEN`` sets ``github_token``; double underscores
        separate nested keys, so ``AUTOPR_AI__API_KEY`` sets ``ai.api_key``.
        Variables naming unknown top-level keys are ignored.
        """
        known_fields = GLOBAL_FIELDS | PROJECT_FIELDS

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            key_parts = key[len(ENV_PREFIX):].lower().split("__")
            if key_parts[0] not in known_fields:
                logger.debug(f"Ignoring unknown env override: {key}")
                continue

            current = config_data
            for part in key_parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            final_key = key_parts[-1]
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif value.isdigit():
                current[final_key] = int(value)
            else:
                current[final_key] = value

            logger.debug(f"Applied env override: {'.'.join(key_parts)}")

        return config_data

    def load_global_config(self) -> GlobalConfig:
        """Load the per-user configuration.

        Raises:
            ConfigError: If the file is unreadable or invalid
        """
        data = self._load_json_file(self._global_config_path)
        try:
            return GlobalConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid global configuration {self._global_config_path}: {e}")

    def load_project_config(self) -> ProjectConfig:
        """Load the project configuration, or defaults when the file is absent.

        Raises:
            ConfigError: If the file is unreadable or invalid
        """
        path = self.project_config_path
        data = self._load_json_file(path)
        try:
            return ProjectConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid project configuration {path}: {e}")

    def load_config(self) -> Config:
        """Load and merge configuration from all sources.

        Loading order (later sources override earlier):
        1. Model defaults
        2. Global configuration (~/.autopr/config.json)
        3. Project configuration (<git root>/.autopr.json)
        4. Environment variables

        Returns:
            Merged configuration

        Raises:
            ConfigError: If any source is invalid
        """
        global_config = self.load_global_config()
        project_config = self.load_project_config()

        config_data = {
            **global_config.model_dump(mode="json"),
            **project_config.model_dump(mode="json"),
        }
        config_data = self._apply_env_overrides(config_data)

        try:
            self._config = Config.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

        logger.debug("Configuration loaded successfully")
        return self._config

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def reload_config(self) -> Config:
        """Reload configuration from all sources."""
        self._config = None
        self._project_config_path = None
        return self.load_config()

    def save_global_config(self, config: GlobalConfig) -> None:
        """Persist the global configuration.

        Raises:
            ConfigError: If the file cannot be written
        """
        try:
            write_json_atomic(
                self._global_config_path, config.model_dump(mode="json", exclude_none=True)
            )
        except OSError as e:
            raise ConfigError(f"Failed to save global configuration: {e}")
        logger.debug(f"Saved global config: {self._global_config_path}")

    def save_project_config(self, config: ProjectConfig) -> None:
        """Persist the project configuration.

        Raises:
            ConfigError: If the file cannot be written
        """
        try:
            write_json_atomic(
                self.project_config_path, config.model_dump(mode="json", exclude_none=True)
            )
        except OSError as e:
            raise ConfigError(f"Failed to save project configuration: {e}")
        logger.debug(f"Saved project config: {self.project_config_path}")
        self._config = None

    def update_global_config(self, updates: Dict[str, Any]) -> GlobalConfig:
        """Merge ``updates`` into the stored global config and save it."""
        current = self._load_json_file(self._global_config_path)
        try:
            config = GlobalConfig.model_validate({**current, **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid global configuration update: {e}")
        self.save_global_config(config)
        return config

    def update_project_config(self, updates: Dict[str, Any]) -> ProjectConfig:
        """Merge ``updates`` into the stored project config and save it."""
        current = self.load_project_config().model_dump(mode="json", exclude_none=True)
        try:
            config = ProjectConfig.model_validate({**current, **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid project configuration update: {e}")
        self.save_project_config(config)
        return config

    def update_config(self, updates: Dict[str, Any]) -> Config:
        """Split ``updates`` by scope, persist each part, and reload.

        The two writes are independent: if the global write succeeds and the
        project write fails, the global change stays on disk.

        Raises:
            ConfigError: If a key is unknown or a merged result is invalid
        """
        unknown = set(updates) - GLOBAL_FIELDS - PROJECT_FIELDS
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        global_updates = {k: v for k, v in updates.items() if k in GLOBAL_FIELDS}
        project_updates = {k: v for k, v in updates.items() if k in PROJECT_FIELDS}

        if global_updates:
            self.update_global_config(global_updates)
        if project_updates:
            self.update_project_config(project_updates)

        return self.reload_config()

    def get_config_value(self, key: str) -> Any:
        """Get configuration value by dot-separated key.

        Raises:
            ConfigError: If key is not found
        """
        current: Any = self.get_config().model_dump(mode="json")
        try:
            for part in key.split("."):
                current = current[part]
        except (KeyError, TypeError):
            raise ConfigError(f"Configuration key not found: {key}")
        return current

    def set_config_value(self, key: str, value: Any) -> Config:
        """Set a dot-separated key in the file owning its top-level field."""
        key_parts = key.split(".")
        top = key_parts[0]

        if top in GLOBAL_FIELDS:
            current = self._load_json_file(self._global_config_path)
        elif top in PROJECT_FIELDS:
            current = self.load_project_config().model_dump(mode="json", exclude_none=True)
        else:
            raise ConfigError(f"Configuration key not found: {key}")

        node = current
        for part in key_parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[key_parts[-1]] = value

        logger.info(f"Setting configuration: {key}")
        return self.update_config({top: current[top]})

    def create_default_config(self, project: bool = True) -> Path:
        """Create a default configuration file if it does not exist.

        Returns:
            Path to the configuration file
        """
        path = self.project_config_path if project else self._global_config_path
        if path.exists():
            logger.warning(f"Configuration file already exists: {path}")
            return path

        if project:
            self.save_project_config(ProjectConfig())
        else:
            self.save_global_config(GlobalConfig())

        logger.info(f"Default configuration created: {path}")
        return path

    def list_config_files(self) -> Dict[str, Optional[Path]]:
        """List configuration file paths that exist."""
        return {
            "global": self._global_config_path if self._global_config_path.exists() else None,
            "project": self.project_config_path if self.project_config_path.exists() else None,
        }

    # Reviewer groups

    def find_reviewer_group(self, name: str) -> Optional[ReviewerGroup]:
        """Return the named reviewer group, or None."""
        return self.load_project_config().get_reviewer_group(name)

    def list_reviewer_groups(self) -> List[ReviewerGroup]:
        return list(self.load_project_config().reviewer_groups)

    def add_reviewer_group(
        self,
        name: str,
        members: List[str],
        strategy: RotationStrategy = RotationStrategy.ROUND_ROBIN,
    ) -> ReviewerGroup:
        """Add a reviewer group.

        Raises:
            ConfigError: If the group is invalid or the name is taken
        """
        project_config = self.load_project_config()
        if project_config.get_reviewer_group(name) is not None:
            raise ConfigError(f"Reviewer group '{name}' already exists")

        try:
            group = ReviewerGroup(name=name, members=members, rotation_strategy=strategy)
        except ValidationError as e:
            raise ConfigError(f"Invalid reviewer group: {e}")

        project_config.reviewer_groups.append(group)
        self.save_project_config(project_config)
        return group

    def update_reviewer_group(
        self,
        name: str,
        members: Optional[List[str]] = None,
        strategy: Optional[RotationStrategy] = None,
    ) -> Optional[ReviewerGroup]:
        """Update members and/or strategy of a group.

        Returns:
            The updated group, or None if no group has that name
        """
        project_config = self.load_project_config()
        for index, group in enumerate(project_config.reviewer_groups):
            if group.name != name:
                continue

            data = group.model_dump()
            if members is not None:
                data["members"] = members
            if strategy is not None:
                data["rotation_strategy"] = strategy
            try:
                updated = ReviewerGroup.model_validate(data)
            except ValidationError as e:
                raise ConfigError(f"Invalid reviewer group: {e}")

            project_config.reviewer_groups[index] = updated
            self.save_project_config(project_config)
            return updated

        return None

    def remove_reviewer_group(self, name: str) -> bool:
        """Remove a group. Returns False if no group has that name."""
        project_config = self.load_project_config()
        remaining = [g for g in project_config.reviewer_groups if g.name != name]
        if len(remaining) == len(project_config.reviewer_groups):
            return False

        project_config.reviewer_groups = remaining
        self.save_project_config(project_config)
        return True


def require_github_token(config: Config) -> str:
    """Return the GitHub token, refusing to guess when none is stored.

    Raises:
        NotConfiguredError: If no token is configured
    """
    if not config.github_token:
        raise NotConfiguredError(
            "GitHub token is not configured. Run 'autopr init --token <token>' "
            "or set AUTOPR_GITHUB_TOKEN."
        )
    return config.github_token


config_manager = ConfigManager()


def get_config() -> Config:
    """Get current configuration."""
    return config_manager.get_config()


def reload_config() -> Config:
    """Reload configuration from all sources."""
    return config_manager.reload_config()
