"""
Configuration loader — reads stackup.yml into a Settings model.

The file is optional: a project without one gets the default layout.
It is searched for from the current directory upward so commands can be
run from any subdirectory of the project.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from stackup.core.errors import StackupError

logger = logging.getLogger(__name__)

# Default config filename
PROJECT_CONFIG_FILE = "stackup.yml"


class ConfigError(StackupError):
    """Raised when stackup.yml is invalid or unreadable."""


class SyncSettings(BaseModel):
    """File synchronization session settings."""

    service: str = "synchro"            # compose service hosting the sync target
    target_path: str = "/var/www/html"  # path inside that container
    poll_interval: float = 2.0          # first wait between status polls
    max_poll_interval: float = 10.0     # backoff ceiling
    ignore: list[str] = Field(default_factory=lambda: ["/var", "/pub/static", "/generated"])


class Settings(BaseModel):
    """Project layout and behaviour knobs."""

    name: str = ""                      # compose project name suffix (default: dir name)
    compose_file: str = "docker-compose.yml"
    env_file: str = "docker/local/.env"
    env_template: str = "docker/local/.env.dist"
    nginx_conf: str = "docker/local/nginx.conf"
    php_dockerfile: str = "docker/php/Dockerfile"
    configure_sections: list[str] = Field(default_factory=lambda: ["mysql"])
    database_service: str = "mysql"
    sync: SyncSettings = Field(default_factory=SyncSettings)


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for stackup.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to stackup.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate stackup.yml.

    Args:
        path: Explicit path to the file. If None, defaults are returned.

    Raises:
        ConfigError: If the file exists but is invalid.
    """
    if path is None:
        logger.debug("No %s, using default settings", PROJECT_CONFIG_FILE)
        return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings


def project_root(config_path: Path) -> Path:
    """Get the project root directory from a config file path."""
    return config_path.parent.resolve()
