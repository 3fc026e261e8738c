"""Configuration management for relnotes."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Any, Dict, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .labels import LabelConfig, resolve_labels


logger = logging.getLogger(__name__)

DEFAULT_RELEASE_NOTES_BOTS = [
    "renovate-bot",
    "renovate[bot]",
    "renovate-pro[bot]",
    "dependabot[bot]",
]


class Config(BaseSettings):
    """Configuration settings for relnotes."""

    model_config = SettingsConfigDict(env_prefix="RELNOTES_", case_sensitive=False, extra="ignore")

    gitlab_host: str = "https://gitlab.com"
    gitlab_token: Optional[str] = None
    project: Optional[str] = None
    config_file: Optional[str] = None

    # User overrides, merged over the default label table by resolve_labels()
    labels: Dict[str, List[Dict[str, Any]]] = {}
    only_publish_with_release_label: bool = False
    skip_release_labels: List[str] = []
    release_notes_bots: List[str] = list(DEFAULT_RELEASE_NOTES_BOTS)
    workers: int = 4
    confirm_matches: bool = True

    @field_validator('gitlab_host')
    @classmethod
    def normalize_gitlab_host(cls, v):
        """Ensure GitLab host has proper protocol."""
        if v and not v.startswith(('http://', 'https://')):
            v = f"https://{v}"
        return v.rstrip('/') if v else v

    @field_validator('workers')
    @classmethod
    def positive_workers(cls, v):
        if v < 1:
            raise ValueError("workers must be at least 1")
        return v

    def resolved_labels(self) -> LabelConfig:
        """Label table with the user overrides applied."""
        return resolve_labels(self.labels)


def load_json_config(config_path: str) -> dict:
    """Load configuration from JSON file.

    Args:
        config_path: Path to JSON configuration file

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        raise ValueError(f"Error loading config file {config_path}: {e}")


CONFIG_SEARCH_PATHS = [
    "relnotes.json",
    ".relnotes.json",
    "~/.relnotes.json",
    "~/.config/relnotes/config.json",
]


def find_config_file() -> Optional[str]:
    """First existing file of CONFIG_SEARCH_PATHS, working directory first."""
    for candidate in CONFIG_SEARCH_PATHS:
        path = Path(candidate).expanduser()
        if path.is_file():
            return str(path)
    return None


def get_config(config_file: Optional[str] = None) -> Config:
    """Load configuration from environment variables and/or JSON file.

    Args:
        config_file: Optional path to JSON config file

    Returns:
        Configuration object
    """
    config_data = {}

    json_config_path = config_file or find_config_file()
    if json_config_path:
        try:
            config_data.update(load_json_config(json_config_path))
            config_data['config_file'] = json_config_path
        except ValueError as e:
            # Environment variables still apply
            logger.warning(str(e))

    # Environment variables override JSON config
    for name in Config.model_fields:
        if os.getenv(f"RELNOTES_{name.upper()}") is not None:
            config_data.pop(name, None)

    return Config(**config_data)


def create_sample_config(path: str = "relnotes.json") -> None:
    """Create a sample configuration file.

    Args:
        path: Path where to create the sample config file
    """
    sample_config = {
        "gitlab_host": "https://gitlab.com",
        "gitlab_token": "your-gitlab-token-here",
        "project": "group/project-name",
        "only_publish_with_release_label": False,
        "labels": {
            "minor": [{"name": "minor", "title": "🚀  Enhancement"}],
            "dependencies": [{"name": "dependencies", "title": "🔩  Dependency Updates"}],
        },
    }

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2, ensure_ascii=False)

    print(f"Sample configuration file created at: {path}")
    print("Please edit the file and add your GitLab token and project details.")
