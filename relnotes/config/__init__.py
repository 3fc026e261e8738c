"""Configuration module."""

from .labels import (
    LabelDefinition,
    LabelConfig,
    DEFAULT_LABEL_DEFINITION,
    SEMVER_KEYS,
    resolve_labels,
    get_version_map,
    get_changelog_titles,
)
from .settings import (
    Config,
    get_config,
    load_json_config,
    find_config_file,
    create_sample_config,
)

__all__ = [
    "LabelDefinition",
    "LabelConfig",
    "DEFAULT_LABEL_DEFINITION",
    "SEMVER_KEYS",
    "resolve_labels",
    "get_version_map",
    "get_changelog_titles",
    "Config",
    "get_config",
    "load_json_config",
    "find_config_file",
    "create_sample_config",
]
