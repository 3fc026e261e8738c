"""Label definitions and the default label table."""

import logging
from typing import Dict, List, Mapping, Optional, Any

from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

# Severity keys, in the priority order used to classify a commit
MAJOR = "major"
MINOR = "minor"
PATCH = "patch"
SKIP_RELEASE = "skip-release"
RELEASE = "release"
PRERELEASE = "prerelease"

SEMVER_KEYS = [MAJOR, MINOR, PATCH, SKIP_RELEASE, RELEASE, PRERELEASE]


class LabelDefinition(BaseModel):
    """A label the project uses to classify merge requests."""

    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None


LabelConfig = Dict[str, List[LabelDefinition]]


DEFAULT_LABEL_DEFINITION: Mapping[str, List[LabelDefinition]] = {
    MAJOR: [LabelDefinition(
        name="major",
        title="💥  Breaking Change",
        description="Increment the major version when merged",
        color="#C5000B",
    )],
    MINOR: [LabelDefinition(
        name="minor",
        title="🚀  Enhancement",
        description="Increment the minor version when merged",
        color="#F1A60E",
    )],
    PATCH: [LabelDefinition(
        name="patch",
        title="🐛  Bug Fix",
        description="Increment the patch version when merged",
        color="#870048",
    )],
    SKIP_RELEASE: [LabelDefinition(
        name="skip-release",
        description="Preserve the current version when merged",
        color="#bf5416",
    )],
    RELEASE: [LabelDefinition(
        name="release",
        description="Create a release when this merge request is merged",
        color="#007f70",
    )],
    PRERELEASE: [LabelDefinition(
        name="prerelease",
        title="🚧  Prerelease",
        description="Create a pre-release version when merged",
        color="#C4E76C",
    )],
    "internal": [LabelDefinition(
        name="internal",
        title="🏠  Internal",
        description="Changes only affect the internal API",
        color="#696969",
    )],
    "documentation": [LabelDefinition(
        name="documentation",
        title="📝  Documentation",
        description="Changes only affect the documentation",
        color="#cfd3d7",
    )],
}


def _parse_definitions(key: str, definitions: Any) -> List[LabelDefinition]:
    if not isinstance(definitions, list):
        logger.warning(f"Ignoring label config '{key}': expected a list of label definitions")
        return []

    result = []
    for definition in definitions:
        if isinstance(definition, LabelDefinition):
            result.append(definition)
            continue
        try:
            result.append(LabelDefinition.model_validate(definition))
        except ValidationError as e:
            logger.warning(f"Ignoring invalid label definition under '{key}': {e}")
    return result


def resolve_labels(overrides: Optional[Mapping[str, Any]] = None) -> LabelConfig:
    """Deep-merge user label overrides over the default label table.

    User definitions are merged over the default list of their key by
    position, so `{"major": [{"name": "Version: Major"}]}` keeps the
    default title. Entries past the end of the default list inherit from
    a default definition of the same name, if any. Keys the user declares
    come first, in their order, followed by the untouched default keys.

    Args:
        overrides: Mapping of label key to a list of label definitions

    Returns:
        A new label config; the default table is never modified
    """
    overrides = overrides or {}
    resolved: LabelConfig = {}

    for key, definitions in overrides.items():
        defaults = list(DEFAULT_LABEL_DEFINITION.get(key, []))
        by_name = {d.name: d for d in defaults}
        merged = []
        for index, definition in enumerate(_parse_definitions(key, definitions)):
            base = defaults[index] if index < len(defaults) else by_name.get(definition.name)
            if base is not None:
                definition = base.model_copy(update=definition.model_dump(exclude_unset=True))
            merged.append(definition)
        resolved[key] = merged

    for key, definitions in DEFAULT_LABEL_DEFINITION.items():
        if key not in resolved:
            resolved[key] = [d.model_copy() for d in definitions]

    return resolved


def get_version_map(labels: Optional[Mapping[str, List[LabelDefinition]]] = None) -> Dict[str, List[str]]:
    """Map each severity key to the label names that trigger it.

    Keys that are not severity keys (custom sections such as
    ``documentation``) are left out.
    """
    if labels is None:
        labels = DEFAULT_LABEL_DEFINITION

    version_map: Dict[str, List[str]] = {}
    for key in SEMVER_KEYS:
        if key in labels:
            version_map[key] = [definition.name for definition in labels[key]]
    return version_map


def get_changelog_titles(labels: Mapping[str, List[LabelDefinition]]) -> Dict[str, str]:
    """Return the section title for every label key that has one.

    The first titled definition of a key names its section.
    """
    titles: Dict[str, str] = {}
    for key, definitions in labels.items():
        for definition in definitions:
            if definition.title:
                titles[key] = definition.title
                break
    return titles
