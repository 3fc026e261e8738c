"""Decide the version bump a range of commits warrants."""

import logging
from typing import Iterable, List, Mapping, Optional

from ..config.labels import (
    MAJOR,
    MINOR,
    PATCH,
    SKIP_RELEASE,
    RELEASE,
    PRERELEASE,
    SEMVER_KEYS,
)
from .models import Commit


logger = logging.getLogger(__name__)

# No release should be made
NO_RELEASE = ""

# Bump levels, lowest first
BUMP_ORDER = [PATCH, MINOR, MAJOR]


def get_commit_level(labels: Iterable[str], version_map: Mapping[str, List[str]]) -> str:
    """Return the first severity key whose labels the commit carries.

    Keys are scanned in the fixed priority order major, minor, patch,
    skip-release, release, prerelease. Unlabeled commits are patches.
    """
    labels = set(labels)
    for key in SEMVER_KEYS:
        if labels.intersection(version_map.get(key, [])):
            return key
    return PATCH


def has_label(commit: Commit, names: Iterable[str]) -> bool:
    return bool(set(commit.labels).intersection(names))


def calculate_semver_bump(commits: List[Commit], version_map: Mapping[str, List[str]],
                          only_publish_with_release_label: bool = False,
                          skip_release_labels: Optional[Iterable[str]] = None) -> str:
    """Aggregate the bump level of a list of commits.

    Args:
        commits: Reconciled commits
        version_map: Severity key to label names, see get_version_map()
        only_publish_with_release_label: Only release when some commit
            carries a ``release`` label
        skip_release_labels: Extra label names that mark a commit as not
            releasable

    Returns:
        ``major``, ``minor`` or ``patch``; an empty string when nothing
        should be released. An empty list releases nothing rather than a
        patch, as does a list where every commit is skip-release.
    """
    skip_labels = set(version_map.get(SKIP_RELEASE, [])) | set(skip_release_labels or [])
    release_labels = version_map.get(RELEASE, [])

    if only_publish_with_release_label:
        if not any(has_label(commit, release_labels) for commit in commits):
            logger.info("No commit carries a release label, skipping the release")
            return NO_RELEASE

    contributing = [commit for commit in commits if not has_label(commit, skip_labels)]
    if not contributing:
        logger.info("No releasable commits, skipping the release")
        return NO_RELEASE

    bump = PATCH
    for commit in contributing:
        level = get_commit_level(commit.labels, version_map)
        if level in (RELEASE, PRERELEASE):
            level = PATCH
        if level not in BUMP_ORDER:
            continue
        if BUMP_ORDER.index(level) > BUMP_ORDER.index(bump):
            bump = level

    logger.debug(f"Calculated {bump} bump from {len(contributing)} of {len(commits)} commits")
    return bump
