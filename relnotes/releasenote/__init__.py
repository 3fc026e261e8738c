"""Release note generation module."""

from .changelog import Changelog, extract_release_notes, is_valid_username
from .hooks import BailHook, WaterfallHook
from .host import Host, HostError, LogSourceError
from .logparse import LogParse, mr_num_for_commit_from_message, mr_num_from_subject
from .models import Author, ChangeRequest, ChangelogDocument, Commit, PullRequest, UserProfile
from .reconcile import Reconciler, build_search_query
from .release import Release
from .semver import NO_RELEASE, calculate_semver_bump, get_commit_level

__all__ = [
    "Changelog",
    "extract_release_notes",
    "is_valid_username",
    "BailHook",
    "WaterfallHook",
    "Host",
    "HostError",
    "LogSourceError",
    "LogParse",
    "mr_num_for_commit_from_message",
    "mr_num_from_subject",
    "Author",
    "ChangeRequest",
    "ChangelogDocument",
    "Commit",
    "PullRequest",
    "UserProfile",
    "Reconciler",
    "build_search_query",
    "Release",
    "NO_RELEASE",
    "calculate_semver_bump",
    "get_commit_level",
]
