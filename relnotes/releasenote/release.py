"""Release notes and version bumps for a range of commits."""

import logging
from typing import List, Optional, Tuple

from ..config import Config, LabelConfig, get_version_map
from .changelog import Changelog
from .hooks import WaterfallHook
from .host import Host, LogSourceError
from .logparse import LogParse
from .models import ChangelogDocument, Commit
from .reconcile import Reconciler
from .semver import calculate_semver_bump


class ReleaseHooks:
    """Let callers tap the normalizer and the changelog before they run.

    on_create_log_parse(log_parse) and on_create_changelog(changelog)
    are called with the freshly built object; return values are ignored.
    """

    def __init__(self):
        self.on_create_log_parse = WaterfallHook("on_create_log_parse")
        self.on_create_changelog = WaterfallHook("on_create_changelog")


class Release:
    """Ties the forge, the normalizer, the reconciler and the changelog together."""

    def __init__(self, host: Host, config: Optional[Config] = None,
                 labels: Optional[LabelConfig] = None,
                 logger: Optional[logging.Logger] = None):
        """Initialize a release.

        Args:
            host: Forge client, see relnotes.releasenote.host.Host
            config: Configuration object
            labels: Resolved label config; defaults to the config's labels
            logger: Logger instance
        """
        self.host = host
        self.config = config or Config()
        self.labels = labels if labels is not None else self.config.resolved_labels()
        self.version_map = get_version_map(self.labels)
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = ReleaseHooks()

    def create_log_parse(self) -> LogParse:
        log_parse = LogParse(self.logger)
        self.hooks.on_create_log_parse.call(log_parse)
        return log_parse

    def create_changelog(self) -> Changelog:
        changelog = Changelog(
            self.labels,
            base_url=self.host.web_url,
            host_url=self.config.gitlab_host,
            release_notes_bots=self.config.release_notes_bots,
            logger=self.logger,
        )
        changelog.load_default_hooks()
        self.hooks.on_create_changelog.call(changelog)
        return changelog

    def get_commits(self, from_ref: str, to_ref: str = "HEAD") -> List[Commit]:
        """Read, normalize and reconcile the commits of a range.

        Raises:
            LogSourceError: The log of the range cannot be read
        """
        try:
            raw_entries = self.host.get_log(from_ref, to_ref)
        except LogSourceError:
            raise
        except Exception as e:
            raise LogSourceError(f"Cannot read the log of {from_ref}..{to_ref}: {e}") from e

        commits = self.create_log_parse().normalize_commits(raw_entries)
        self.logger.info(f"Found {len(commits)} commits in {from_ref}..{to_ref}")

        reconciler = Reconciler(
            self.host,
            workers=self.config.workers,
            confirm_matches=self.config.confirm_matches,
            logger=self.logger,
        )
        return reconciler.reconcile(commits, from_ref, to_ref)

    def calculate_bump(self, commits: List[Commit]) -> str:
        return calculate_semver_bump(
            commits,
            self.version_map,
            only_publish_with_release_label=self.config.only_publish_with_release_label,
            skip_release_labels=self.config.skip_release_labels,
        )

    def get_semver_bump(self, from_ref: str, to_ref: str = "HEAD") -> str:
        """Bump level of a range, or an empty string for no release."""
        return self.calculate_bump(self.get_commits(from_ref, to_ref))

    def generate_release_notes(self, from_ref: str, to_ref: str = "HEAD") -> ChangelogDocument:
        return self.create_changelog().generate_release_notes(self.get_commits(from_ref, to_ref))

    def build_report(self, from_ref: str, to_ref: str = "HEAD") -> Tuple[str, ChangelogDocument]:
        """Bump level and release notes from a single pass over the range."""
        commits = self.get_commits(from_ref, to_ref)
        return self.calculate_bump(commits), self.create_changelog().generate_release_notes(commits)
