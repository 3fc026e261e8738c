"""Match commits to the merge requests that introduced them."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from dateutil import parser as date_parser

from .host import Host
from .models import Author, ChangeRequest, Commit, PullRequest, UserProfile


DEFAULT_WORKER_COUNT = 4


def build_search_query(project: str, commit_hash: str) -> str:
    """Search terms that find merged merge requests mentioning a hash."""
    return f"repo:{project} {commit_hash}"


def as_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a forge timestamp into an aware datetime (UTC if no offset)."""
    if value is None or value == "":
        return None
    if not isinstance(value, datetime):
        value = date_parser.isoparse(str(value))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class Reconciler:
    """Reconciliation engine.

    Every forge call goes through ``host``; a failure for one commit leaves
    that commit unresolved and never aborts the pass.
    """

    def __init__(self, host: Host, workers: int = DEFAULT_WORKER_COUNT,
                 confirm_matches: bool = True, logger: Optional[logging.Logger] = None):
        self.host = host
        self.workers = workers
        self.confirm_matches = confirm_matches
        self.logger = logger or logging.getLogger(__name__)

    def _map(self, fn: Callable[..., Any], items: Sequence[Commit], action: str,
             args: Optional[Sequence[tuple]] = None) -> List[Any]:
        """Run ``fn(item, *args[i])`` concurrently, results in input order.

        A failing call is logged and yields None for its item.
        """
        results: List[Any] = [None] * len(items)
        if not items:
            return results

        max_workers = min(self.workers, len(items))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(fn, item, *(args[index] if args else ())): index
                for index, item in enumerate(items)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    self.logger.warning(f"Error {action} for commit {items[index].hash}: {e}")

        return results

    @staticmethod
    def apply_change_request(commit: Commit, change_request: ChangeRequest) -> None:
        """Fold a merge request's labels and description into a commit."""
        commit.add_labels(change_request.labels)
        if commit.pull_request is None:
            commit.pull_request = PullRequest(number=change_request.number)
        commit.pull_request.body = change_request.body
        commit.pull_request.merged_ref = change_request.merged_ref
        commit.pull_request.author_username = change_request.author_username

    def get_cutoff(self) -> Optional[datetime]:
        """Only merge requests merged after this moment can own a commit.

        The latest release's publish date, else the date of the first
        commit of the project, else no restriction at all.
        """
        try:
            info = self.host.get_latest_release_info() or {}
            published_at = as_datetime(info.get('published_at'))
            if published_at:
                return published_at
            self.logger.info("Latest release has no publish date, using the first commit date")
        except Exception as e:
            self.logger.info(f"No previous release found ({e}), using the first commit date")

        try:
            first_commit = self.host.get_first_commit()
            return as_datetime(self.host.get_commit_date(first_commit))
        except Exception as e:
            self.logger.warning(f"Could not determine the date of the first commit: {e}")
            return None

    @staticmethod
    def _first_merged(candidates: Sequence[ChangeRequest],
                      cutoff: Optional[datetime]) -> Optional[ChangeRequest]:
        for candidate in candidates:
            if not candidate.merged:
                continue
            merged_at = as_datetime(candidate.merged_at)
            if cutoff and merged_at and merged_at < cutoff:
                continue
            return candidate
        return None

    def _lookup_direct(self, commit: Commit) -> Optional[ChangeRequest]:
        change_request = self.host.get_change_request(commit.pull_request.number)
        if change_request is None:
            self.logger.warning(f"Could not fetch MR {commit.pull_request.number}")
            return None

        self.apply_change_request(commit, change_request)
        return change_request

    def _list_commits(self, change_request: ChangeRequest) -> List[Dict[str, Any]]:
        return list(self.host.get_commits_for_change_request(change_request.number) or [])

    def _list_commit_hashes(self, commit: Commit, change_request: ChangeRequest) -> List[str]:
        return [entry.get('hash') for entry in self._list_commits(change_request) if entry.get('hash')]

    def _confirm(self, commit: Commit, change_request: ChangeRequest) -> None:
        """Check a searched match against the merge request's own commits.

        The authors of those commits are credited on the commit as well.
        """
        entries = self._list_commits(change_request)
        for entry in entries:
            if entry.get('author_name') or entry.get('author_email'):
                commit.add_author(Author(name=entry.get('author_name'), email=entry.get('author_email')))

        if change_request.merged_ref == commit.hash:
            self.logger.debug(f"Commit {commit.hash} is the merge ref of MR {change_request.number}")
        elif commit.hash in [entry.get('hash') for entry in entries]:
            self.logger.debug(f"Commit {commit.hash} is part of MR {change_request.number}")
        else:
            # History was rewritten on the way in; the match still stands
            self.logger.debug(f"Commit {commit.hash} was rebased or squashed from MR {change_request.number}")

    def _search(self, commit: Commit, cutoff: Optional[datetime]) -> Optional[ChangeRequest]:
        query = build_search_query(self.host.project, commit.hash)
        results = self.host.search_merged(query, since=cutoff)

        # First hit in the forge's own ranking wins
        candidate = self._first_merged(results or [], cutoff)
        if candidate is None:
            return None

        change_request = self.host.get_change_request(candidate.number) or candidate
        if not change_request.merged:
            return None

        if self.confirm_matches:
            self._confirm(commit, change_request)

        self.apply_change_request(commit, change_request)
        return change_request

    def _attach_inner_commits(self, commits: List[Commit],
                              matches: Dict[int, ChangeRequest]) -> None:
        """Give MR labels to commits that arrived through a merge commit."""
        owned = [(index, cr) for index, cr in matches.items() if cr is not None]
        if not owned:
            return

        hash_lists = self._map(
            self._list_commit_hashes,
            [commits[index] for index, _ in owned],
            "listing merge request commits",
            [(change_request,) for _, change_request in owned],
        )

        by_hash: Dict[str, ChangeRequest] = {}
        for (_, change_request), hashes in zip(owned, hash_lists):
            for commit_hash in hashes or []:
                by_hash.setdefault(commit_hash, change_request)

        for index, commit in enumerate(commits):
            if index in matches or commit.pull_request is not None:
                continue
            change_request = by_hash.get(commit.hash)
            if change_request is not None:
                self.logger.debug(f"Commit {commit.hash} came in with MR {change_request.number}")
                self.apply_change_request(commit, change_request)
                matches[index] = change_request

    def _recover_rebased(self, commits: List[Commit], matches: Dict[int, ChangeRequest]) -> None:
        pending = [
            index for index, commit in enumerate(commits)
            if index not in matches and commit.pull_request is None and commit.hash
        ]
        if not pending:
            return

        cutoff = self.get_cutoff()
        self.logger.debug(f"Looking for rebased commits merged after {cutoff}")

        try:
            candidates = self.host.batch_lookup_by_hash([commits[i].hash for i in pending], since=cutoff) or {}
        except Exception as e:
            self.logger.warning(f"Batched merge request lookup failed: {e}")
            candidates = {}

        remaining = []
        for index in pending:
            change_request = self._first_merged(candidates.get(commits[index].hash, []), cutoff)
            if change_request is None:
                remaining.append(index)
                continue
            self.apply_change_request(commits[index], change_request)
            matches[index] = change_request

        found = self._map(
            self._search,
            [commits[i] for i in remaining],
            "searching merge requests",
            [(cutoff,)] * len(remaining),
        )
        for index, change_request in zip(remaining, found):
            if change_request is not None:
                matches[index] = change_request

    @staticmethod
    def _primary_author(commit: Commit) -> Optional[Author]:
        """The author record of the commit's own git author."""
        for author in commit.authors:
            if commit.author_email:
                if author.email and author.email.lower() == commit.author_email.lower():
                    return author
            elif commit.author_name and author.name == commit.author_name:
                return author
        return None

    def _merge_profile(self, commit: Commit, profile: UserProfile, by_email: bool = False) -> None:
        """Fill in the author a forge profile belongs to, or add a new one.

        A profile found by the git author's email belongs to the primary
        author. So does a merge request author's profile without an email
        while no author has a username yet. Display names may differ from
        git names.
        """
        author = Author(name=profile.name, email=profile.email, username=profile.username)
        target = next((existing for existing in commit.authors if existing.same_person(author)), None)
        unclaimed = not profile.email and not any(existing.username for existing in commit.authors)
        if target is None and (by_email or unclaimed):
            target = self._primary_author(commit)

        if target is None:
            commit.authors.append(author)
            return

        target.username = target.username or profile.username
        target.name = target.name or profile.name
        target.email = target.email or profile.email

    def _enrich_authors(self, commit: Commit, change_request: ChangeRequest) -> None:
        profile = None
        by_email = not change_request.author_username
        try:
            if not by_email:
                profile = self.host.get_user_by_username(change_request.author_username)
            elif commit.author_email:
                profile = self.host.get_user_by_email(commit.author_email)
        except Exception as e:
            self.logger.warning(f"Error looking up the author of commit {commit.hash}: {e}")
            return

        if profile is None:
            self.logger.debug(f"No forge profile found for the author of commit {commit.hash}")
            return

        self._merge_profile(commit, profile, by_email=by_email)

    def reconcile(self, commits: List[Commit], from_ref: Optional[str] = None,
                  to_ref: Optional[str] = None) -> List[Commit]:
        """Resolve the merge request of every commit in a range.

        Args:
            commits: Normalized commits, in log order
            from_ref: Start of the range (informational)
            to_ref: End of the range (informational)

        Returns:
            The same commit objects, enriched, in the same order
        """
        if not commits:
            return commits

        self.logger.info(f"Reconciling {len(commits)} commits ({from_ref or '?'}..{to_ref or 'HEAD'})")
        matches: Dict[int, ChangeRequest] = {}

        direct = [index for index, commit in enumerate(commits) if commit.pull_request is not None]
        found = self._map(self._lookup_direct, [commits[i] for i in direct], "fetching merge request")
        for index, change_request in zip(direct, found):
            if change_request is not None:
                matches[index] = change_request

        if self.confirm_matches:
            self._attach_inner_commits(commits, matches)

        self._recover_rebased(commits, matches)

        resolved = sorted(matches)
        self._map(
            self._enrich_authors,
            [commits[i] for i in resolved],
            "enriching authors",
            [(matches[i],) for i in resolved],
        )

        unresolved = len(commits) - len(matches)
        if unresolved:
            self.logger.info(f"{unresolved} commits have no merge request and count as patches")
        return commits
