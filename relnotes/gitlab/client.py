"""GitLab client wrapper using python-gitlab library."""

import logging
from collections import deque
from datetime import datetime
from typing import List, Optional, Dict, Any, Sequence, Tuple

import gitlab
import requests
from gitlab.v4.objects import Project, ProjectMergeRequest

from ..config import Config
from ..releasenote.host import HostError, LogSourceError
from ..releasenote.models import ChangeRequest, UserProfile

# python-gitlab raises requests errors for transport failures
API_ERRORS = (gitlab.GitlabError, requests.RequestException)


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitLab ISO timestamp."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def split_search_query(query: str) -> Tuple[Optional[str], str]:
    """Split ``repo:group/project terms`` into the project and the terms."""
    project = None
    terms = []
    for token in query.split():
        if token.startswith('repo:'):
            project = token[len('repo:'):]
        else:
            terms.append(token)
    return project, ' '.join(terms)


class GitLabClient:
    """Wrapper for GitLab API using python-gitlab library.

    Implements the forge interface the release note engine needs
    (relnotes.releasenote.host.Host) for the configured project.
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None):
        """Initialize GitLab client.

        Args:
            config: Configuration object containing GitLab settings
            logger: Logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.project = config.project

        self.gl = gitlab.Gitlab(
            url=config.gitlab_host,
            private_token=config.gitlab_token,
            timeout=300
        )

        # Cache for project instance
        self._project_cache: Dict[str, Project] = {}

    @property
    def web_url(self) -> str:
        return f"{self.config.gitlab_host}/{self.project}"

    def _get_project(self, project_name: Optional[str] = None) -> Project:
        """Get project instance with caching."""
        project_name = project_name or self.project
        if project_name not in self._project_cache:
            self._project_cache[project_name] = self.gl.projects.get(project_name)
        return self._project_cache[project_name]

    @staticmethod
    def _to_change_request(mr: ProjectMergeRequest) -> ChangeRequest:
        """Convert a python-gitlab merge request into a ChangeRequest."""
        author = getattr(mr, 'author', None) or {}
        merged_ref = (
            getattr(mr, 'merge_commit_sha', None)
            or getattr(mr, 'squash_commit_sha', None)
            or getattr(mr, 'sha', None)
        )
        return ChangeRequest(
            number=mr.iid,
            title=mr.title,
            body=mr.description or '',
            labels=list(mr.labels or []),
            author_username=author.get('username') or None,
            state=mr.state,
            merged_at=parse_date(getattr(mr, 'merged_at', None)),
            merged_ref=merged_ref,
            web_url=mr.web_url,
        )

    @staticmethod
    def _owned_hashes(mr: ProjectMergeRequest) -> set:
        hashes = {
            getattr(mr, 'merge_commit_sha', None),
            getattr(mr, 'squash_commit_sha', None),
            getattr(mr, 'sha', None),
        }
        hashes.discard(None)
        return hashes

    @staticmethod
    def _commit_entry(commit: Any) -> Dict[str, Any]:
        """Raw log entry for a commit returned by the API."""
        if isinstance(commit, dict):
            get = commit.get
        else:
            def get(key):
                return getattr(commit, key, None)
        return {
            'hash': get('id'),
            'subject': get('title'),
            'message': get('message') or '',
            'author_name': get('author_name'),
            'author_email': get('author_email'),
            'created_at': parse_date(get('created_at')),
        }

    def get_log(self, from_ref: str, to_ref: str) -> List[Dict[str, Any]]:
        """List the commits reachable from ``to_ref`` but not ``from_ref``.

        Raises:
            LogSourceError: The comparison cannot be made
        """
        try:
            proj = self._get_project()
            comparison = proj.repository_compare(from_ref, to_ref)
        except API_ERRORS as e:
            raise LogSourceError(f"Error comparing {from_ref}..{to_ref}: {e}") from e

        return [self._commit_entry(commit) for commit in comparison.get('commits', [])]

    def get_change_request(self, number: int) -> Optional[ChangeRequest]:
        """Get merge request by IID.

        Args:
            number: Merge request internal ID

        Returns:
            The merge request or None if not found
        """
        try:
            proj = self._get_project()
            return self._to_change_request(proj.mergerequests.get(number))
        except API_ERRORS as e:
            self.logger.warning(f"Error getting merge request {number}: {e}")
            return None

    def get_commits_for_change_request(self, number: int) -> List[Dict[str, Any]]:
        """Commits of a merge request, as raw log entries."""
        try:
            proj = self._get_project()
            mr = proj.mergerequests.get(number, lazy=True)
            return [self._commit_entry(commit) for commit in mr.commits()]
        except API_ERRORS as e:
            self.logger.warning(f"Error listing commits of merge request {number}: {e}")
            return []

    def _list_merge_requests(self, merged_after: Optional[datetime] = None,
                            state: str = "merged", search: Optional[str] = None,
                            project: Optional[str] = None,
                            get_all: bool = True) -> List[ProjectMergeRequest]:
        """List raw merge requests with optional filters.

        Args:
            merged_after: Only include MRs merged after this date
            state: MR state filter
            search: Only MRs whose title or description match
            project: Project path, defaults to the configured project
            get_all: Follow pagination

        Raises:
            HostError: The listing failed
        """
        try:
            proj = self._get_project(project)

            params = {
                'state': state,
                'get_all': get_all,
                'per_page': 100,
            }
            if search:
                params['search'] = search
            if merged_after:
                # merged MRs were last updated no earlier than their merge
                params['updated_after'] = merged_after.isoformat()

            mrs = proj.mergerequests.list(**params)
        except API_ERRORS as e:
            raise HostError(f"Error listing merge requests: {e}") from e

        result = []
        for mr in mrs:
            merged_at = parse_date(getattr(mr, 'merged_at', None))
            if merged_after and merged_at and merged_at < merged_after:
                continue
            result.append(mr)

        return result

    def batch_lookup_by_hash(self, hashes: Sequence[str],
                             since: Optional[datetime] = None) -> Dict[str, List[ChangeRequest]]:
        """Find merged merge requests for many commit hashes in one listing.

        A merge request owns a hash when it is its merge commit, its squash
        commit or its head commit.
        """
        wanted = set(hashes)
        if not wanted:
            return {}

        result: Dict[str, List[ChangeRequest]] = {}
        for mr in self._list_merge_requests(merged_after=since):
            for commit_hash in self._owned_hashes(mr) & wanted:
                result.setdefault(commit_hash, []).append(self._to_change_request(mr))

        return result

    def search_merged(self, query: str, since: Optional[datetime] = None) -> List[ChangeRequest]:
        """Search merged merge requests; ``repo:group/project`` scopes the search."""
        project, terms = split_search_query(query)
        mrs = self._list_merge_requests(
            merged_after=since,
            search=terms or None,
            project=project,
            get_all=False,
        )
        return [self._to_change_request(mr) for mr in mrs]

    def get_latest_release_info(self) -> Dict[str, Any]:
        """Publish date of the most recent release.

        Raises:
            HostError: The project has no release or the lookup failed
        """
        try:
            proj = self._get_project()
            releases = proj.releases.list(order_by='released_at', sort='desc', per_page=1, get_all=False)
        except API_ERRORS as e:
            raise HostError(f"Error getting latest release: {e}") from e

        if not releases:
            raise HostError("No releases found")

        release = releases[0]
        return {
            'tag_name': release.tag_name,
            'published_at': parse_date(getattr(release, 'released_at', None) or getattr(release, 'created_at', None)),
        }

    def get_first_commit(self) -> str:
        """Hash of the oldest commit on the default branch."""
        try:
            proj = self._get_project()
            pages = proj.commits.list(per_page=1, iterator=True)
            if pages.total_pages:
                commits = proj.commits.list(per_page=1, page=pages.total_pages, get_all=False)
            else:
                # GitLab leaves out the page count on very large histories
                commits = list(deque(proj.commits.list(per_page=100, iterator=True), maxlen=1))
        except API_ERRORS as e:
            raise HostError(f"Error listing commits: {e}") from e

        if not commits:
            raise HostError("Repository has no commits")
        return commits[-1].id

    def get_commit_date(self, commit_hash: str) -> datetime:
        try:
            proj = self._get_project()
            commit = proj.commits.get(commit_hash)
        except API_ERRORS as e:
            raise HostError(f"Error getting commit {commit_hash}: {e}") from e

        return parse_date(getattr(commit, 'committed_date', None) or commit.created_at)

    def _to_profile(self, user: Any) -> UserProfile:
        return UserProfile(
            username=user.username,
            name=getattr(user, 'name', None),
            email=getattr(user, 'public_email', None) or getattr(user, 'email', None) or None,
            web_url=getattr(user, 'web_url', None),
        )

    def get_user_by_username(self, username: str) -> Optional[UserProfile]:
        try:
            users = self.gl.users.list(username=username, get_all=False)
        except API_ERRORS as e:
            self.logger.warning(f"Error getting user {username}: {e}")
            return None

        return self._to_profile(users[0]) if users else None

    def get_user_by_email(self, email: str) -> Optional[UserProfile]:
        try:
            users = self.gl.users.list(search=email, get_all=False)
        except API_ERRORS as e:
            self.logger.warning(f"Error searching user {email}: {e}")
            return None

        return self._to_profile(users[0]) if users else None
