"""The narrow interface the release note engine needs from the forge."""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .models import ChangeRequest, UserProfile


class HostError(Exception):
    """Raised when the forge cannot answer a request."""

    pass


class LogSourceError(HostError):
    """Raised when the commit log of a range cannot be read at all."""

    pass


class Host(Protocol):
    """Everything the normalizer and reconciler ask of the forge.

    Implementations: :class:`relnotes.gitlab.GitLabClient`, and the
    in-memory fake used by the test suite.
    """

    project: str
    web_url: str

    def get_log(self, from_ref: str, to_ref: str) -> List[Mapping[str, Any]]:
        ...

    def get_change_request(self, number: int) -> Optional[ChangeRequest]:
        ...

    def get_commits_for_change_request(self, number: int) -> List[Mapping[str, Any]]:
        ...

    def search_merged(self, query: str, since: Optional[datetime] = None) -> List[ChangeRequest]:
        ...

    def batch_lookup_by_hash(self, hashes: Sequence[str],
                             since: Optional[datetime] = None) -> Dict[str, List[ChangeRequest]]:
        ...

    def get_latest_release_info(self) -> Dict[str, Any]:
        ...

    def get_first_commit(self) -> str:
        ...

    def get_commit_date(self, commit_hash: str) -> datetime:
        ...

    def get_user_by_username(self, username: str) -> Optional[UserProfile]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserProfile]:
        ...
