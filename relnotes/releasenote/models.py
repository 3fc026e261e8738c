"""Records shared by the normalizer, the reconciler and the changelog."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..config.labels import LabelDefinition


class Author(BaseModel):
    """One person credited for a commit."""

    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None

    def same_person(self, other: "Author") -> bool:
        """True when both records describe the same person.

        Emails are compared first, then usernames; names only count when
        neither side has an email.
        """
        if self.email and other.email:
            return self.email.lower() == other.email.lower()
        if self.username and other.username:
            return self.username == other.username
        if not self.email and not other.email and self.name and other.name:
            return self.name == other.name
        return False


class PullRequest(BaseModel):
    """Reference from a commit to the merge request that owns it."""

    number: int
    body: Optional[str] = None
    merged_ref: Optional[str] = None
    author_username: Optional[str] = None


class Commit(BaseModel):
    """A normalized log entry, enriched during reconciliation."""

    hash: str = ""
    subject: str
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    authors: List[Author] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    pull_request: Optional[PullRequest] = None

    def add_labels(self, labels: List[str]) -> None:
        for label in labels:
            if label not in self.labels:
                self.labels.append(label)

    def add_author(self, author: Author) -> Author:
        """Add an author, or fill in the blanks of a matching one.

        Returns the record stored on the commit.
        """
        for existing in self.authors:
            if existing.same_person(author):
                for field_name in ("name", "email", "username"):
                    if not getattr(existing, field_name) and getattr(author, field_name):
                        setattr(existing, field_name, getattr(author, field_name))
                return existing

        self.authors.append(author)
        return author


class ChangeRequest(BaseModel):
    """A merge request as reported by the forge."""

    number: int
    title: str = ""
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    author_username: Optional[str] = None
    state: str = "merged"
    merged_at: Optional[datetime] = None
    merged_ref: Optional[str] = None
    web_url: Optional[str] = None

    @property
    def merged(self) -> bool:
        return self.state == "merged"


class UserProfile(BaseModel):
    """A forge user account."""

    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    web_url: Optional[str] = None


class Section(BaseModel):
    """A titled group of changelog lines."""

    key: str
    title: str
    lines: List[str] = Field(default_factory=list)


class ChangelogDocument(BaseModel):
    """Rendered release notes plus the pieces a caller may want to reuse."""

    text: str = ""
    section_titles: List[str] = Field(default_factory=list)
    author_lines: List[str] = Field(default_factory=list)

    def __str__(self) -> str:
        return self.text


__all__ = [
    "Author",
    "PullRequest",
    "Commit",
    "ChangeRequest",
    "UserProfile",
    "Section",
    "ChangelogDocument",
    "LabelDefinition",
]
