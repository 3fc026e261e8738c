"""Turn raw log entries into normalized commits."""

import logging
import re
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .hooks import BailHook, WaterfallHook
from .models import Author, Commit, PullRequest


# "Some change (#123)"
PR_NUMBER_RE = re.compile(r'\s*\(#(\d+)\)\s*$')

# GitLab adds "See merge request group/project!123" to merge commits
MERGE_REQUEST_TRAILER_RE = re.compile(r'^See merge request \S*!(\d+)\s*$', re.MULTILINE)
GITLAB_MERGE_SUBJECT_RE = re.compile(r"^Merge branch '.+' into '.+'$")

CO_AUTHOR_RE = re.compile(r'^Co-authored-by:\s*(.*?)\s*<([^>]*)>\s*$', re.MULTILINE | re.IGNORECASE)

RawEntry = Union[Commit, Mapping[str, Any]]


class LogParseHooks:
    """Extension points of the normalizer.

    parse_commit: waterfall, receives the commit and may return a new one.
    omit_commit: bail, a truthy result drops the commit.
    """

    def __init__(self):
        self.parse_commit = WaterfallHook("parse_commit")
        self.omit_commit = BailHook("omit_commit")


def parse_co_authors(message: str) -> List[Author]:
    """Collect ``Co-authored-by`` trailers from a commit message."""
    authors = []
    for match in CO_AUTHOR_RE.finditer(message or ''):
        name, email = match.group(1).strip(), match.group(2).strip()
        if name or email:
            authors.append(Author(name=name or None, email=email or None))
    return authors


def mr_num_from_subject(subject: str) -> int:
    """Extract a trailing ``(#123)`` merge request reference, or 0."""
    match = PR_NUMBER_RE.search(subject)
    if not match:
        return 0
    return int(match.group(1))


def mr_num_for_commit_from_message(commit_message: str) -> int:
    """Extract the merge request IID GitLab writes into merge commits.

    Args:
        commit_message: Git commit message

    Returns:
        MR IID or 0 if not found
    """
    match = MERGE_REQUEST_TRAILER_RE.search(commit_message or '')
    if not match:
        return 0
    return int(match.group(1))


def _merge_commit_title(message: str) -> Optional[str]:
    """First body line of a GitLab merge commit, which holds the MR title."""
    for line in message.split('\n')[1:]:
        line = line.strip()
        if line and not MERGE_REQUEST_TRAILER_RE.match(line):
            return line
    return None


class LogParse:
    """Commit normalizer."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = LogParseHooks()

    def normalize_commit(self, entry: RawEntry) -> Optional[Commit]:
        """Normalize one raw entry, or return None if it has no subject."""
        data = entry.model_dump() if isinstance(entry, Commit) else dict(entry)

        message = data.get('message') or ''
        subject = (data.get('subject') or message or '').strip()
        subject = subject.split('\n')[0].strip()

        if not subject:
            self.logger.warning(f"Dropping log entry without a subject: {data.get('hash') or '<no hash>'}")
            return None

        number = 0
        trailer_number = mr_num_for_commit_from_message(message)
        if trailer_number and GITLAB_MERGE_SUBJECT_RE.match(subject):
            subject = _merge_commit_title(message) or subject
            number = trailer_number

        subject_number = mr_num_from_subject(subject)
        if subject_number:
            number = subject_number
            subject = PR_NUMBER_RE.sub('', subject)
        elif not number:
            number = trailer_number

        pull_request = data.get('pull_request')
        try:
            if isinstance(pull_request, Mapping):
                pull_request = PullRequest.model_validate(pull_request)
            if number:
                if pull_request is None:
                    pull_request = PullRequest(number=number)
                else:
                    pull_request.number = number
        except ValidationError as e:
            self.logger.warning(f"Ignoring malformed merge request reference on {data.get('hash')}: {e}")
            pull_request = None

        commit = Commit(
            hash=data.get('hash') or '',
            subject=subject,
            author_name=data.get('author_name'),
            author_email=data.get('author_email'),
            pull_request=pull_request,
        )
        commit.add_labels(list(data.get('labels') or []))

        if commit.author_name or commit.author_email:
            commit.add_author(Author(name=commit.author_name, email=commit.author_email))
        for author in parse_co_authors(message):
            commit.add_author(author)
        for author in data.get('authors') or []:
            commit.add_author(author if isinstance(author, Author) else Author.model_validate(author))

        return commit

    def normalize_commits(self, entries: Iterable[RawEntry]) -> List[Commit]:
        """Normalize raw log entries, keeping their order.

        Registered ``parse_commit`` taps run on every commit, then the
        ``omit_commit`` taps decide whether it is kept.
        """
        commits = []
        for entry in entries:
            try:
                commit = self.normalize_commit(entry)
            except (ValidationError, TypeError, ValueError) as e:
                self.logger.warning(f"Dropping malformed log entry: {e}")
                continue
            if commit is None:
                continue

            commit = self.hooks.parse_commit.call(commit)
            if self.hooks.omit_commit.call(commit):
                self.logger.debug(f"Omitting commit {commit.hash}: {commit.subject}")
                continue

            commits.append(commit)

        return commits
