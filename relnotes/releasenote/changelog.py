"""Render reconciled commits into Markdown release notes."""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..config.labels import (
    DEFAULT_LABEL_DEFINITION,
    LabelDefinition,
    MAJOR,
    MINOR,
    PATCH,
    get_changelog_titles,
)
from .hooks import BailHook, WaterfallHook
from .models import Author, ChangelogDocument, Commit, Section


SECTION_HEADING = "#### {title}"
RELEASE_NOTES_HEADING = "### Release Notes"
AUTHORS_HEADING = "#### Authors: {count}"

# Sections that always come first, in this order
LEADING_SECTIONS = [MAJOR, MINOR, PATCH]

# A heading named "Release Notes", at most five levels deep
RELEASE_NOTES_TITLE_RE = re.compile(r'^#{0,5}[ ]*[Rr]elease [Nn]otes\s*$')
FENCE_RE = re.compile(r'^\s*(```|~~~)')

# Placeholders forges put in place of an unknown account
PLACEHOLDER_USERNAMES = {"invalid-email-address"}
USERNAME_RE = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.\-\[\]]*$')


def get_header_depth(line: str) -> int:
    return len(line) - len(line.lstrip('#'))


def extract_release_notes(body: Optional[str]) -> Optional[str]:
    """Pull the "Release Notes" part out of a merge request description.

    Everything after the heading is kept up to the next heading of the
    same or a shallower depth; deeper sub-headings are part of the notes.

    Returns:
        The notes, or None when the description has no such heading
    """
    if not body:
        return None

    lines = [line.rstrip('\r') for line in body.split('\n')]
    start = next((i for i, line in enumerate(lines) if RELEASE_NOTES_TITLE_RE.match(line)), None)
    if start is None:
        return None

    depth = get_header_depth(lines[start])
    notes = []
    in_fence = False
    for line in lines[start + 1:]:
        if FENCE_RE.match(line):
            in_fence = not in_fence
        elif not in_fence and line.startswith('#') and get_header_depth(line) <= depth:
            break
        notes.append(line)

    text = '\n'.join(notes).strip()
    return text or None


def is_valid_username(username: Optional[str]) -> bool:
    """True for something that looks like a real account handle."""
    if not username or username in PLACEHOLDER_USERNAMES:
        return False
    return bool(USERNAME_RE.match(username))


class ChangelogHooks:
    """Extension points of the changelog.

    All render hooks are waterfalls seeded with the default rendering:

    render_changelog_title(title, key, titles) -> str
    render_changelog_line(line, commit) -> str
    render_changelog_author(link, author, commit) -> str | None
    render_changelog_author_line(line, author, link) -> str | None

    omit_release_notes(commit) is a bail hook; a truthy result drops the
    commit's extra release notes.
    """

    def __init__(self):
        self.render_changelog_title = WaterfallHook("render_changelog_title")
        self.render_changelog_line = WaterfallHook("render_changelog_line")
        self.render_changelog_author = WaterfallHook("render_changelog_author")
        self.render_changelog_author_line = WaterfallHook("render_changelog_author_line")
        self.omit_release_notes = BailHook("omit_release_notes")


class Changelog:
    """Changelog composer."""

    def __init__(self, labels: Mapping[str, List[LabelDefinition]], base_url: str,
                 host_url: Optional[str] = None,
                 release_notes_bots: Optional[Iterable[str]] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            labels: Label config, in declaration order
            base_url: Web URL of the project, used for merge request links
            host_url: Web URL of the forge, used for user links
            release_notes_bots: Accounts whose release notes are never included
            logger: Logger instance
        """
        self.labels = labels
        self.base_url = base_url.rstrip('/')
        self.host_url = (host_url or base_url).rstrip('/')
        self.release_notes_bots = set(release_notes_bots or [])
        self.logger = logger or logging.getLogger(__name__)
        self.hooks = ChangelogHooks()

        self.titles = get_changelog_titles(labels)
        self.titles.setdefault(PATCH, DEFAULT_LABEL_DEFINITION[PATCH][0].title)
        self.section_order = [key for key in LEADING_SECTIONS if key in self.titles] + [
            key for key in self.labels if key in self.titles and key not in LEADING_SECTIONS
        ]

    def load_default_hooks(self) -> None:
        self.hooks.omit_release_notes.tap("Bots", self.is_bot_change)

    def is_bot_change(self, commit: Commit) -> bool:
        names = [commit.author_name]
        if commit.pull_request:
            names.append(commit.pull_request.author_username)
        for author in commit.authors:
            names.extend([author.name, author.username])
        return any(name in self.release_notes_bots for name in names if name)

    def create_user_link(self, author: Author, commit: Commit) -> Optional[str]:
        """Credit for one author: a profile link, else an email address.

        A placeholder or malformed username is ignored. Returns None when
        the author cannot be credited.
        """
        if is_valid_username(author.username):
            return f"[@{author.username}]({self.host_url}/{author.username})"

        return author.email or commit.author_email or None

    def render_author(self, author: Author, commit: Commit) -> Optional[str]:
        link = self.create_user_link(author, commit)
        return self.hooks.render_changelog_author.call(link, author, commit)

    def create_user_link_list(self, commit: Commit) -> str:
        links = []
        for author in commit.authors:
            link = self.render_author(author, commit)
            if link and link not in links:
                links.append(link)
        return ' '.join(links)

    def merge_request_link(self, number: int) -> str:
        return f"[!{number}]({self.base_url}/-/merge_requests/{number})"

    def generic_line_render(self, commit: Commit) -> str:
        line = f"- {commit.subject}"
        if commit.pull_request:
            line += f" {self.merge_request_link(commit.pull_request.number)}"

        users = self.create_user_link_list(commit)
        if users:
            line += f" ({users})"
        return line

    def split_commits(self, commits: List[Commit]) -> Dict[str, List[Commit]]:
        """Put each commit in the first section whose labels it carries.

        Commits matching no section label land in the patch section. Keys
        come out in rendering order.
        """
        names = {
            key: {definition.name for definition in self.labels.get(key, [])}
            for key in self.section_order
        }

        split: Dict[str, List[Commit]] = {key: [] for key in self.section_order}
        for commit in commits:
            key = next((key for key in self.section_order if names[key].intersection(commit.labels)), PATCH)
            split[key].append(commit)

        return {key: section for key, section in split.items() if section}

    def create_label_sections(self, split: Dict[str, List[Commit]]) -> List[Section]:
        """Render the label sections, merging those with equal titles."""
        sections: Dict[str, Section] = {}
        for key, commits in split.items():
            title = self.hooks.render_changelog_title.call(self.titles[key], key, self.titles)
            section = sections.setdefault(title, Section(key=key, title=title))

            for commit in commits:
                line = self.hooks.render_changelog_line.call(self.generic_line_render(commit), commit)
                if line not in section.lines:
                    section.lines.append(line)

        return list(sections.values())

    def create_release_notes_section(self, commits: List[Commit]) -> str:
        visited = set()
        blocks = []
        for commit in commits:
            pr = commit.pull_request
            if not pr or not pr.body or pr.number in visited:
                continue
            if self.hooks.omit_release_notes.call(commit):
                self.logger.debug(f"Omitting release notes of MR {pr.number}")
                continue

            notes = extract_release_notes(pr.body)
            if not notes:
                continue

            visited.add(pr.number)
            blocks.append(f"_From !{pr.number}_\n\n{notes}")

        if not blocks:
            return ""
        return RELEASE_NOTES_HEADING + "\n\n" + "\n\n".join(blocks) + "\n\n---"

    def default_author_line(self, author: Author, link: Optional[str]) -> Optional[str]:
        if not link:
            return None
        if author.name:
            return f"- {author.name} ({link})"
        return f"- {link}"

    def create_author_section(self, split: Dict[str, List[Commit]]) -> Tuple[str, List[str]]:
        lines: List[str] = []
        for commits in split.values():
            for commit in commits:
                for author in commit.authors:
                    link = self.render_author(author, commit)
                    line = self.hooks.render_changelog_author_line.call(
                        self.default_author_line(author, link), author, link
                    )
                    if line and line not in lines:
                        lines.append(line)

        if not lines:
            return "", lines
        return AUTHORS_HEADING.format(count=len(lines)) + "\n\n" + "\n".join(lines), lines

    def generate_release_notes(self, commits: List[Commit]) -> ChangelogDocument:
        """Render release notes for a list of reconciled commits.

        Args:
            commits: Commits in log order

        Returns:
            The document, the section titles used and the author lines
        """
        if not commits:
            return ChangelogDocument()

        self.logger.info(f"Generating release notes for {len(commits)} commits")
        split = self.split_commits(commits)
        parts = []

        extra_notes = self.create_release_notes_section(commits)
        if extra_notes:
            parts.append(extra_notes)

        sections = self.create_label_sections(split)
        for section in sections:
            parts.append(SECTION_HEADING.format(title=section.title) + "\n\n" + "\n".join(section.lines))

        authors, author_lines = self.create_author_section(split)
        if authors:
            parts.append(authors)

        return ChangelogDocument(
            text="\n\n".join(parts),
            section_titles=[section.title for section in sections],
            author_lines=author_lines,
        )
