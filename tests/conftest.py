import logging
import os

import pytest

from relnotes.config import resolve_labels
from relnotes.releasenote.changelog import Changelog
from relnotes.releasenote.logparse import LogParse


@pytest.fixture(autouse=True)
def isolate_config_env(monkeypatch):
    """Keep a developer's RELNOTES_* environment out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("RELNOTES_"):
            monkeypatch.delenv(name)


@pytest.fixture
def log_parse():
    return LogParse(logging.getLogger("relnotes.tests"))


@pytest.fixture
def labels():
    return resolve_labels()


@pytest.fixture
def make_changelog(labels):
    def factory(label_config=None, bots=("renovate-bot", "renovate[bot]")):
        changelog = Changelog(
            label_config if label_config is not None else labels,
            base_url="https://gitlab.example.com/group/project",
            host_url="https://gitlab.example.com",
            release_notes_bots=bots,
        )
        return changelog
    return factory
