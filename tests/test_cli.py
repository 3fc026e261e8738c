import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

import relnotes.cli.main as main
from relnotes import __version__
from relnotes.releasenote.models import ChangeRequest

from tests.fakes import FakeHost, make_commit


@pytest.fixture
def runner(tmp_path, monkeypatch):
    # no config file is discovered from the working directory or home
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return CliRunner()


@pytest.fixture
def host():
    return FakeHost(
        log=[make_commit("Some Feature (#1234)", hash="1")],
        change_requests=[ChangeRequest(number=1234, labels=["minor"])],
    )


def invoke(runner, host, *args):
    with patch.object(main, "GitLabClient", return_value=host) as client_cls:
        result = runner.invoke(main.cli, ["--gitlab-token", "token", *args])
    return result, client_cls


def test_changelog(runner, host):
    result, client_cls = invoke(runner, host, "changelog", "--project", "group/project", "--from", "v1.0.0")

    assert result.exit_code == 0, result.output
    assert "#### 🚀  Enhancement" in result.output
    assert "- Some Feature [!1234]" in result.output
    config = client_cls.call_args[0][0]
    assert config.project == "group/project"
    assert config.gitlab_token == "token"


def test_changelog_to_file(runner, host, tmp_path):
    output = tmp_path / "notes.md"
    result, _ = invoke(runner, host, "changelog", "-p", "group/project", "--from", "v1", "-o", str(output))

    assert result.exit_code == 0, result.output
    assert "Release notes saved to" in result.output
    assert output.read_text(encoding="utf-8").startswith("#### 🚀  Enhancement")


def test_changelog_empty_range(runner):
    result, _ = invoke(runner, FakeHost(), "changelog", "-p", "group/project", "--from", "v1")

    assert result.exit_code == 0
    assert "No release notes generated" in result.output


def test_changelog_log_failure(runner):
    result, _ = invoke(runner, FakeHost(failing={"get_log": True}), "changelog", "-p", "group/project", "--from", "v1")

    assert result.exit_code == 1
    assert "Error reading commits" in result.output


def test_bump(runner, host):
    result, _ = invoke(runner, host, "bump", "-p", "group/project", "--from", "v1")

    assert result.exit_code == 0, result.output
    assert result.output.strip().splitlines()[-1] == "minor"


def test_bump_only_publish_with_release_label(runner, host):
    result, client_cls = invoke(runner, host, "bump", "-p", "group/project", "--from", "v1",
                                "--only-publish-with-release-label")

    assert result.exit_code == 0, result.output
    assert result.output.strip().splitlines()[-1] == "none"
    assert client_cls.call_args[0][0].only_publish_with_release_label is True


def test_missing_token(runner, host):
    with patch.object(main, "GitLabClient", return_value=host):
        result = runner.invoke(main.cli, ["bump", "-p", "group/project", "--from", "v1"])

    assert result.exit_code == 1
    assert "GitLab token is required" in result.output


def test_missing_project(runner, host):
    result, _ = invoke(runner, host, "bump", "--from", "v1")

    assert result.exit_code == 1
    assert "Project is required" in result.output


def test_config_file_option(runner, host, tmp_path):
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({
        "project": "group/project",
        "labels": {"minor": [{"name": "minor", "title": "Features"}]},
    }))

    result, _ = invoke(runner, host, "-c", str(path), "changelog", "--from", "v1")

    assert result.exit_code == 0, result.output
    assert "#### Features" in result.output


def test_labels_command(runner):
    result = runner.invoke(main.cli, ["labels"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["minor"] == [{
        "name": "minor",
        "title": "🚀  Enhancement",
        "description": "Increment the minor version when merged",
        "color": "#F1A60E",
    }]


def test_init_config(runner, tmp_path):
    path = tmp_path / "relnotes.json"
    result = runner.invoke(main.cli, ["init-config", "--path", str(path)])

    assert result.exit_code == 0
    assert json.loads(path.read_text(encoding="utf-8"))["project"] == "group/project-name"


def test_version(runner):
    result = runner.invoke(main.cli, ["version"])
    assert result.output.strip().splitlines()[-1] == f"relnotes version {__version__}"
