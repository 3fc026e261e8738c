from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, call

import gitlab
import pytest

from relnotes.config import Config
from relnotes.gitlab import GitLabClient
from relnotes.gitlab.client import parse_date, split_search_query
from relnotes.releasenote.host import HostError, LogSourceError


def make_mr(iid, **attrs):
    data = dict(
        iid=iid,
        title=f"MR {iid}",
        description=None,
        labels=["minor"],
        author={"username": "adam"},
        state="merged",
        merged_at="2019-01-05T00:00:00Z",
        merge_commit_sha=None,
        squash_commit_sha=None,
        sha=f"head{iid}",
        web_url=f"https://gitlab.example.com/group/project/-/merge_requests/{iid}",
    )
    data.update(attrs)
    return SimpleNamespace(**data)


@pytest.fixture
def project():
    return MagicMock()


@pytest.fixture
def client(project):
    config = Config(gitlab_host="gitlab.example.com", gitlab_token="token", project="group/project")
    client = GitLabClient(config)
    client._project_cache["group/project"] = project
    return client


def test_parse_date():
    assert parse_date("2019-01-05T10:00:00Z") == datetime(2019, 1, 5, 10, tzinfo=timezone.utc)
    assert parse_date(None) is None


def test_split_search_query():
    assert split_search_query("repo:group/project abc123") == ("group/project", "abc123")
    assert split_search_query("abc123") == (None, "abc123")


def test_web_url(client):
    assert client.web_url == "https://gitlab.example.com/group/project"


def test_get_log(client, project):
    project.repository_compare.return_value = {"commits": [{
        "id": "abc",
        "title": "Some Feature (#1234)",
        "message": "Some Feature (#1234)\n",
        "author_name": "Adam Dierkens",
        "author_email": "adam@dierkens.com",
        "created_at": "2019-01-05T10:00:00Z",
    }]}

    (entry,) = client.get_log("v1.0.0", "HEAD")

    project.repository_compare.assert_called_once_with("v1.0.0", "HEAD")
    assert entry["hash"] == "abc"
    assert entry["subject"] == "Some Feature (#1234)"
    assert entry["author_email"] == "adam@dierkens.com"


def test_get_log_failure_is_log_source_error(client, project):
    project.repository_compare.side_effect = gitlab.GitlabGetError("404 Not Found", 404)

    with pytest.raises(LogSourceError):
        client.get_log("v1.0.0", "HEAD")


def test_get_change_request(client, project):
    project.mergerequests.get.return_value = make_mr(5, squash_commit_sha="sq", description="Body")

    cr = client.get_change_request(5)

    assert cr.number == 5
    assert cr.labels == ["minor"]
    assert cr.body == "Body"
    assert cr.author_username == "adam"
    assert cr.merged_ref == "sq"
    assert cr.merged_at == datetime(2019, 1, 5, tzinfo=timezone.utc)
    assert cr.merged


def test_get_change_request_failure_returns_none(client, project):
    project.mergerequests.get.side_effect = gitlab.GitlabGetError("404 Not Found", 404)
    assert client.get_change_request(5) is None


def test_get_commits_for_change_request(client, project):
    project.mergerequests.get.return_value.commits.return_value = [
        {"id": "c1", "title": "One", "message": "One"},
        {"id": "c2", "title": "Two", "message": "Two"},
    ]

    entries = client.get_commits_for_change_request(5)

    project.mergerequests.get.assert_called_once_with(5, lazy=True)
    assert [e["hash"] for e in entries] == ["c1", "c2"]


def test_batch_lookup_by_hash(client, project):
    since = datetime(2019, 1, 3, tzinfo=timezone.utc)
    project.mergerequests.list.return_value = [
        make_mr(1, merge_commit_sha="h1"),
        make_mr(2, sha="h2", merged_at="2019-01-01T00:00:00Z"),
        make_mr(3, squash_commit_sha="h3"),
    ]

    result = client.batch_lookup_by_hash(["h1", "h2", "h3", "h4"], since=since)

    project.mergerequests.list.assert_called_once_with(
        state="merged", get_all=True, per_page=100, updated_after=since.isoformat()
    )
    assert sorted(result) == ["h1", "h3"]
    assert result["h1"][0].number == 1
    assert result["h3"][0].merged_ref == "h3"


def test_batch_lookup_without_hashes(client, project):
    assert client.batch_lookup_by_hash([]) == {}
    project.mergerequests.list.assert_not_called()


def test_search_merged_uses_repo_scope(client, project):
    other = MagicMock()
    other.mergerequests.list.return_value = [make_mr(7)]
    client._project_cache["group/other"] = other

    (cr,) = client.search_merged("repo:group/other abc123")

    other.mergerequests.list.assert_called_once_with(
        state="merged", get_all=False, per_page=100, search="abc123"
    )
    assert cr.number == 7
    project.mergerequests.list.assert_not_called()


def test_search_failure_raises_host_error(client, project):
    project.mergerequests.list.side_effect = gitlab.GitlabListError("500", 500)
    with pytest.raises(HostError):
        client.search_merged("abc123")


def test_latest_release_info(client, project):
    project.releases.list.return_value = [SimpleNamespace(tag_name="v1.0.0", released_at="2019-01-02T00:00:00Z")]

    info = client.get_latest_release_info()

    assert info == {"tag_name": "v1.0.0", "published_at": datetime(2019, 1, 2, tzinfo=timezone.utc)}


def test_latest_release_info_without_releases(client, project):
    project.releases.list.return_value = []
    with pytest.raises(HostError):
        client.get_latest_release_info()


def test_first_commit_and_date(client, project):
    project.commits.list.side_effect = [SimpleNamespace(total_pages=3), [SimpleNamespace(id="old")]]
    project.commits.get.return_value = SimpleNamespace(
        committed_date="2018-12-31T23:00:00Z", created_at="2018-12-31T23:00:00Z"
    )

    assert client.get_first_commit() == "old"
    assert client.get_commit_date("old") == datetime(2018, 12, 31, 23, tzinfo=timezone.utc)
    assert project.commits.list.call_args_list[-1] == call(per_page=1, page=3, get_all=False)


def test_first_commit_without_page_count(client, project):
    project.commits.list.side_effect = [
        SimpleNamespace(total_pages=None),
        iter([SimpleNamespace(id="new"), SimpleNamespace(id="mid"), SimpleNamespace(id="old")]),
    ]

    assert client.get_first_commit() == "old"
    assert project.commits.list.call_args_list[-1] == call(per_page=100, iterator=True)


def test_user_lookups(client):
    client.gl = MagicMock()
    client.gl.users.list.return_value = [
        SimpleNamespace(username="adam", name="Adam Dierkens", public_email="", web_url="https://gitlab.example.com/adam")
    ]

    profile = client.get_user_by_username("adam")

    client.gl.users.list.assert_called_once_with(username="adam", get_all=False)
    assert profile.username == "adam"
    assert profile.email is None

    client.gl.users.list.return_value = []
    assert client.get_user_by_email("nobody@example.com") is None


def test_user_lookup_failure_returns_none(client):
    client.gl = MagicMock()
    client.gl.users.list.side_effect = gitlab.GitlabListError("403", 403)
    assert client.get_user_by_username("adam") is None
