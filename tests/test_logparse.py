import logging

from relnotes.releasenote.logparse import (
    mr_num_for_commit_from_message,
    mr_num_from_subject,
    parse_co_authors,
)
from relnotes.releasenote.models import Author, Commit

from tests.fakes import make_commit


def test_mr_num_from_subject():
    assert mr_num_from_subject("Some Feature (#1234)") == 1234
    assert mr_num_from_subject("Fix (#12) in the middle") == 0
    assert mr_num_from_subject("No reference") == 0


def test_mr_num_for_commit_from_message():
    message = "Merge branch 'feat' into 'main'\n\nAdd thing\n\nSee merge request group/project!42\n"
    assert mr_num_for_commit_from_message(message) == 42
    assert mr_num_for_commit_from_message("plain commit") == 0


def test_parse_co_authors():
    message = "Subject\n\nCo-authored-by: Jane Doe <jane@example.com>\nco-authored-by: <bot@example.com>\n"
    assert parse_co_authors(message) == [
        Author(name="Jane Doe", email="jane@example.com"),
        Author(email="bot@example.com"),
    ]


def test_subject_reference_is_stripped(log_parse):
    commit = log_parse.normalize_commit(make_commit("Some Feature (#1234)", hash="abc"))

    assert commit.subject == "Some Feature"
    assert commit.pull_request.number == 1234
    assert commit.hash == "abc"
    assert commit.authors == [Author(name="Adam Dierkens", email="adam@dierkens.com")]


def test_commit_without_reference_has_no_pull_request(log_parse):
    commit = log_parse.normalize_commit(make_commit("Just a commit", hash="abc"))
    assert commit.pull_request is None


def test_gitlab_merge_commit_uses_title_and_trailer(log_parse):
    entry = {
        "hash": "m1",
        "message": "Merge branch 'feat' into 'main'\n\nAdd search\n\nSee merge request group/project!7",
        "author_name": "Jane",
        "author_email": "jane@example.com",
    }
    commit = log_parse.normalize_commit(entry)

    assert commit.subject == "Add search"
    assert commit.pull_request.number == 7


def test_subject_falls_back_to_first_message_line(log_parse):
    commit = log_parse.normalize_commit({"hash": "a", "message": "Fix crash\n\nDetails"})
    assert commit.subject == "Fix crash"


def test_entry_without_subject_is_dropped_with_warning(log_parse, caplog):
    with caplog.at_level(logging.WARNING):
        commits = log_parse.normalize_commits([{"hash": "a"}, make_commit("Kept", hash="b")])

    assert [c.hash for c in commits] == ["b"]
    assert "without a subject" in caplog.text


def test_malformed_entry_is_dropped(log_parse):
    commits = log_parse.normalize_commits([
        make_commit("Bad authors", hash="a", authors=[{"name": ["not", "a", "string"]}]),
        make_commit("Good", hash="b"),
    ])
    assert [c.hash for c in commits] == ["b"]


def test_co_authors_are_deduplicated(log_parse):
    entry = make_commit(
        "Pair work",
        hash="a",
        message="Pair work\n\nCo-authored-by: Adam <ADAM@dierkens.com>\nCo-authored-by: Jane <jane@example.com>",
    )
    commit = log_parse.normalize_commit(entry)

    assert [a.email for a in commit.authors] == ["adam@dierkens.com", "jane@example.com"]


def test_labels_and_pull_request_mapping_are_kept(log_parse):
    entry = make_commit("Tweak", labels=["internal", "internal"], hash="a",
                        pull_request={"number": 5, "body": "body"})
    commit = log_parse.normalize_commit(entry)

    assert commit.labels == ["internal"]
    assert commit.pull_request.number == 5
    assert commit.pull_request.body == "body"


def test_commit_objects_are_accepted(log_parse):
    commit = log_parse.normalize_commit(Commit(hash="a", subject="Thing (#3)"))
    assert commit.subject == "Thing"
    assert commit.pull_request.number == 3


def test_order_is_preserved(log_parse):
    subjects = [f"Change {n}" for n in range(10)]
    commits = log_parse.normalize_commits([make_commit(s, hash=str(n)) for n, s in enumerate(subjects)])
    assert [c.subject for c in commits] == subjects


def test_parse_commit_taps_run_in_order(log_parse):
    log_parse.hooks.parse_commit.tap("first", lambda commit: commit.add_labels(["one"]))
    log_parse.hooks.parse_commit.tap("second", lambda commit: commit.add_labels(["two"]))

    commit = log_parse.normalize_commits([make_commit("Change", hash="a")])[0]
    assert commit.labels == ["one", "two"]


def test_parse_commit_tap_can_replace_commit(log_parse):
    log_parse.hooks.parse_commit.tap(
        "Rename", lambda commit: commit.model_copy(update={"subject": "Renamed"})
    )
    commit = log_parse.normalize_commits([make_commit("Change", hash="a")])[0]
    assert commit.subject == "Renamed"


def test_omit_commit_short_circuits(log_parse):
    later = []
    log_parse.hooks.omit_commit.tap("Bots", lambda commit: commit.author_name == "renovate-bot")
    log_parse.hooks.omit_commit.tap("Later", lambda commit: later.append(commit.hash))

    commits = log_parse.normalize_commits([
        make_commit("Update deps", hash="a", name="renovate-bot"),
        make_commit("Feature", hash="b"),
    ])

    assert [c.hash for c in commits] == ["b"]
    assert later == ["b"]
