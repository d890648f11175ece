import pytest

from ghaflow.github_context import GithubContext, nested_map_lookup


def _ref(_path):
    return "refs/heads/master"


def _revision(_path):
    return "", "1234fakesha"


def _no_ref(_path):
    raise RuntimeError("no default branch")


@pytest.mark.parametrize(
    "event_name, event, ref, ref_name",
    [
        ("pull_request_target", {}, "refs/heads/master", "master"),
        ("pull_request", {"number": 1234.0}, "refs/pull/1234/merge", "1234/merge"),
        (
            "deployment",
            {"deployment": {"ref": "refs/heads/somebranch"}},
            "refs/heads/somebranch",
            "somebranch",
        ),
        ("release", {"release": {"tag_name": "v1.0.0"}}, "refs/tags/v1.0.0", "v1.0.0"),
        ("push", {"ref": "refs/heads/somebranch"}, "refs/heads/somebranch", "somebranch"),
        (
            "unknown",
            {"repository": {"default_branch": "main"}},
            "refs/heads/main",
            "main",
        ),
        ("no-event", {}, "refs/heads/master", "master"),
    ],
)
def test_set_ref(event_name, event, ref, ref_name):
    ghc = GithubContext(event_name=event_name, base_ref="master", event=event)
    ghc.set_ref("main", "/some/dir", _ref)
    ghc.set_ref_type_and_name()
    assert ghc.ref == ref
    assert ghc.ref_name == ref_name


def test_set_ref_no_default_branch():
    ghc = GithubContext(event_name="no-default-branch", event={})
    ghc.set_ref("", "/some/dir", _no_ref)
    assert ghc.ref == "refs/heads/master"
    assert ghc.event["repository"]["default_branch"] == "master"


def test_set_ref_uses_given_default_branch_when_lookup_fails():
    ghc = GithubContext(event_name="schedule", event={})
    ghc.set_ref("trunk", "/some/dir", _no_ref)
    assert ghc.ref == "refs/heads/trunk"


def test_set_ref_keeps_existing_default_branch():
    ghc = GithubContext(event_name="push", event={"repository": {"default_branch": "dev"}})
    ghc.set_ref("main", "/some/dir", _no_ref)
    assert ghc.ref == "refs/heads/dev"


@pytest.mark.parametrize(
    "event_name, event, sha",
    [
        (
            "pull_request_target",
            {"pull_request": {"base": {"sha": "pr-base-sha"}}},
            "pr-base-sha",
        ),
        ("pull_request", {"number": 1234.0}, "1234fakesha"),
        ("deployment", {"deployment": {"sha": "deployment-sha"}}, "deployment-sha"),
        ("release", {}, "1234fakesha"),
        ("push", {"after": "push-sha", "deleted": False}, "push-sha"),
        ("unknown", {}, "1234fakesha"),
        ("no-event", {}, "1234fakesha"),
    ],
)
def test_set_sha(event_name, event, sha):
    ghc = GithubContext(event_name=event_name, base_ref="master", event=event)
    ghc.set_sha("/some/dir", _revision)
    assert ghc.sha == sha


def test_set_sha_deleted_push_falls_back():
    ghc = GithubContext(event_name="push", event={"after": "push-sha", "deleted": True})
    ghc.set_sha("/some/dir", _revision)
    assert ghc.sha == "1234fakesha"


def test_set_repository_and_owner_from_lookup():
    ghc = GithubContext()
    ghc.set_repository_and_owner(
        lambda path, instance, remote: "octo-org/octo-repo", "github.com", "origin", "/dir"
    )
    assert ghc.repository == "octo-org/octo-repo"
    assert ghc.repository_owner == "octo-org"


def test_set_repository_and_owner_lookup_failure():
    def failing(path, instance, remote):
        raise RuntimeError("no remote")

    ghc = GithubContext()
    ghc.set_repository_and_owner(failing, "github.com", "origin", "/dir")
    assert (ghc.repository, ghc.repository_owner) == ("", "")


def test_set_repository_keeps_existing():
    ghc = GithubContext(repository="owner/name")
    ghc.set_repository_and_owner(_no_ref, "github.com", "origin", "/dir")
    assert ghc.repository_owner == "owner"


def test_set_ref_type_and_name_tag_and_existing_values():
    ghc = GithubContext(ref="refs/tags/v2")
    ghc.set_ref_type_and_name()
    assert (ghc.ref_type, ghc.ref_name) == ("tag", "v2")
    preset = GithubContext(ref="refs/heads/main", ref_type="custom", ref_name="kept")
    preset.set_ref_type_and_name()
    assert (preset.ref_type, preset.ref_name) == ("custom", "kept")


def test_set_base_and_head_ref():
    event = {"pull_request": {"base": {"ref": "main"}, "head": {"ref": "feature"}}}
    ghc = GithubContext(event_name="pull_request", event=event)
    ghc.set_base_and_head_ref()
    assert (ghc.base_ref, ghc.head_ref) == ("main", "feature")
    other = GithubContext(event_name="push", event=event)
    other.set_base_and_head_ref()
    assert (other.base_ref, other.head_ref) == ("", "")


def test_nested_map_lookup():
    data = {"a": {"b": {"c": 1}}, "x": "leaf"}
    assert nested_map_lookup(data, "a", "b", "c") == 1
    assert nested_map_lookup(data, "a", "missing") is None
    assert nested_map_lookup(data, "x", "y") is None
    assert nested_map_lookup(data) is None