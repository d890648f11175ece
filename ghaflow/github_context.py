"""The ``github`` context describing the event that triggered a run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

_log = logging.getLogger(__name__)


def _as_string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def nested_map_lookup(mapping: Mapping[str, Any], *args: str) -> Any:
    """Follow ``args`` through nested mappings; None when any step is missing."""
    if not args:
        return None
    current: Any = mapping
    for key in args:
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def _with_default_branch(branch: str, event: dict[str, Any]) -> dict[str, Any]:
    repo = event.get("repository", {})
    if not isinstance(repo, dict):
        _log.warning("unable to set default branch to %s", branch)
        return event
    if "default_branch" in repo:
        return event
    repo["default_branch"] = branch
    event["repository"] = repo
    return event


def _format_pr_number(number: Any) -> str:
    if isinstance(number, (int, float)) and not isinstance(number, bool):
        return f"{number:.0f}"
    if number is None:
        return "%!f(<nil>)"
    return f"%!f({type(number).__name__}={number})"


@dataclass
class GithubContext:
    """Information about the workflow run and the event that triggered it."""

    event: dict[str, Any] = field(default_factory=dict)
    event_path: str = ""
    workflow: str = ""
    run_id: str = ""
    run_number: str = ""
    actor: str = ""
    repository: str = ""
    event_name: str = ""
    sha: str = ""
    ref: str = ""
    ref_name: str = ""
    ref_type: str = ""
    head_ref: str = ""
    base_ref: str = ""
    token: str = ""
    workspace: str = ""
    action: str = ""
    action_path: str = ""
    action_ref: str = ""
    action_repository: str = ""
    job: str = ""
    job_name: str = ""
    repository_owner: str = ""
    retention_days: str = ""
    runner_perflog: str = ""
    runner_tracking_id: str = ""
    server_url: str = ""
    api_url: str = ""
    graphql_url: str = ""

    def set_ref(
        self,
        default_branch: str,
        repo_path: str,
        find_git_ref: Callable[[str], str],
    ) -> None:
        """Derive ``ref`` from the event, falling back to the repository's ref."""
        if self.event is None:
            self.event = {}
        event = self.event
        name = self.event_name
        if name == "pull_request_target":
            self.ref = f"refs/heads/{self.base_ref}"
        elif name in ("pull_request", "pull_request_review", "pull_request_review_comment"):
            self.ref = f"refs/pull/{_format_pr_number(event.get('number'))}/merge"
        elif name in ("deployment", "deployment_status"):
            self.ref = _as_string(nested_map_lookup(event, "deployment", "ref"))
        elif name == "release":
            tag = _as_string(nested_map_lookup(event, "release", "tag_name"))
            self.ref = f"refs/tags/{tag}"
        elif name in ("push", "create", "workflow_dispatch"):
            self.ref = _as_string(event.get("ref"))
        else:
            branch = _as_string(nested_map_lookup(event, "repository", "default_branch"))
            if branch:
                self.ref = f"refs/heads/{branch}"

        if self.ref:
            return

        try:
            ref = find_git_ref(repo_path)
        except Exception as exc:  # any lookup failure only degrades to a default
            _log.warning("unable to get git ref: %s", exc)
        else:
            _log.debug("using github ref: %s", ref)
            self.ref = ref

        self.event = _with_default_branch(default_branch or "master", self.event)

        if not self.ref:
            branch = _as_string(nested_map_lookup(self.event, "repository", "default_branch"))
            self.ref = f"refs/heads/{branch}"

    def set_sha(
        self,
        repo_path: str,
        find_git_revision: Callable[[str], tuple[str, str]],
    ) -> None:
        """Derive ``sha`` from the event, falling back to the repository's revision."""
        event = self.event or {}
        name = self.event_name
        if name == "pull_request_target":
            self.sha = _as_string(nested_map_lookup(event, "pull_request", "base", "sha"))
        elif name in ("deployment", "deployment_status"):
            self.sha = _as_string(nested_map_lookup(event, "deployment", "sha"))
        elif name in ("push", "create", "workflow_dispatch"):
            deleted = event.get("deleted")
            if isinstance(deleted, bool) and not deleted:
                self.sha = _as_string(event.get("after"))

        if not self.sha:
            try:
                _, sha = find_git_revision(repo_path)
            except Exception as exc:  # any lookup failure leaves sha empty
                _log.warning("unable to get git revision: %s", exc)
            else:
                self.sha = sha

    def set_repository_and_owner(
        self,
        find_github_repo: Callable[[str, str, str], str],
        github_instance: str,
        remote_name: str,
        repo_path: str,
    ) -> None:
        """Fill in ``repository`` when missing, then ``repository_owner``."""
        if not self.repository:
            try:
                repo = find_github_repo(repo_path, github_instance, remote_name)
            except Exception as exc:  # any lookup failure leaves both fields untouched
                _log.warning("unable to get git repo: %s", exc)
                return
            self.repository = repo
        self.repository_owner = self.repository.split("/")[0]

    def set_ref_type_and_name(self) -> None:
        """Fill in ``ref_type`` and ``ref_name`` from ``ref`` where not already set."""
        ref_type = ref_name = ""
        for prefix, kind in (("refs/tags/", "tag"), ("refs/heads/", "branch"), ("refs/pull/", "")):
            if self.ref.startswith(prefix):
                ref_type = kind
                ref_name = self.ref[len(prefix):]
                break
        if not self.ref_type:
            self.ref_type = ref_type
        if not self.ref_name:
            self.ref_name = ref_name

    def set_base_and_head_ref(self) -> None:
        """Fill in base and head refs for pull request events where not already set."""
        if self.event_name not in ("pull_request", "pull_request_target"):
            return
        event = self.event or {}
        if not self.base_ref:
            self.base_ref = _as_string(nested_map_lookup(event, "pull_request", "base", "ref"))
        if not self.head_ref:
            self.head_ref = _as_string(nested_map_lookup(event, "pull_request", "head", "ref"))