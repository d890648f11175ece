"""Workflow files: triggers, jobs, strategies and matrices."""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import IO, Any, Callable, Mapping, TypeVar

import yaml

from ghaflow.step import (
    ContainerSpec,
    Step,
    _as_bool,
    _scalar_text,
    _string_list,
    _string_map,
    container_spec_from_dict,
    environment_of,
    step_from_dict,
)

_log = logging.getLogger(__name__)

_T = TypeVar("_T")


class WorkflowError(ValueError):
    """A workflow document is malformed or not valid."""


class _Loader(yaml.SafeLoader):
    """Safe loader that only treats true/false as booleans, so ``on`` stays a key."""


_Loader.yaml_implicit_resolvers = {
    first: [(tag, rx) for tag, rx in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}

_YAML_FILE = re.compile(r"\.(ya?ml)(?:$|@)")
_REMOTE_PATH = re.compile(r"^[^.](.+?/){2,}.+\.ya?ml@")
_HAS_VERSION = re.compile(r"\.ya?ml@")


def _decode(convert: Callable[[Any], _T], value: Any, what: str) -> _T:
    """Convert a raw YAML value, raising WorkflowError when it has the wrong shape."""
    try:
        return convert(value)
    except WorkflowError:
        raise
    except (ValueError, TypeError) as exc:
        raise WorkflowError(f"Failed to decode node {value!r} into {what}: {exc}") from exc


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise WorkflowError(f"Failed to decode node {value!r} into {what}")
    return value


def _is_scalar(value: Any) -> bool:
    return value is not None and not isinstance(value, (Mapping, list))


def _node_as_string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return _decode(_string_list, value, "a string list")
    if _is_scalar(value):
        return [_decode(_scalar_text, value, "a string")]
    return []


def _deep_equal(a: Any, b: Any) -> bool:
    if type(a) is not type(b):
        return False
    if isinstance(a, Mapping):
        return a.keys() == b.keys() and all(_deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, list):
        return len(a) == len(b) and all(_deep_equal(x, y) for x, y in zip(a, b))
    return a == b


def cartesian_product(mapping: Mapping[str, list[Any]]) -> list[dict[str, Any]]:
    """Every combination taking one value from each list, keyed by list name."""
    names = list(mapping)
    lists = [list(mapping[name]) for name in names]
    if not names or any(not values for values in lists):
        return []
    return [dict(zip(names, combo)) for combo in itertools.product(*lists)]


@dataclass
class RunDefaults:
    """Defaults for every ``run`` step."""

    shell: str = ""
    working_directory: str = ""


@dataclass
class Defaults:
    """Default settings applied to the steps of a job or workflow."""

    run: RunDefaults = field(default_factory=RunDefaults)


def _defaults_from(value: Any) -> Defaults:
    run = _mapping(_mapping(value, "defaults").get("run"), "run defaults")
    return Defaults(
        run=RunDefaults(
            shell=_decode(_scalar_text, run.get("shell"), "a string"),
            working_directory=_decode(_scalar_text, run.get("working-directory"), "a string"),
        )
    )


@dataclass
class WorkflowDispatchInput:
    """An input of a manually dispatched workflow."""

    description: str = ""
    required: bool = False
    default: str = ""
    type: str = ""
    options: list[str] = field(default_factory=list)


@dataclass
class WorkflowDispatch:
    """Configuration of the ``workflow_dispatch`` trigger."""

    inputs: dict[str, WorkflowDispatchInput] = field(default_factory=dict)


@dataclass
class WorkflowCallInput:
    """An input of a reusable workflow."""

    description: str = ""
    required: bool = False
    default: str = ""
    type: str = ""


@dataclass
class WorkflowCallOutput:
    """An output of a reusable workflow."""

    description: str = ""
    value: str = ""


@dataclass
class WorkflowCall:
    """Configuration of the ``workflow_call`` trigger."""

    inputs: dict[str, WorkflowCallInput] = field(default_factory=dict)
    outputs: dict[str, WorkflowCallOutput] = field(default_factory=dict)


@dataclass
class WorkflowCallResult:
    """Outputs produced by a called workflow."""

    outputs: dict[str, str] = field(default_factory=dict)


class JobType(IntEnum):
    """Kind of job a workflow entry describes."""

    DEFAULT = 0
    REUSABLE_WORKFLOW_LOCAL = 1
    REUSABLE_WORKFLOW_REMOTE = 2
    INVALID = 3

    def __str__(self) -> str:
        return {
            JobType.DEFAULT: "default",
            JobType.REUSABLE_WORKFLOW_LOCAL: "local-reusable-workflow",
            JobType.REUSABLE_WORKFLOW_REMOTE: "remote-reusable-workflow",
        }.get(self, "unknown")


@dataclass
class Strategy:
    """The ``strategy`` block of a job."""

    fail_fast: bool = False
    max_parallel: int = 0
    fail_fast_string: str = ""
    max_parallel_string: str = ""
    raw_matrix: Any = None

    def get_max_parallel(self) -> int:
        """The ``max-parallel`` value, 4 when unset and 0 when unparsable."""
        if not self.max_parallel_string:
            return 4
        try:
            return int(self.max_parallel_string.strip() if False else self.max_parallel_string)
        except ValueError as exc:
            _log.error("Failed to parse 'max-parallel' option: %s", exc)
            return 0

    def get_fail_fast(self) -> bool:
        """The ``fail-fast`` value, true when unset and false when unparsable."""
        _log.debug("%s", self.fail_fast_string)
        if not self.fail_fast_string:
            return True
        if self.fail_fast_string in _TRUE_WORDS:
            return True
        if self.fail_fast_string not in _FALSE_WORDS:
            _log.error("Failed to parse 'fail-fast' option: invalid syntax %r", self.fail_fast_string)
        return False


def _strategy_from(value: Any) -> Strategy | None:
    if value is None:
        return None
    data = _mapping(value, "a strategy")
    return Strategy(
        fail_fast_string=_decode(_scalar_text, data.get("fail-fast"), "a string"),
        max_parallel_string=_decode(_scalar_text, data.get("max-parallel"), "a string"),
        raw_matrix=data.get("matrix"),
    )


def _include_matches(include: Mapping[str, Any], matrix: Mapping[str, Any]) -> bool:
    return any(key in matrix for key in include)


def _common_keys_match(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    return all(key not in b or _deep_equal(value, b[key]) for key, value in a.items())


def _common_keys_match2(
    a: Mapping[str, Any], b: Mapping[str, Any], m: Mapping[str, Any]
) -> bool:
    return all(
        key not in m or key not in b or _deep_equal(value, b[key]) for key, value in a.items()
    )


@dataclass
class Job:
    """One job of a workflow."""

    name: str = ""
    raw_needs: Any = None
    raw_runs_on: Any = None
    env: Any = None
    if_: str = ""
    steps: list[Step] = field(default_factory=list)
    timeout_minutes: str = ""
    services: dict[str, ContainerSpec] = field(default_factory=dict)
    strategy: Strategy | None = None
    raw_container: Any = None
    defaults: Defaults = field(default_factory=Defaults)
    outputs: dict[str, str] = field(default_factory=dict)
    uses: str = ""
    with_: dict[str, Any] = field(default_factory=dict)
    raw_secrets: Any = None
    result: str = ""

    def inherit_secrets(self) -> bool:
        """Whether ``secrets: inherit`` is set."""
        if not _is_scalar(self.raw_secrets):
            return False
        return _decode(_scalar_text, self.raw_secrets, "a string") == "inherit"

    def secrets(self) -> dict[str, str] | None:
        """Secrets passed explicitly to a called workflow, or None."""
        if not isinstance(self.raw_secrets, Mapping):
            return None
        return _decode(_string_map, self.raw_secrets, "a string map")

    def container(self) -> ContainerSpec | None:
        """The job container, given as an image name or a full specification."""
        if isinstance(self.raw_container, Mapping):
            return _decode(container_spec_from_dict, self.raw_container, "a container spec")
        if _is_scalar(self.raw_container):
            return ContainerSpec(image=_decode(_scalar_text, self.raw_container, "a string"))
        return None

    def needs(self) -> list[str]:
        """IDs of the jobs this job depends on."""
        return _node_as_string_list(self.raw_needs)

    def runs_on(self) -> list[str]:
        """Runner labels, with the runner group last when one is given."""
        if isinstance(self.raw_runs_on, Mapping):
            labels = _node_as_string_list(self.raw_runs_on.get("labels"))
            group = _decode(_scalar_text, self.raw_runs_on.get("group"), "a string")
            if group:
                labels.append(group)
            return labels
        return _node_as_string_list(self.raw_runs_on)

    def environment(self) -> dict[str, str]:
        """The job's ``env`` entries."""
        return _decode(environment_of, self.env, "a string map")

    def matrix(self) -> dict[str, list[Any]] | None:
        """The strategy matrix as lists of values, or None when not a mapping."""
        if self.strategy is None or not isinstance(self.strategy.raw_matrix, Mapping):
            return None
        result: dict[str, list[Any]] = {}
        for key, values in self.strategy.raw_matrix.items():
            if values is None:
                values = []
            if not isinstance(values, list):
                raise WorkflowError(f"Failed to decode node {values!r} into a matrix list")
            result[_decode(_scalar_text, key, "a string")] = list(values)
        return result

    def get_matrixes(self) -> list[dict[str, Any]]:
        """The matrix combinations after applying ``include`` and ``exclude``."""
        if self.strategy is None:
            _log.debug("Empty Strategy, matrixes=[{}]")
            return [{}]
        self.strategy.fail_fast = self.strategy.get_fail_fast()
        self.strategy.max_parallel = self.strategy.get_max_parallel()

        m = self.matrix()
        if m is None:
            return [{}]

        includes: list[dict[str, Any]] = []
        extra_includes: list[dict[str, Any]] = []
        for entry in m.get("include", []):
            if entry is None:
                continue
            candidates = entry if isinstance(entry, list) else [entry]
            for include in candidates:
                if not isinstance(include, Mapping):
                    raise WorkflowError(f"Matrix include entry {include!r} is not a mapping")
                if _include_matches(include, m):
                    includes.append(dict(include))
                else:
                    extra_includes.append(dict(include))
        m.pop("include", None)

        excludes: list[Mapping[str, Any]] = []
        for exclude in m.get("exclude", []):
            if not isinstance(exclude, Mapping):
                raise WorkflowError(f"Matrix exclude entry {exclude!r} is not a mapping")
            for key in exclude:
                if key not in m:
                    raise WorkflowError(
                        "the workflow is not valid. Matrix exclude key "
                        f'"{key}" does not match any key within the matrix'
                    )
                excludes.append(exclude)
        m.pop("exclude", None)

        matrixes: list[dict[str, Any]] = []
        for combination in cartesian_product(m):
            if any(_common_keys_match(combination, exclude) for exclude in excludes):
                _log.debug("Skipping matrix '%s' due to exclude", combination)
                continue
            matrixes.append(combination)

        for include in includes:
            matched = False
            for combination in matrixes:
                if _common_keys_match2(combination, include, m):
                    matched = True
                    _log.debug("Adding include values '%s' to existing entry", include)
                    combination.update(include)
            if not matched:
                extra_includes.append(include)

        for include in extra_includes:
            _log.debug("Adding include '%s'", include)
            matrixes.append(include)

        return matrixes or [{}]

    def type(self) -> JobType:
        """Classify the job; raise WorkflowError when ``uses`` is not a valid workflow path."""
        if not self.uses:
            return JobType.DEFAULT
        if _YAML_FILE.search(self.uses):
            if self.uses.startswith("./"):
                return JobType.REUSABLE_WORKFLOW_LOCAL
            if _REMOTE_PATH.search(self.uses) and _HAS_VERSION.search(self.uses):
                return JobType.REUSABLE_WORKFLOW_REMOTE
        raise WorkflowError(
            f"`uses` key references invalid workflow path '{self.uses}'. Must start with './' "
            "if it's a local workflow, or must start with '<org>/<repo>/' and include an '@' "
            "if it's a remote workflow"
        )


def _job_from(value: Any) -> Job:
    data = _mapping(value, "a job")
    steps = data.get("steps") or []
    if not isinstance(steps, list):
        raise WorkflowError(f"Failed to decode node {steps!r} into a step list")
    return Job(
        name=_decode(_scalar_text, data.get("name"), "a string"),
        raw_needs=data.get("needs"),
        raw_runs_on=data.get("runs-on"),
        env=data.get("env"),
        if_=_decode(_scalar_text, data.get("if"), "a string"),
        steps=[_decode(step_from_dict, s, "a step") for s in steps],
        timeout_minutes=_decode(_scalar_text, data.get("timeout-minutes"), "a string"),
        services={
            _decode(_scalar_text, name, "a string"): _decode(
                container_spec_from_dict, spec, "a container spec"
            )
            for name, spec in _mapping(data.get("services"), "services").items()
        },
        strategy=_strategy_from(data.get("strategy")),
        raw_container=data.get("container"),
        defaults=_defaults_from(data.get("defaults")),
        outputs=_decode(_string_map, data.get("outputs"), "a string map"),
        uses=_decode(_scalar_text, data.get("uses"), "a string"),
        with_=dict(_mapping(data.get("with"), "with")),
        raw_secrets=data.get("secrets"),
    )


def _dispatch_from(value: Any) -> WorkflowDispatch:
    data = _mapping(value, "workflow_dispatch")
    return WorkflowDispatch(
        inputs={
            _scalar_text(name): WorkflowDispatchInput(
                description=_scalar_text(spec.get("description")),
                required=_as_bool(spec.get("required")),
                default=_scalar_text(spec.get("default")),
                type=_scalar_text(spec.get("type")),
                options=_string_list(spec.get("options")),
            )
            for name, spec in (
                (n, _mapping(s, "an input"))
                for n, s in _mapping(data.get("inputs"), "inputs").items()
            )
        }
    )


def _call_from(value: Any) -> WorkflowCall:
    data = _mapping(value, "workflow_call")
    return WorkflowCall(
        inputs={
            _scalar_text(name): WorkflowCallInput(
                description=_scalar_text(spec.get("description")),
                required=_as_bool(spec.get("required")),
                default=_scalar_text(spec.get("default")),
                type=_scalar_text(spec.get("type")),
            )
            for name, spec in (
                (n, _mapping(s, "an input"))
                for n, s in _mapping(data.get("inputs"), "inputs").items()
            )
        },
        outputs={
            _scalar_text(name): WorkflowCallOutput(
                description=_scalar_text(spec.get("description")),
                value=_scalar_text(spec.get("value")),
            )
            for name, spec in (
                (n, _mapping(s, "an output"))
                for n, s in _mapping(data.get("outputs"), "outputs").items()
            )
        },
    )


@dataclass
class Workflow:
    """A workflow file from ``.github/workflows``."""

    file: str = ""
    name: str = ""
    raw_on: Any = None
    env: dict[str, str] = field(default_factory=dict)
    jobs: dict[str, Job] = field(default_factory=dict)
    defaults: Defaults = field(default_factory=Defaults)

    def on(self) -> list[str]:
        """Names of the events that trigger the workflow."""
        if isinstance(self.raw_on, Mapping):
            return [_decode(_scalar_text, key, "a string") for key in self.raw_on]
        return _node_as_string_list(self.raw_on)

    def on_event(self, event: str) -> Any:
        """The configuration given for ``event``, or None."""
        if isinstance(self.raw_on, Mapping):
            return self.raw_on.get(event)
        return None

    def workflow_dispatch_config(self) -> WorkflowDispatch | None:
        """The ``workflow_dispatch`` configuration, or None when absent."""
        if not isinstance(self.raw_on, Mapping) or "workflow_dispatch" not in self.raw_on:
            return None
        return _decode(_dispatch_from, self.raw_on["workflow_dispatch"], "workflow_dispatch")

    def workflow_call_config(self) -> WorkflowCall:
        """The ``workflow_call`` configuration; empty when not given as a mapping."""
        if not isinstance(self.raw_on, Mapping):
            return WorkflowCall()
        return _decode(_call_from, self.raw_on.get("workflow_call"), "workflow_call")

    def get_job(self, job_id: str) -> Job | None:
        """The job with this ID, its name and condition defaulted, or None."""
        job = self.jobs.get(job_id)
        if job is None:
            return None
        if not job.name:
            job.name = job_id
        if not job.if_:
            job.if_ = "success()"
        return job

    def get_job_ids(self) -> list[str]:
        """IDs of all jobs in the workflow."""
        return list(self.jobs)


def read_workflow(stream: str | IO[str] | IO[bytes]) -> Workflow:
    """Read a workflow from YAML text or a stream; raise EOFError when empty."""
    try:
        document = yaml.load(stream, Loader=_Loader)  # noqa: S506 - safe loader subclass
    except yaml.YAMLError as exc:
        raise WorkflowError(str(exc)) from exc
    if document is None:
        raise EOFError("EOF")
    data = _mapping(document, "a workflow")
    return Workflow(
        name=_decode(_scalar_text, data.get("name"), "a string"),
        raw_on=data.get("on"),
        env=_decode(_string_map, data.get("env"), "a string map"),
        jobs={
            _decode(_scalar_text, job_id, "a string"): _job_from(job)
            for job_id, job in _mapping(data.get("jobs"), "jobs").items()
        },
        defaults=_defaults_from(data.get("defaults")),
    )