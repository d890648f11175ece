"""Workflow steps and container specifications."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping

_SHELL_COMMANDS = {
    "": "bash --noprofile --norc -e -o pipefail {0}",
    "bash": "bash --noprofile --norc -e -o pipefail {0}",
    "pwsh": "pwsh -command . '{0}'",
    "python": "python {0}",
    "sh": "sh -e {0}",
    "cmd": 'cmd /D /E:ON /V:OFF /S /C "CALL "{0}""',
    "powershell": "powershell -command . '{0}'",
}

_INPUT_KEY_INVALID = re.compile(r"[^A-Z0-9-]")


def _scalar_text(value: Any) -> str:
    """Render a YAML scalar the way it reads in the document."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ValueError(f"Failed to decode node {value!r} into a string")
    return str(value)


def _as_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    text = str(value).lower()
    if text in ("true", "false"):
        return text == "true"
    raise ValueError(f"Failed to decode node {value!r} into a bool")


def _string_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Failed to decode node {value!r} into a string map")
    return {_scalar_text(k): _scalar_text(v) for k, v in value.items()}


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Failed to decode node {value!r} into a string list")
    return [_scalar_text(item) for item in value]


def environment_of(raw: Any) -> dict[str, str]:
    """Return the string map held by a raw ``env`` node; non-mappings give {}."""
    if not isinstance(raw, Mapping):
        return {}
    return _string_map(raw)


class StepType(IntEnum):
    """Kind of work a step performs."""

    RUN = 0
    USES_DOCKER_URL = 1
    USES_ACTION_LOCAL = 2
    USES_ACTION_REMOTE = 3
    REUSABLE_WORKFLOW_LOCAL = 4
    REUSABLE_WORKFLOW_REMOTE = 5
    INVALID = 6

    def __str__(self) -> str:
        return _STEP_TYPE_NAMES[self]


_STEP_TYPE_NAMES = {
    StepType.INVALID: "invalid",
    StepType.RUN: "run",
    StepType.USES_ACTION_LOCAL: "local-action",
    StepType.USES_ACTION_REMOTE: "remote-action",
    StepType.USES_DOCKER_URL: "docker",
    StepType.REUSABLE_WORKFLOW_LOCAL: "local-reusable-workflow",
    StepType.REUSABLE_WORKFLOW_REMOTE: "remote-reusable-workflow",
}


@dataclass
class ContainerSpec:
    """Specification of a container used by a job or service."""

    image: str = ""
    env: dict[str, str] = field(default_factory=dict)
    ports: list[str] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)
    options: str = ""
    credentials: dict[str, str] = field(default_factory=dict)
    entrypoint: str = ""
    args: str = ""
    name: str = ""
    reuse: bool = False


def container_spec_from_dict(data: Mapping[str, Any] | None) -> ContainerSpec:
    """Build a container specification from its YAML mapping."""
    if data is None:
        return ContainerSpec()
    if not isinstance(data, Mapping):
        raise ValueError(f"Failed to decode node {data!r} into a container spec")
    return ContainerSpec(
        image=_scalar_text(data.get("image")),
        env=_string_map(data.get("env")),
        ports=_string_list(data.get("ports")),
        volumes=_string_list(data.get("volumes")),
        options=_scalar_text(data.get("options")),
        credentials=_string_map(data.get("credentials")),
        entrypoint=_scalar_text(data.get("entrypoint")),
        args=_scalar_text(data.get("args")),
        name=_scalar_text(data.get("name")),
        reuse=_as_bool(data.get("reuse")),
    )


@dataclass
class Step:
    """One step of a job."""

    id: str = ""
    if_: str = ""
    name: str = ""
    uses: str = ""
    run: str = ""
    working_directory: str = ""
    shell: str = ""
    env: Any = None
    with_: dict[str, str] = field(default_factory=dict)
    raw_continue_on_error: str = ""
    timeout_minutes: str = ""

    def __str__(self) -> str:
        return self.name or self.uses or self.run or self.id

    def environment(self) -> dict[str, str]:
        """The step's own ``env`` entries."""
        return environment_of(self.env)

    def get_env(self) -> dict[str, str]:
        """The step's env plus an ``INPUT_*`` entry for every ``with`` value."""
        env = self.environment()
        for key, value in self.with_.items():
            env_key = _INPUT_KEY_INVALID.sub("_", key.upper())
            env[f"INPUT_{env_key.upper()}"] = value
        return env

    def shell_command(self) -> str:
        """The command line template used to run the step's script."""
        return _SHELL_COMMANDS.get(self.shell, self.shell)

    def type(self) -> StepType:
        """Classify the step by its ``run`` and ``uses`` keys."""
        uses = self.uses
        if not self.run and not uses:
            return StepType.INVALID
        if self.run:
            return StepType.INVALID if uses else StepType.RUN
        if uses.startswith("docker://"):
            return StepType.USES_DOCKER_URL
        if uses.startswith("./.github/workflows") and uses.endswith((".yml", ".yaml")):
            return StepType.REUSABLE_WORKFLOW_LOCAL
        if (
            not uses.startswith("./")
            and ".github/workflows" in uses
            and (".yml@" in uses or ".yaml@" in uses)
        ):
            return StepType.REUSABLE_WORKFLOW_REMOTE
        if uses.startswith("./"):
            return StepType.USES_ACTION_LOCAL
        return StepType.USES_ACTION_REMOTE


def step_from_dict(data: Mapping[str, Any] | None) -> Step:
    """Build a step from its YAML mapping."""
    if data is None:
        return Step()
    if not isinstance(data, Mapping):
        raise ValueError(f"Failed to decode node {data!r} into a step")
    return Step(
        id=_scalar_text(data.get("id")),
        if_=_scalar_text(data.get("if")),
        name=_scalar_text(data.get("name")),
        uses=_scalar_text(data.get("uses")),
        run=_scalar_text(data.get("run")),
        working_directory=_scalar_text(data.get("working-directory")),
        shell=_scalar_text(data.get("shell")),
        env=data.get("env"),
        with_=_string_map(data.get("with")),
        raw_continue_on_error=_scalar_text(data.get("continue-on-error")),
        timeout_minutes=_scalar_text(data.get("timeout-minutes")),
    )