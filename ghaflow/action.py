"""Action metadata files (action.yml / action.yaml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Mapping

import yaml

from ghaflow.step import Step, _as_bool, _scalar_text, _string_list, _string_map, step_from_dict


class ActionRunsUsing(str, Enum):
    """Runtime an action runs with."""

    NODE12 = "node12"
    NODE16 = "node16"
    NODE20 = "node20"
    DOCKER = "docker"
    COMPOSITE = "composite"

    def __str__(self) -> str:
        return self.value


_USING_CHOICES = ["composite", "docker", "node12", "node16", "node20"]


def parse_runs_using(value: Any) -> ActionRunsUsing:
    """Parse ``runs.using`` case-insensitively; raise ValueError when unknown."""
    text = _scalar_text(value).lower()
    try:
        return ActionRunsUsing(text)
    except ValueError:
        choices = " ".join(_USING_CHOICES)
        raise ValueError(
            f"The runs.using key in action.yml must be one of: [{choices}], got {text}"
        ) from None


@dataclass
class Input:
    """An input parameter of an action."""

    description: str = ""
    required: bool = False
    default: str = ""


@dataclass
class Output:
    """An output value of an action."""

    description: str = ""
    value: str = ""


@dataclass
class Branding:
    """Marketplace branding of an action."""

    color: str = ""
    icon: str = ""


@dataclass
class ActionRuns:
    """How an action is run."""

    using: ActionRunsUsing | None = None
    env: dict[str, str] = field(default_factory=dict)
    main: str = ""
    pre: str = ""
    pre_if: str = ""
    post: str = ""
    post_if: str = ""
    image: str = ""
    entrypoint: str = ""
    args: list[str] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)


@dataclass
class Action:
    """Metadata describing an action: inputs, outputs and entry point."""

    name: str = ""
    author: str = ""
    description: str = ""
    inputs: dict[str, Input] = field(default_factory=dict)
    outputs: dict[str, Output] = field(default_factory=dict)
    runs: ActionRuns = field(default_factory=ActionRuns)
    branding: Branding = field(default_factory=Branding)


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Failed to decode {what}: expected a mapping, got {value!r}")
    return value


def _runs_from(data: Mapping[str, Any]) -> ActionRuns:
    using = data.get("using")
    return ActionRuns(
        using=parse_runs_using(using) if using is not None else None,
        env=_string_map(data.get("env")),
        main=_scalar_text(data.get("main")),
        pre=_scalar_text(data.get("pre")),
        pre_if=_scalar_text(data.get("pre-if")),
        post=_scalar_text(data.get("post")),
        post_if=_scalar_text(data.get("post-if")),
        image=_scalar_text(data.get("image")),
        entrypoint=_scalar_text(data.get("entrypoint")),
        args=_string_list(data.get("args")),
        steps=[step_from_dict(s) for s in data.get("steps") or []],
    )


def read_action(stream: str | IO[str] | IO[bytes]) -> Action:
    """Read an action from YAML text or a stream, applying defaults."""
    document = yaml.safe_load(stream)
    if document is None:
        raise ValueError("unable to read action: document is empty")
    data = _mapping(document, "action")

    inputs = {
        _scalar_text(name): Input(
            description=_scalar_text(spec.get("description")),
            required=_as_bool(spec.get("required")),
            default=_scalar_text(spec.get("default")),
        )
        for name, spec in ((n, _mapping(s, "input")) for n, s in _mapping(data.get("inputs"), "inputs").items())
    }
    outputs = {
        _scalar_text(name): Output(
            description=_scalar_text(spec.get("description")),
            value=_scalar_text(spec.get("value")),
        )
        for name, spec in ((n, _mapping(s, "output")) for n, s in _mapping(data.get("outputs"), "outputs").items())
    }
    branding = _mapping(data.get("branding"), "branding")

    action = Action(
        name=_scalar_text(data.get("name")),
        author=_scalar_text(data.get("author")),
        description=_scalar_text(data.get("description")),
        inputs=inputs,
        outputs=outputs,
        runs=_runs_from(_mapping(data.get("runs"), "runs")),
        branding=Branding(
            color=_scalar_text(branding.get("color")),
            icon=_scalar_text(branding.get("icon")),
        ),
    )
    if not action.runs.pre_if:
        action.runs.pre_if = "always()"
    if not action.runs.post_if:
        action.runs.post_if = "always()"
    return action