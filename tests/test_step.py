import pytest

from ghaflow.step import (
    ContainerSpec,
    Step,
    StepType,
    container_spec_from_dict,
    environment_of,
    step_from_dict,
)


@pytest.mark.parametrize(
    "step, expected",
    [
        (Step(run="echo hi"), StepType.RUN),
        (Step(uses="docker://alpine:3"), StepType.USES_DOCKER_URL),
        (Step(uses="./.github/workflows/build.yml"), StepType.REUSABLE_WORKFLOW_LOCAL),
        (Step(uses="org/repo/.github/workflows/build.yaml@v1"), StepType.REUSABLE_WORKFLOW_REMOTE),
        (Step(uses="./my-action"), StepType.USES_ACTION_LOCAL),
        (Step(uses="actions/checkout@v4"), StepType.USES_ACTION_REMOTE),
        (Step(run="echo", uses="actions/checkout@v4"), StepType.INVALID),
        (Step(), StepType.INVALID),
    ],
)
def test_step_type(step, expected):
    assert step.type() is expected


def test_step_type_names():
    assert str(Step(run="echo hi").type()) == "run"
    assert str(Step(uses="./my-action").type()) == "local-action"
    assert str(Step().type()) == "invalid"


def test_shell_command_default_is_bash():
    assert Step().shell_command() == "bash --noprofile --norc -e -o pipefail {0}"
    assert Step(shell="bash").shell_command() == Step().shell_command()


def test_shell_command_known_and_custom():
    assert Step(shell="python").shell_command() == "python {0}"
    assert Step(shell="fish {0}").shell_command() == "fish {0}"


def test_get_env_adds_inputs():
    step = Step(env={"A": "1"}, with_={"who-to.greet": "x"})
    env = step.get_env()
    assert env["A"] == "1"
    assert env["INPUT_WHO-TO_GREET"] == "x"


def test_get_env_keys_are_upper_case_inputs():
    step = Step(with_={"some key": "v", "other": "w"})
    keys = set(step.get_env())
    assert all(k.startswith("INPUT_") and k == k.upper() for k in keys)
    assert len(keys) == 2


def test_environment_of_non_mapping_is_empty():
    assert environment_of("${{ fromJSON(x) }}") == {}
    assert environment_of(None) == {}


def test_environment_of_rejects_nested_values():
    with pytest.raises(ValueError):
        environment_of({"A": {"nested": 1}})


def test_step_from_dict():
    step = step_from_dict(
        {
            "id": "build",
            "uses": "actions/checkout@v4",
            "with": {"fetch-depth": 0},
            "continue-on-error": True,
            "working-directory": "src",
        }
    )
    assert step.id == "build"
    assert step.with_ == {"fetch-depth": "0"}
    assert step.raw_continue_on_error == "true"
    assert step.working_directory == "src"
    assert step.type() is StepType.USES_ACTION_REMOTE


def test_step_str_precedence():
    assert str(Step(id="i", run="r", uses="u", name="n")) == "n"
    assert str(Step(id="i", run="r", uses="u")) == "u"
    assert str(Step(id="i", run="r")) == "r"
    assert str(Step(id="i")) == "i"


def test_container_spec_from_dict():
    spec = container_spec_from_dict(
        {"image": "node:20", "ports": [8080], "env": {"K": "v"}, "reuse": True}
    )
    assert spec.image == "node:20"
    assert spec.ports == ["8080"]
    assert spec.env == {"K": "v"}
    assert spec.reuse is True


def test_container_spec_from_none():
    assert container_spec_from_dict(None) == ContainerSpec()