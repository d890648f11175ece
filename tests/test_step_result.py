import pytest

from ghaflow.step_result import StepResult, StepStatus, parse_step_status


@pytest.mark.parametrize("status", list(StepStatus))
def test_round_trip(status):
    assert parse_step_status(str(status)) is status


@pytest.mark.parametrize(
    "text, expected",
    [
        ("success", StepStatus.SUCCESS),
        ("failure", StepStatus.FAILURE),
        ("skipped", StepStatus.SKIPPED),
    ],
)
def test_text_forms(text, expected):
    status = parse_step_status(text)
    assert status is expected
    assert str(status) == text


def test_status_compares_as_string():
    assert parse_step_status("skipped") == "skipped"


def test_invalid_status():
    with pytest.raises(ValueError, match='invalid step status "bogus"'):
        parse_step_status("bogus")


def test_step_result_defaults():
    result = StepResult()
    assert result.outputs == {}
    assert result.conclusion is StepStatus.SUCCESS
    assert result.outcome is StepStatus.SUCCESS


def test_step_result_outputs_are_independent():
    first = StepResult()
    second = StepResult()
    first.outputs["name"] = "value"
    assert second.outputs == {}