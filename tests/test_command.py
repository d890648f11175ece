import pytest

from ghaflow.command import (
    ActionCommand,
    parse_key_value_pairs,
    try_parse_raw_action_command,
    unescape_command_data,
    unescape_command_property,
    unescape_kv_pairs,
)


def test_parse_github_command():
    parsed = try_parse_raw_action_command("::set-output name=foo::bar\n")
    assert parsed == ActionCommand(command="set-output", kv_pairs={"name": "foo"}, arg="bar")


def test_parse_github_command_without_properties():
    parsed = try_parse_raw_action_command("::add-path::/usr/local/bin\r\n")
    assert parsed.command == "add-path"
    assert parsed.kv_pairs == {}
    assert parsed.arg == "/usr/local/bin"


def test_parse_azure_command_uses_semicolons():
    parsed = try_parse_raw_action_command("##[set-env name=A;other=B]value\n")
    assert parsed.command == "set-env"
    assert parsed.kv_pairs == {"name": "A", "other": "B"}
    assert parsed.arg == "value"


@pytest.mark.parametrize(
    "line",
    ["plain output\n", "::set-output name=foo::bar", "::debug::", "::::x\n"],
)
def test_non_commands_are_rejected(line):
    assert try_parse_raw_action_command(line) is None


def test_parse_key_value_pairs_drops_malformed():
    assert parse_key_value_pairs("a=1,b,c=2=3,d=4", ",") == {"a": "1", "d": "4"}


def test_parse_key_value_pairs_empty():
    assert parse_key_value_pairs("", ",") == {}


def test_unescape_command_data():
    assert unescape_command_data("100%25") == "100%"
    assert unescape_command_data("a%0Db") == "a\rb"
    assert unescape_command_data("%3A") == "%3A"


def test_unescape_command_property():
    assert unescape_command_property("%3A") == ":"
    assert unescape_command_property("%2C") == ","
    assert unescape_command_property("%0A") == "\n"


def test_unescape_kv_pairs_leaves_input_untouched():
    original = {"name": "a%2Cb"}
    result = unescape_kv_pairs(original)
    assert result == {"name": "a,b"}
    assert original == {"name": "a%2Cb"}


def test_unescape_round_trip_plain_text():
    text = "nothing to unescape"
    assert unescape_command_data(text) == text
    assert unescape_command_property(text) == text