"""Workflow commands printed by step output (``::name k=v::arg``)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

_COMMAND_PATTERN_GA = re.compile(r"^::([^ ]+)( (.+))?::([^\r\n]*)[\r\n]+\Z")
_COMMAND_PATTERN_ADO = re.compile(r"^##\[([^ ]+)( (.+))?]([^\r\n]*)[\r\n]+\Z")

_DATA_ESCAPES = {"%25": "%", "%0D": "\r", "%0A": "\n"}
_PROPERTY_ESCAPES = {**_DATA_ESCAPES, "%3A": ":", "%2C": ","}

_DATA_ESCAPE_RE = re.compile("|".join(map(re.escape, _DATA_ESCAPES)))
_PROPERTY_ESCAPE_RE = re.compile("|".join(map(re.escape, _PROPERTY_ESCAPES)))


@dataclass
class ActionCommand:
    """A parsed workflow command."""

    command: str
    kv_pairs: dict[str, str] = field(default_factory=dict)
    arg: str = ""


def parse_key_value_pairs(kv_pairs: str, separator: str) -> dict[str, str]:
    """Split ``k=v`` pairs on ``separator``; entries without exactly one '=' are dropped."""
    result: dict[str, str] = {}
    for pair in kv_pairs.split(separator):
        parts = pair.split("=")
        if len(parts) == 2:
            result[parts[0]] = parts[1]
    return result


def try_parse_raw_action_command(line: str) -> ActionCommand | None:
    """Parse a GitHub (``::``) or Azure (``##[``) command line, or return None."""
    match = _COMMAND_PATTERN_GA.match(line)
    separator = ","
    if match is None:
        match = _COMMAND_PATTERN_ADO.match(line)
        separator = ";"
    if match is None:
        return None
    return ActionCommand(
        command=match.group(1),
        kv_pairs=parse_key_value_pairs(match.group(3) or "", separator),
        arg=match.group(4),
    )


def unescape_command_data(arg: str) -> str:
    """Undo the percent escapes used in a command's data."""
    return _DATA_ESCAPE_RE.sub(lambda m: _DATA_ESCAPES[m.group(0)], arg)


def unescape_command_property(arg: str) -> str:
    """Undo the percent escapes used in a command's property values."""
    return _PROPERTY_ESCAPE_RE.sub(lambda m: _PROPERTY_ESCAPES[m.group(0)], arg)


def unescape_kv_pairs(kv_pairs: Mapping[str, str]) -> dict[str, str]:
    """Return the pairs with every value unescaped as a property."""
    return {key: unescape_command_property(value) for key, value in kv_pairs.items()}