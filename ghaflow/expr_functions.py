"""Built-in functions available to workflow expressions."""

from __future__ import annotations

import dataclasses
import hashlib
import json
import math
import os
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Iterator, Mapping

from ghaflow.expr_parser import CompareOp
from ghaflow.expr_values import (
    EvaluationError,
    _kind,
    coerce_to_string,
    compare_values,
)

_SCALAR_KINDS = ("string", "int", "float64", "bool", "invalid")


def contains(search: Any, item: Any) -> bool:
    """Case-insensitive substring test, or membership test when ``search`` is a list."""
    if isinstance(search, (list, tuple)):
        return any(compare_values(element, item, CompareOp.EQ) for element in search)
    if _kind(search) in _SCALAR_KINDS:
        return coerce_to_string(item).lower() in coerce_to_string(search).lower()
    return False


def starts_with(search_string: Any, search_value: Any) -> bool:
    """Case-insensitive prefix test."""
    return coerce_to_string(search_string).lower().startswith(
        coerce_to_string(search_value).lower()
    )


def ends_with(search_string: Any, search_value: Any) -> bool:
    """Case-insensitive suffix test."""
    return coerce_to_string(search_string).lower().endswith(
        coerce_to_string(search_value).lower()
    )


class _State(Enum):
    PASS_THROUGH = 0
    BRACKET_OPEN = 1
    BRACKET_CLOSE = 2


_INDEX = re.compile(r"[+-]?[0-9]+")


def _parse_index(text: str, template: str) -> int:
    if not _INDEX.fullmatch(text):
        raise EvaluationError(f"The following format string is invalid: '{template}'")
    index = int(text)
    if not -(2**31) <= index < 2**31:
        raise EvaluationError(f"The following format string is invalid: '{template}'")
    return index


def format_string(template: Any, *args: Any) -> str:
    """Replace ``{N}`` with the N-th argument; ``{{`` and ``}}`` stand for braces."""
    text = coerce_to_string(template)
    output: list[str] = []
    index_text = ""
    state = _State.PASS_THROUGH

    for char in text:
        if state is _State.PASS_THROUGH:
            if char == "{":
                state = _State.BRACKET_OPEN
            elif char == "}":
                state = _State.BRACKET_CLOSE
            else:
                output.append(char)
        elif state is _State.BRACKET_OPEN:
            if char == "{":
                output.append("{")
                index_text = ""
                state = _State.PASS_THROUGH
            elif char == "}":
                index = _parse_index(index_text, text)
                index_text = ""
                if index < 0 or index >= len(args):
                    raise EvaluationError(
                        "The following format string references more arguments "
                        f"than were supplied: '{text}'"
                    )
                output.append(coerce_to_string(args[index]))
                state = _State.PASS_THROUGH
            else:
                index_text += char
        else:
            if char != "}":
                raise EvaluationError("Invalid format parser state")
            output.append("}")
            index_text = ""
            state = _State.PASS_THROUGH

    if state is _State.BRACKET_OPEN:
        raise EvaluationError(
            f"Unclosed brackets. The following format string is invalid: '{text}'"
        )
    if state is _State.BRACKET_CLOSE:
        raise EvaluationError(
            "Closing bracket without opening one. "
            f"The following format string is invalid: '{text}'"
        )
    return "".join(output)


def join(array: Any, separator: Any = ",") -> str:
    """Join the items of a list with ``separator``; other values become their text."""
    sep = coerce_to_string(separator)
    if isinstance(array, (list, tuple)):
        return sep.join(coerce_to_string(item) for item in array)
    return coerce_to_string(array)


def _quote(text: str) -> str:
    parts = ['"']
    for char in text:
        if char == '"':
            parts.append('\\"')
        elif char == "\\":
            parts.append("\\\\")
        elif char == "\n":
            parts.append("\\n")
        elif char == "\r":
            parts.append("\\r")
        elif char == "\t":
            parts.append("\\t")
        elif ord(char) < 0x20 or char in "<>&\u2028\u2029":
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    parts.append('"')
    return "".join(parts)


def _json_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        shown = "NaN" if math.isnan(value) else ("+Inf" if value > 0 else "-Inf")
        raise EvaluationError(
            f"Cannot convert value to JSON. Cause: json: unsupported value: {shown}"
        )
    text = repr(value)
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        mantissa, _, exponent = text.partition("e")
        return f"{mantissa}e{exponent[0]}{int(exponent[1:])}"
    plain = format(Decimal(text), "f")
    if "." in plain:
        plain = plain.rstrip("0").rstrip(".")
    return plain


def _encode(value: Any, depth: int) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return _quote(str(value))
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return _json_float(value)

    pairs: list[tuple[str, Any]] | None = None
    if isinstance(value, Mapping):
        pairs = sorted((str(key), item) for key, item in value.items())
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        pairs = [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]

    inner_pad = "  " * (depth + 1)
    outer_pad = "  " * depth
    if pairs is not None:
        if not pairs:
            return "{}"
        body = ",\n".join(
            f"{inner_pad}{_quote(key)}: {_encode(item, depth + 1)}" for key, item in pairs
        )
        return "{\n" + body + "\n" + outer_pad + "}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        body = ",\n".join(f"{inner_pad}{_encode(item, depth + 1)}" for item in value)
        return "[\n" + body + "\n" + outer_pad + "]"
    raise EvaluationError(
        f"Cannot convert value to JSON. Cause: json: unsupported type: {type(value).__name__}"
    )


def to_json(value: Any) -> str:
    """Serialize a value as indented JSON with sorted object keys."""
    return _encode(value, 0)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character '{name[0]}' looking for beginning of value")


def from_json(value: Any) -> Any:
    """Parse a JSON string; every number becomes a float."""
    if not isinstance(value, str):
        raise EvaluationError(f"Cannot parse non-string type {_kind(value)} as JSON")
    try:
        return json.loads(value, parse_int=float, parse_constant=_reject_constant)
    except ValueError as exc:
        raise EvaluationError(f"Invalid JSON: {exc}") from exc


def _escape_enabled() -> bool:
    return os.sep != "\\"


def _class_char(pattern: str, pos: int) -> tuple[str, int]:
    if pos >= len(pattern) or pattern[pos] in "-]":
        raise ValueError("syntax error in pattern")
    if pattern[pos] == "\\" and _escape_enabled():
        pos += 1
        if pos >= len(pattern):
            raise ValueError("syntax error in pattern")
    return pattern[pos], pos + 1


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern[str]:
    """Translate a shell name pattern; raise ValueError when it is malformed."""
    out: list[str] = []
    pos = 0
    length = len(pattern)
    while pos < length:
        char = pattern[pos]
        if char == "*":
            out.append(".*")
            pos += 1
        elif char == "?":
            out.append(".")
            pos += 1
        elif char == "\\" and _escape_enabled():
            pos += 1
            if pos >= length:
                raise ValueError("syntax error in pattern")
            out.append(re.escape(pattern[pos]))
            pos += 1
        elif char == "[":
            pos += 1
            negate = pos < length and pattern[pos] == "^"
            if negate:
                pos += 1
            ranges: list[tuple[str, str]] = []
            while True:
                if pos < length and pattern[pos] == "]" and ranges:
                    pos += 1
                    break
                low, pos = _class_char(pattern, pos)
                high = low
                if pos < length and pattern[pos] == "-":
                    high, pos = _class_char(pattern, pos + 1)
                ranges.append((low, high))
            valid = [(lo, hi) for lo, hi in ranges if lo <= hi]
            if not valid:
                out.append("." if negate else "(?!)")
            else:
                body = "".join(f"{re.escape(lo)}-{re.escape(hi)}" for lo, hi in valid)
                out.append(f"[{'^' if negate else ''}{body}]")
        else:
            out.append(re.escape(char))
            pos += 1
    return re.compile("".join(out), re.DOTALL)


def _name_match(pattern: str, name: str) -> bool | None:
    """Whether ``name`` matches; None when the pattern is malformed."""
    try:
        regex = _glob_regex(pattern)
    except ValueError:
        return None
    return regex.fullmatch(name) is not None


@dataclass
class _IgnorePattern:
    """One gitignore-style pattern relative to the working directory."""

    parts: list[str]
    inclusion: bool = False
    dir_only: bool = False
    is_glob: bool = False

    @classmethod
    def parse(cls, text: str) -> "_IgnorePattern":
        inclusion = text.startswith("!")
        if inclusion:
            text = text[1:]
        if not text.endswith("\\ "):
            text = text.rstrip(" ")
        dir_only = text.endswith("/")
        if dir_only:
            text = text[:-1]
        return cls(
            parts=text.split("/"),
            inclusion=inclusion,
            dir_only=dir_only,
            is_glob="/" in text,
        )

    def match(self, path: list[str], is_dir: bool) -> bool | None:
        """True when excluded (selected), False when re-included, None on no match."""
        if not path:
            return None
        matched = self._glob_match(path, is_dir) if self.is_glob else self._simple_match(path, is_dir)
        if not matched:
            return None
        return not self.inclusion

    def _simple_match(self, path: list[str], is_dir: bool) -> bool:
        for position, name in enumerate(path):
            result = _name_match(self.parts[0], name)
            if result is None:
                return False
            if not result:
                continue
            return not (self.dir_only and not is_dir and position == len(path) - 1)
        return False

    def _glob_match(self, path: list[str], is_dir: bool) -> bool:
        remaining = list(path)
        matched = False
        can_traverse = False
        for position, part in enumerate(self.parts):
            if part == "":
                can_traverse = False
                continue
            if part == "**":
                if position == len(self.parts) - 1:
                    break
                can_traverse = True
                continue
            if "**" in part:
                return False
            if not remaining:
                return False
            if can_traverse:
                can_traverse = False
                while remaining:
                    element = remaining.pop(0)
                    result = _name_match(part, element)
                    if result is None:
                        return False
                    if result:
                        matched = True
                        break
                    if not remaining:
                        matched = False
            else:
                if not _name_match(part, remaining[0]):
                    return False
                matched = True
                remaining.pop(0)
        if matched and self.dir_only and not is_dir and not remaining:
            matched = False
        return matched


def _selected(patterns: list[_IgnorePattern], path: list[str], is_dir: bool) -> bool:
    for pattern in reversed(patterns):
        result = pattern.match(path, is_dir)
        if result is not None:
            return result
    return False


def _walk(root: str) -> Iterator[tuple[str, bool]]:
    """Yield (path, is_dir) for ``root`` and everything below it, in lexical order."""
    is_dir = os.path.isdir(root) and not os.path.islink(root)
    os.lstat(root)
    yield root, is_dir
    if is_dir:
        yield from _walk_dir(root)


def _walk_dir(directory: str) -> Iterator[tuple[str, bool]]:
    with os.scandir(directory) as iterator:
        entries = sorted(iterator, key=lambda entry: entry.name)
    for entry in entries:
        is_dir = entry.is_dir(follow_symlinks=False)
        yield entry.path, is_dir
        if is_dir:
            yield from _walk_dir(entry.path)


def hash_files(working_dir: str, *args: Any) -> str:
    """SHA-256 over the contents of every file below ``working_dir`` that the patterns select.

    Returns an empty string when no file matches.
    """
    cwd_prefix = "." + os.sep
    exclude_cwd_prefix = "!" + cwd_prefix
    patterns: list[_IgnorePattern] = []
    for path in args:
        if not isinstance(path, str):
            raise EvaluationError("Non-string path passed to hashFiles")
        clean = str(path)
        if clean.startswith(cwd_prefix):
            clean = clean[len(cwd_prefix):]
        elif clean.startswith(exclude_cwd_prefix):
            clean = "!" + clean[len(exclude_cwd_prefix):]
        patterns.append(_IgnorePattern.parse(clean))

    prefix = working_dir + os.sep
    files: list[str] = []
    try:
        for path, is_dir in _walk(working_dir):
            if is_dir:
                continue
            relative = path[len(prefix):] if path.startswith(prefix) else path
            if _selected(patterns, relative.split(os.sep), is_dir):
                files.append(path)
    except OSError as exc:
        raise EvaluationError(f"Unable to walk '{working_dir}': {exc}") from exc

    if not files:
        return ""

    hasher = hashlib.sha256()
    for path in files:
        try:
            with open(path, "rb") as stream:
                for chunk in iter(lambda: stream.read(65536), b""):
                    hasher.update(chunk)
        except OSError as exc:
            raise EvaluationError(f"Unable to read '{path}': {exc}") from exc
    return hasher.hexdigest()