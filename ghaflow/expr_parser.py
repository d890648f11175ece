"""Parsing workflow expressions (the text inside ``${{ }}``) into syntax trees."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, NamedTuple, Union


class ExprSyntaxError(ValueError):
    """An expression could not be tokenized or parsed."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset


class CompareOp(str, Enum):
    """Comparison operators."""

    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="
    EQ = "=="
    NOT_EQ = "!="

    def __str__(self) -> str:
        return self.value


class LogicalOp(str, Enum):
    """Logical operators."""

    AND = "&&"
    OR = "||"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class VariableNode:
    """A context name such as ``github`` or ``env``."""

    name: str


@dataclass(frozen=True)
class BoolNode:
    """A ``true`` or ``false`` literal."""

    value: bool


@dataclass(frozen=True)
class NullNode:
    """The ``null`` literal."""


@dataclass(frozen=True)
class IntNode:
    """An integer literal."""

    value: int


@dataclass(frozen=True)
class FloatNode:
    """A floating point literal."""

    value: float


@dataclass(frozen=True)
class StringNode:
    """A single-quoted string literal."""

    value: str


@dataclass(frozen=True)
class IndexAccessNode:
    """``operand[index]``."""

    operand: _Node
    index: _Node


@dataclass(frozen=True)
class ObjectDerefNode:
    """``receiver.property``."""

    receiver: _Node
    property: str


@dataclass(frozen=True)
class ArrayDerefNode:
    """``receiver.*`` or ``receiver[*]``."""

    receiver: _Node


@dataclass(frozen=True)
class NotOpNode:
    """``!operand``."""

    operand: _Node


@dataclass(frozen=True)
class CompareOpNode:
    """A comparison between two operands."""

    kind: CompareOp
    left: _Node
    right: _Node


@dataclass(frozen=True)
class LogicalOpNode:
    """``left && right`` or ``left || right``."""

    kind: LogicalOp
    left: _Node
    right: _Node


@dataclass(frozen=True)
class FuncCallNode:
    """A call of a named function."""

    callee: str
    args: tuple = ()


_Node = Union[
    VariableNode,
    BoolNode,
    NullNode,
    IntNode,
    FloatNode,
    StringNode,
    IndexAccessNode,
    ObjectDerefNode,
    ArrayDerefNode,
    NotOpNode,
    CompareOpNode,
    LogicalOpNode,
    FuncCallNode,
]

_IDENT = "ident"
_INT = "int"
_FLOAT = "float"
_STRING = "string"
_END = "end"

_WHITESPACE = " \t\r\n"
_OPERATORS = ("==", "!=", "<=", ">=", "&&", "||", "!", "<", ">", "(", ")", "[", "]", ".", ",", "*")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
_NUMBER_RE = re.compile(
    r"-?(?:0[xX][0-9A-Fa-f]+|0[oO][0-7]+|[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?)"
)
_IDENT_CHAR_RE = re.compile(r"[A-Za-z0-9_]")

_COMPARE_TOKENS = {op.value: op for op in CompareOp}


class _Token(NamedTuple):
    kind: str
    value: object
    offset: int


def _number_token(text: str, offset: int) -> _Token:
    negative = text.startswith("-")
    body = text[1:] if negative else text
    sign = -1 if negative else 1
    prefix = body[:2].lower()
    if prefix == "0x":
        return _Token(_INT, sign * int(body[2:], 16), offset)
    if prefix == "0o":
        return _Token(_INT, sign * int(body[2:], 8), offset)
    if any(c in body for c in ".eE"):
        return _Token(_FLOAT, float(text), offset)
    return _Token(_INT, int(text, 10), offset)


def _lex_string(source: str, start: int) -> tuple[str, int]:
    parts: list[str] = []
    pos = start + 1
    while True:
        end = source.find("'", pos)
        if end < 0:
            raise ExprSyntaxError("unterminated string literal", start)
        parts.append(source[pos:end])
        if source.startswith("''", end):
            parts.append("'")
            pos = end + 2
            continue
        return "".join(parts), end + 1


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    length = len(source)
    while True:
        while pos < length and source[pos] in _WHITESPACE:
            pos += 1
        if pos >= length or source.startswith("}}", pos):
            tokens.append(_Token(_END, "", pos))
            return tokens

        char = source[pos]
        if char == "'":
            value, pos_after = _lex_string(source, pos)
            tokens.append(_Token(_STRING, value, pos))
            pos = pos_after
            continue

        if char.isdigit() or char == "-":
            match = _NUMBER_RE.match(source, pos)
            if match is None:
                raise ExprSyntaxError(f"unexpected character {char!r}", pos)
            end = match.end()
            if end < length and _IDENT_CHAR_RE.match(source[end]):
                raise ExprSyntaxError(
                    f"invalid character {source[end]!r} after number {match.group(0)!r}", end
                )
            tokens.append(_number_token(match.group(0), pos))
            pos = end
            continue

        match = _IDENT_RE.match(source, pos)
        if match is not None:
            tokens.append(_Token(_IDENT, match.group(0), pos))
            pos = match.end()
            continue

        for operator in _OPERATORS:
            if source.startswith(operator, pos):
                tokens.append(_Token(operator, operator, pos))
                pos += len(operator)
                break
        else:
            raise ExprSyntaxError(f"unexpected character {char!r}", pos)


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> _Token:
        return self._tokens[self._pos]

    def _next(self) -> _Token:
        token = self._tokens[self._pos]
        if token.kind != _END:
            self._pos += 1
        return token

    def _expect(self, kind: str, context: str) -> _Token:
        token = self._next()
        if token.kind != kind:
            raise ExprSyntaxError(
                f"expected {kind!r} {context} but found {_describe(token)}", token.offset
            )
        return token

    def parse(self) -> _Node:
        if self._peek().kind == _END:
            raise ExprSyntaxError("expression is empty", self._peek().offset)
        node = self._logical_or()
        token = self._peek()
        if token.kind != _END:
            raise ExprSyntaxError(
                f"unexpected {_describe(token)} after the end of the expression", token.offset
            )
        return node

    def _logical_or(self) -> _Node:
        left = self._logical_and()
        if self._peek().kind == "||":
            self._next()
            return LogicalOpNode(LogicalOp.OR, left, self._logical_or())
        return left

    def _logical_and(self) -> _Node:
        left = self._compare()
        if self._peek().kind == "&&":
            self._next()
            return LogicalOpNode(LogicalOp.AND, left, self._logical_and())
        return left

    def _compare(self) -> _Node:
        left = self._prefix()
        op = _COMPARE_TOKENS.get(self._peek().kind)
        if op is not None:
            self._next()
            return CompareOpNode(op, left, self._compare())
        return left

    def _prefix(self) -> _Node:
        if self._peek().kind == "!":
            self._next()
            return NotOpNode(self._prefix())
        return self._postfix()

    def _postfix(self) -> _Node:
        node = self._primary()
        while True:
            kind = self._peek().kind
            if kind == ".":
                self._next()
                token = self._next()
                if token.kind == _IDENT:
                    node = ObjectDerefNode(node, str(token.value))
                elif token.kind == "*":
                    node = ArrayDerefNode(node)
                else:
                    raise ExprSyntaxError(
                        f"expected property name or '*' after '.' but found {_describe(token)}",
                        token.offset,
                    )
            elif kind == "[":
                self._next()
                if self._peek().kind == "*":
                    self._next()
                    self._expect("]", "to close '[*'")
                    node = ArrayDerefNode(node)
                else:
                    index = self._logical_or()
                    self._expect("]", "to close index access")
                    node = IndexAccessNode(node, index)
            else:
                return node

    def _primary(self) -> _Node:
        token = self._next()
        if token.kind == _IDENT:
            name = str(token.value)
            if self._peek().kind == "(":
                return self._call(name)
            if name == "null":
                return NullNode()
            if name in ("true", "false"):
                return BoolNode(name == "true")
            return VariableNode(name)
        if token.kind == _INT:
            return IntNode(int(token.value))
        if token.kind == _FLOAT:
            return FloatNode(float(token.value))
        if token.kind == _STRING:
            return StringNode(str(token.value))
        if token.kind == "(":
            node = self._logical_or()
            self._expect(")", "to close parenthesis")
            return node
        raise ExprSyntaxError(f"unexpected {_describe(token)} while parsing operand", token.offset)

    def _call(self, callee: str) -> FuncCallNode:
        self._expect("(", "to start arguments")
        args: list[_Node] = []
        if self._peek().kind == ")":
            self._next()
            return FuncCallNode(callee, ())
        while True:
            args.append(self._logical_or())
            token = self._next()
            if token.kind == ")":
                return FuncCallNode(callee, tuple(args))
            if token.kind != ",":
                raise ExprSyntaxError(
                    f"expected ',' or ')' in call of {callee} but found {_describe(token)}",
                    token.offset,
                )


def _describe(token: _Token) -> str:
    if token.kind == _END:
        return "end of input"
    if token.kind in (_IDENT, _INT, _FLOAT, _STRING):
        return f"{token.kind} {token.value!r}"
    return f"{token.kind!r}"


def parse_expression(source: str) -> _Node:
    """Parse an expression; parsing stops at ``}}`` or at the end of the text."""
    return _Parser(_tokenize(source)).parse()


def _children(node: _Node) -> tuple:
    if isinstance(node, IndexAccessNode):
        return (node.operand, node.index)
    if isinstance(node, (ObjectDerefNode, ArrayDerefNode)):
        return (node.receiver,)
    if isinstance(node, NotOpNode):
        return (node.operand,)
    if isinstance(node, (CompareOpNode, LogicalOpNode)):
        return (node.left, node.right)
    if isinstance(node, FuncCallNode):
        return tuple(node.args)
    return ()


def walk(node: _Node) -> Iterator[_Node]:
    """Yield ``node`` and all nodes below it, parents before children, left to right."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(_children(current)))