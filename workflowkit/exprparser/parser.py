"""Lexer and parser for ``${{ }}`` workflow expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, NamedTuple, Union


class ExpressionError(Exception):
    """An expression could not be parsed or evaluated."""


class ExprSyntaxError(ExpressionError):
    """An expression is not well formed."""

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset


class CompareKind(Enum):
    """A comparison operator."""

    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="
    EQ = "=="
    NOT_EQ = "!="


class LogicalKind(Enum):
    """A logical operator."""

    AND = "&&"
    OR = "||"


@dataclass
class VariableNode:
    name: str


@dataclass
class BoolNode:
    value: bool


@dataclass
class NullNode:
    pass


@dataclass
class IntNode:
    value: int


@dataclass
class FloatNode:
    value: float


@dataclass
class StringNode:
    value: str


@dataclass
class IndexAccessNode:
    operand: "ExprNode"
    index: "ExprNode"


@dataclass
class ObjectDerefNode:
    receiver: "ExprNode"
    property: str


@dataclass
class ArrayDerefNode:
    receiver: "ExprNode"


@dataclass
class NotOpNode:
    operand: "ExprNode"


@dataclass
class CompareOpNode:
    kind: CompareKind
    left: "ExprNode"
    right: "ExprNode"


@dataclass
class LogicalOpNode:
    kind: LogicalKind
    left: "ExprNode"
    right: "ExprNode"


@dataclass
class FuncCallNode:
    callee: str
    args: list["ExprNode"] = field(default_factory=list)


ExprNode = Union[
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


class _Token(NamedTuple):
    kind: str  # ident, int, float, string, punct or end
    value: str
    offset: int


_NUMBER_RE = re.compile(
    r"-?(?:0[xX][0-9a-fA-F]+|[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?)"
)
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")
_IDENT_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")
_PUNCTUATION = ("&&", "||", "==", "!=", "<=", ">=", "<", ">", "!", "(", ")", "[", "]", ".", ",", "*")
_WHITESPACE = " \t\r\n"

_COMPARE_EQ = {"==": CompareKind.EQ, "!=": CompareKind.NOT_EQ}
_COMPARE_ORD = {
    "<": CompareKind.LESS,
    "<=": CompareKind.LESS_EQ,
    ">": CompareKind.GREATER,
    ">=": CompareKind.GREATER_EQ,
}


def _lex_string(text: str, start: int) -> tuple[str, int]:
    pos = start + 1
    parts = []
    while True:
        end = text.find("'", pos)
        if end < 0:
            raise ExprSyntaxError(f"unterminated string literal at offset {start}", start)
        parts.append(text[pos:end])
        if text.startswith("''", end):
            parts.append("'")
            pos = end + 2
            continue
        return "".join(parts), end + 1


def tokenize(text: str) -> list[_Token]:
    """Split ``text`` into tokens, stopping at ``}}`` or the end of the text."""
    tokens: list[_Token] = []
    pos = 0
    length = len(text)
    while True:
        while pos < length and text[pos] in _WHITESPACE:
            pos += 1
        if pos >= length or text.startswith("}}", pos):
            tokens.append(_Token("end", "", pos))
            return tokens

        ch = text[pos]
        if ch == "'":
            value, end = _lex_string(text, pos)
            tokens.append(_Token("string", value, pos))
            pos = end
            continue

        if ch.isdigit() or (ch == "-" and pos + 1 < length and text[pos + 1].isdigit()):
            match = _NUMBER_RE.match(text, pos)
            assert match is not None
            end = match.end()
            if end < length and text[end] in _IDENT_CHARS:
                raise ExprSyntaxError(f"invalid number at offset {pos}", pos)
            literal = match.group(0)
            is_float = not literal.lstrip("-")[:2].lower() == "0x" and any(
                c in literal for c in ".eE"
            )
            tokens.append(_Token("float" if is_float else "int", literal, pos))
            pos = end
            continue

        match = _IDENT_RE.match(text, pos)
        if match is not None:
            tokens.append(_Token("ident", match.group(0), pos))
            pos = match.end()
            continue

        for punct in _PUNCTUATION:
            if text.startswith(punct, pos):
                tokens.append(_Token("punct", punct, pos))
                pos += len(punct)
                break
        else:
            raise ExprSyntaxError(f"unexpected character {ch!r} at offset {pos}", pos)


def _parse_int(literal: str) -> int:
    if literal.lstrip("-")[:2].lower() == "0x":
        return int(literal, 16)
    return int(literal, 10)


def _unexpected(token: _Token, expected: str = "") -> ExprSyntaxError:
    if token.kind == "end":
        what = "end of input"
    elif token.kind == "string":
        what = f"string {token.value!r}"
    else:
        what = repr(token.value)
    message = f"unexpected {what} at offset {token.offset}"
    if expected:
        message += f", {expected}"
    return ExprSyntaxError(message, token.offset)


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> _Token:
        return self._tokens[self._pos]

    def _next(self) -> _Token:
        token = self._tokens[self._pos]
        if token.kind != "end":
            self._pos += 1
        return token

    def _at(self, punct: str) -> bool:
        token = self._peek()
        return token.kind == "punct" and token.value == punct

    def _expect(self, punct: str) -> None:
        token = self._next()
        if token.kind != "punct" or token.value != punct:
            raise _unexpected(token, f"expected '{punct}'")

    def parse(self) -> ExprNode:
        node = self._logical_or()
        token = self._peek()
        if token.kind != "end":
            raise _unexpected(token, "expected end of expression")
        return node

    def _logical_or(self) -> ExprNode:
        left = self._logical_and()
        while self._at("||"):
            self._next()
            left = LogicalOpNode(LogicalKind.OR, left, self._logical_and())
        return left

    def _logical_and(self) -> ExprNode:
        left = self._compare_eq()
        while self._at("&&"):
            self._next()
            left = LogicalOpNode(LogicalKind.AND, left, self._compare_eq())
        return left

    def _compare_eq(self) -> ExprNode:
        left = self._compare_ord()
        while self._peek().kind == "punct" and self._peek().value in _COMPARE_EQ:
            kind = _COMPARE_EQ[self._next().value]
            left = CompareOpNode(kind, left, self._compare_ord())
        return left

    def _compare_ord(self) -> ExprNode:
        left = self._unary()
        while self._peek().kind == "punct" and self._peek().value in _COMPARE_ORD:
            kind = _COMPARE_ORD[self._next().value]
            left = CompareOpNode(kind, left, self._unary())
        return left

    def _unary(self) -> ExprNode:
        if self._at("!"):
            self._next()
            return NotOpNode(self._unary())
        return self._postfix()

    def _postfix(self) -> ExprNode:
        node = self._primary()
        while True:
            if self._at("."):
                self._next()
                token = self._next()
                if token.kind == "ident":
                    node = ObjectDerefNode(node, token.value)
                elif token.kind == "punct" and token.value == "*":
                    node = ArrayDerefNode(node)
                else:
                    raise _unexpected(token, "expected property name or '*'")
            elif self._at("["):
                self._next()
                index = self._logical_or()
                self._expect("]")
                node = IndexAccessNode(node, index)
            else:
                return node

    def _arguments(self) -> list[ExprNode]:
        args: list[ExprNode] = []
        if self._at(")"):
            self._next()
            return args
        while True:
            args.append(self._logical_or())
            token = self._next()
            if token.kind == "punct" and token.value == ")":
                return args
            if token.kind != "punct" or token.value != ",":
                raise _unexpected(token, "expected ',' or ')'")

    def _primary(self) -> ExprNode:
        token = self._next()
        if token.kind == "punct" and token.value == "(":
            node = self._logical_or()
            self._expect(")")
            return node
        if token.kind == "int":
            return IntNode(_parse_int(token.value))
        if token.kind == "float":
            return FloatNode(float(token.value))
        if token.kind == "string":
            return StringNode(token.value)
        if token.kind == "ident":
            if token.value == "null":
                return NullNode()
            if token.value == "true":
                return BoolNode(True)
            if token.value == "false":
                return BoolNode(False)
            if self._at("("):
                self._next()
                return FuncCallNode(token.value, self._arguments())
            return VariableNode(token.value)
        raise _unexpected(token)


def parse_expression(text: str) -> ExprNode:
    """Parse an expression; anything after ``}}`` is ignored."""
    return _Parser(tokenize(text)).parse()


def _children(node: ExprNode) -> tuple[ExprNode, ...]:
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


def walk(node: ExprNode) -> Iterator[ExprNode]:
    """Yield ``node`` and all nodes below it, parents before children."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(_children(current)))