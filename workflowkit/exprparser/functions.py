"""Built-in functions available in expressions."""

from __future__ import annotations

import dataclasses
import hashlib
import json
import math
import os
import re
from enum import Enum
from typing import Any, Iterator

from workflowkit.exprparser.parser import CompareKind, ExpressionError
from workflowkit.exprparser.values import _kind, coerce_to_string, compare_values


def _string(value: Any) -> str:
    result = coerce_to_string(value)
    return result if isinstance(result, str) else str(result)


def contains(search: Any, item: Any) -> bool:
    """Case-insensitive substring test, or element test for arrays."""
    kind = _kind(search)
    if kind in ("string", "int", "float64", "bool", "invalid"):
        return _string(item).lower() in _string(search).lower()
    if kind == "slice":
        return any(compare_values(element, item, CompareKind.EQ) is True for element in search)
    return False


def starts_with(search_string: Any, search_value: Any) -> bool:
    """Case-insensitive prefix test."""
    return _string(search_string).lower().startswith(_string(search_value).lower())


def ends_with(search_string: Any, search_value: Any) -> bool:
    """Case-insensitive suffix test."""
    return _string(search_string).lower().endswith(_string(search_value).lower())


_INDEX_RE = re.compile(r"[+-]?[0-9]+")


def format_string(template: Any, *args: Any) -> str:
    """Replace ``{n}`` with the n-th argument; ``{{`` and ``}}`` are literal braces."""
    text = _string(template)
    output: list[str] = []
    index = ""
    state = "pass"
    for ch in text:
        if state == "pass":
            if ch == "{":
                state = "open"
            elif ch == "}":
                state = "close"
            else:
                output.append(ch)
        elif state == "open":
            if ch == "{":
                output.append("{")
                index = ""
                state = "pass"
            elif ch == "}":
                if not _INDEX_RE.fullmatch(index) or not -(2**31) <= int(index) < 2**31:
                    raise ExpressionError(f"The following format string is invalid: '{text}'")
                number = int(index)
                index = ""
                if number < 0:
                    raise ExpressionError(f"The following format string is invalid: '{text}'")
                if len(args) <= number:
                    raise ExpressionError(
                        "The following format string references more arguments than were "
                        f"supplied: '{text}'"
                    )
                output.append(_string(args[number]))
                state = "pass"
            else:
                index += ch
        else:
            if ch != "}":
                raise ExpressionError("Invalid format parser state")
            output.append("}")
            index = ""
            state = "pass"
    if state == "open":
        raise ExpressionError(
            f"Unclosed brackets. The following format string is invalid: '{text}'"
        )
    if state == "close":
        raise ExpressionError(
            "Closing bracket without opening one. The following format string is invalid: "
            f"'{text}'"
        )
    return "".join(output)


def join(array: Any, separator: Any = ",") -> str:
    """Join array elements with a separator; a non-array becomes its string form."""
    sep = _string(separator)
    if _kind(array) == "slice":
        return sep.join(_string(item) for item in array)
    return _string(array)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if (
        isinstance(value, float)
        and math.isfinite(value)
        and value.is_integer()
        and abs(value) < 1e21
    ):
        return int(value)
    return value


def to_json(value: Any) -> str:
    """Serialise a value as indented JSON; None becomes ``null``."""
    if value is None:
        return "null"
    try:
        text = json.dumps(
            _jsonable(value), indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False
        )
    except (TypeError, ValueError) as err:
        raise ExpressionError(f"Cannot convert value to JSON. Cause: {err}") from err
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character '{name[0]}' looking for beginning of value")


def from_json(value: Any) -> Any:
    """Parse a JSON string; all numbers become floats."""
    if not isinstance(value, str):
        raise ExpressionError(f"Cannot parse non-string type {_kind(value)} as JSON")
    try:
        return json.loads(value, parse_int=float, parse_constant=_reject_constant)
    except ValueError as err:
        raise ExpressionError(f"Invalid JSON: {err}") from err


_GLOB_CACHE: dict[str, re.Pattern | None] = {}


def _glob_regex(pattern: str) -> re.Pattern | None:
    if pattern in _GLOB_CACHE:
        return _GLOB_CACHE[pattern]
    out: list[str] = []
    i = 0
    result: re.Pattern | None = None
    try:
        while i < len(pattern):
            ch = pattern[i]
            if ch == "*":
                out.append(r"[^/]*")
            elif ch == "?":
                out.append(r"[^/]")
            elif ch == "\\":
                i += 1
                if i >= len(pattern):
                    raise ValueError
                out.append(re.escape(pattern[i]))
            elif ch == "[":
                end = i + 1
                negate = end < len(pattern) and pattern[end] == "^"
                if negate:
                    end += 1
                body: list[str] = []
                first = True
                while True:
                    if end >= len(pattern):
                        raise ValueError
                    c = pattern[end]
                    if c == "]" and not first:
                        break
                    if c == "\\":
                        end += 1
                        if end >= len(pattern):
                            raise ValueError
                        c = pattern[end]
                    elif c in "-]" and first:
                        raise ValueError
                    body.append(re.escape(c) if c != "-" else "-")
                    first = False
                    end += 1
                out.append("[" + ("^" if negate else "") + "".join(body) + "]")
                i = end
            else:
                out.append(re.escape(ch))
            i += 1
        result = re.compile("".join(out), re.DOTALL)
    except (ValueError, re.error):
        result = None
    _GLOB_CACHE[pattern] = result
    return result


def _glob_match(pattern: str, name: str) -> bool:
    regex = _glob_regex(pattern)
    return regex is not None and regex.fullmatch(name) is not None


@dataclasses.dataclass
class _Pattern:
    segments: list[str]
    inclusion: bool
    dir_only: bool
    is_glob: bool

    @classmethod
    def parse(cls, text: str) -> "_Pattern":
        inclusion = text.startswith("!")
        if inclusion:
            text = text[1:]
        if not text.endswith("\\ "):
            text = text.rstrip(" ")
        dir_only = text.endswith("/")
        if dir_only:
            text = text[:-1]
        return cls(text.split("/"), inclusion, dir_only, "/" in text)

    def _simple(self, path: list[str], is_dir: bool) -> bool:
        for i, name in enumerate(path):
            if not _glob_match(self.segments[0], name):
                continue
            return not (self.dir_only and not is_dir and i == len(path) - 1)
        return False

    def _glob(self, path: list[str], is_dir: bool) -> bool:
        matched = False
        traverse = False
        for i, segment in enumerate(self.segments):
            if segment == "":
                traverse = False
                continue
            if segment == "**":
                if i == len(self.segments) - 1:
                    break
                traverse = True
                continue
            if "**" in segment or not path:
                return False
            if traverse:
                traverse = False
                while path:
                    head, path = path[0], path[1:]
                    if _glob_match(segment, head):
                        matched = True
                        break
                    if not path:
                        matched = False
            else:
                if not _glob_match(segment, path[0]):
                    return False
                matched = True
                path = path[1:]
        if matched and self.dir_only and not is_dir and not path:
            matched = False
        return matched

    def match(self, path: list[str], is_dir: bool) -> bool | None:
        """True to exclude, False to include, None when the pattern does not apply."""
        if not path:
            return None
        ok = self._glob(path, is_dir) if self.is_glob else self._simple(path, is_dir)
        if not ok:
            return None
        return not self.inclusion


def _walk_files(root: str) -> Iterator[str]:
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        else:
            yield entry.path


def hash_files(working_dir: str, *args: Any) -> str:
    """SHA-256 of the contents of files under ``working_dir`` matching the patterns."""
    cwd_prefix = "." + os.sep
    patterns = []
    for arg in args:
        if not isinstance(arg, str):
            raise ExpressionError("Non-string path passed to hashFiles")
        if arg.startswith(cwd_prefix):
            arg = arg[len(cwd_prefix):]
        elif arg.startswith("!" + cwd_prefix):
            arg = "!" + arg[len(cwd_prefix) + 1:]
        patterns.append(_Pattern.parse(arg))

    def excluded(parts: list[str]) -> bool:
        for pattern in reversed(patterns):
            result = pattern.match(parts, False)
            if result is not None:
                return result
        return False

    prefix = working_dir + os.sep
    try:
        files = [
            path
            for path in _walk_files(working_dir)
            if excluded(path.removeprefix(prefix).split(os.sep))
        ]
    except OSError as err:
        raise ExpressionError(f"Unable to filepath.Walk: {err}") from err
    if not files:
        return ""

    hasher = hashlib.sha256()
    for path in files:
        try:
            with open(path, "rb") as stream:
                for chunk in iter(lambda: stream.read(65536), b""):
                    hasher.update(chunk)
        except OSError as err:
            raise ExpressionError(f"Unable to os.Open: {err}") from err
    return hasher.hexdigest()