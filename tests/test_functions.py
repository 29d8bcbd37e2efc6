import hashlib
import math

import pytest

from workflowkit.exprparser.functions import (
    contains,
    ends_with,
    format_string,
    from_json,
    hash_files,
    join,
    starts_with,
    to_json,
)
from workflowkit.exprparser.parser import ExpressionError


@pytest.mark.parametrize(
    "search, item, expected",
    [
        ("search", "item", False),
        ("Hello", "ll", True),
        ("HELLO", "ll", True),
        ("3.141592", 3.14, True),
        (3.141592, "3.14", True),
        (3.141592, 3.14, True),
        (True, "u", True),
        (None, "", True),
        (["first", "second"], "first", True),
        ([None, "second"], "", True),
        (["", "second"], None, True),
        ([True, "second"], "true", False),
        (["true", "second"], True, False),
        ([3.14, "second"], "3.14", True),
        ([3.14, "second"], 3.14, True),
        (["", "second"], [], False),
        (["", "second"], {}, False),
    ],
)
def test_contains(search, item, expected):
    assert contains(search, item) is expected


@pytest.mark.parametrize(
    "text, value, expected",
    [
        ("search", "se", True),
        ("search", "sa", False),
        ("123search", "123s", True),
        (123, "s", False),
        (123, "12", True),
        ("123", 12, True),
        (None, "42", False),
        ("null", None, True),
        ("null", "", True),
    ],
)
def test_starts_with(text, value, expected):
    assert starts_with(text, value) is expected


@pytest.mark.parametrize(
    "text, value, expected",
    [
        ("search", "ch", True),
        ("search", "sa", False),
        ("search123s", "123s", True),
        (123, "s", False),
        (123, "23", True),
        ("123", 23, True),
        (None, "42", False),
        ("null", None, True),
        ("null", "", True),
    ],
)
def test_ends_with(text, value, expected):
    assert ends_with(text, value) is expected


def test_join():
    assert join(["a", "b"], ",") == "a,b"
    assert join("string", ",") == "string"
    assert join(1, ",") == "1"
    assert join(None, ",") == ""
    assert join(["a", "b", None], None) == "ab"
    assert join(["a", "b"]) == "a,b"
    assert join(["a", "b", None], 1) == "a1b1"


def test_to_json():
    assert to_json({"key": "value"}) == '{\n  "key": "value"\n}'
    assert to_json(None) == "null"


def test_json_round_trip():
    data = {"a": [1, "x", None, True]}
    assert from_json(to_json(data)) == {"a": [1.0, "x", None, True]}


def test_from_json():
    assert from_json('{"foo":"bar"}') == {"foo": "bar"}
    with pytest.raises(ExpressionError):
        from_json(3)
    with pytest.raises(ExpressionError):
        from_json("{")


@pytest.mark.parametrize(
    "template, args, expected",
    [
        ("text", (), "text"),
        ("Hello {0} {1} {2}!", ("Mona", "the", "Octocat"), "Hello Mona the Octocat!"),
        ("{{Hello {0} {1} {2}!}}", ("Mona", "the", "Octocat"), "{Hello Mona the Octocat!}"),
        ("{{0}}", ("test",), "{0}"),
        ("{{{0}}}", ("test",), "{test}"),
        ("}}", (), "}"),
        (
            'Hello "{0}" {1} {2} {3} {4}',
            (None, True, -3.14, math.nan, math.inf),
            'Hello "" true -3.14 NaN Infinity',
        ),
        (
            'Hello "{0}" {1} {2}',
            ([0.0, True, "abc"], [{"a": 1.0}], {"a": {"b": 1.0}}),
            'Hello "Array" Array Object',
        ),
        (True, (), "true"),
        ("echo Hello {0} ${{Test}}", ("",), "echo Hello  ${Test}"),
    ],
)
def test_format(template, args, expected):
    assert format_string(template, *args) == expected


@pytest.mark.parametrize(
    "template, args, message",
    [
        ("{0}}", ("{1}", "World"),
         "Closing bracket without opening one. The following format string is invalid: '{0}}'"),
        ("{0", ("{1}", "World"),
         "Unclosed brackets. The following format string is invalid: '{0'"),
        ("{2}", ("{1}", "World"),
         "The following format string references more arguments than were supplied: '{2}'"),
        ("{2147483648}", (), "The following format string is invalid: '{2147483648}'"),
    ],
)
def test_format_errors(template, args, message):
    with pytest.raises(ExpressionError) as info:
        format_string(template, *args)
    assert str(info.value) == message


@pytest.fixture
def workdir(tmp_path):
    (tmp_path / "for-hashing-1.txt").write_bytes(b"one\n")
    (tmp_path / "for-hashing-2.txt").write_bytes(b"two\n")
    nested = tmp_path / "for-hashing-3" / "data"
    nested.mkdir(parents=True)
    (nested / "nested-data.txt").write_bytes(b"nested\n")
    return str(tmp_path)


def test_hash_files_none(workdir):
    assert hash_files(workdir, "**/non-extant-files") == ""
    assert hash_files(workdir, "**/non-extant-files", "**/more-non-extant-files") == ""


def test_hash_files_single_and_negative(workdir):
    single = hash_files(workdir, "./for-hashing-1.txt")
    assert single == hashlib.sha256(b"one\n").hexdigest()
    assert hash_files(workdir, "./for-hashing-*.txt", "!./for-hashing-2.txt") == single


def test_hash_files_multiple(workdir):
    assert hash_files(workdir, "./for-hashing-*.txt") == hashlib.sha256(b"one\ntwo\n").hexdigest()


def test_hash_files_nested(workdir):
    nested = hashlib.sha256(b"nested\n").hexdigest()
    assert hash_files(workdir, "./for-hashing-3/**") == nested
    assert hash_files(workdir, "./for-hashing-3/**/nested-data.txt") == nested


def test_hash_files_non_string(workdir):
    with pytest.raises(ExpressionError):
        hash_files(workdir, 3)