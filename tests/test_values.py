from datetime import date, datetime

import pytest

from ptpl.values import (
    MISSING,
    compare,
    is_truthy,
    loose_equals,
    resolve_path,
    split_path,
    strict_equals,
    stringify,
    to_sequence,
)


class TestResolvePath:

    def setup_method(self):
        self.tree = {
            "user": {"name": "Ann", "profile": {"age": 30}},
            "items": [{"title": "first"}, {"title": "second"}],
            "nothing": None,
        }

    def test_nested_mapping(self):
        assert resolve_path(self.tree, "user.profile.age") == 30

    def test_sequence_index(self):
        assert resolve_path(self.tree, "items.1.title") == "second"
        assert resolve_path(self.tree, "items.-1.title") == "second"

    def test_missing(self):
        assert resolve_path(self.tree, "user.email") is MISSING
        assert resolve_path(self.tree, "items.5") is MISSING
        assert resolve_path(self.tree, "user.name.first") is MISSING
        assert resolve_path(self.tree, "") is MISSING

    def test_explicit_none_is_not_missing(self):
        assert resolve_path(self.tree, "nothing") is None

    def test_split_path(self):
        assert split_path("a.b.c") == ["a", "b", "c"]
        assert split_path("a..b") == ["a", "b"]


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, False),
        (MISSING, False),
        (False, False),
        (True, True),
        (0, False),
        (0.0, False),
        (float("nan"), False),
        (-1, True),
        ("", False),
        ("0", True),
        ("false", True),
        ([], False),
        ((), False),
        ([0], True),
        ({}, True),
    ],
)
def test_truthiness(value, expected):
    assert is_truthy(value) is expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, ""),
        (MISSING, ""),
        ("text", "text"),
        (True, "true"),
        (False, "false"),
        (3, "3"),
        (3.0, "3"),
        (2.5, "2.5"),
        ([1, "a"], '[1,"a"]'),
        ({"k": "ж"}, '{"k":"ж"}'),
        (date(2024, 1, 2), "2024-01-02"),
        (datetime(2024, 1, 2, 3, 4, 5), "2024-01-02T03:04:05"),
    ],
)
def test_stringify(value, expected):
    assert stringify(value) == expected


def test_to_sequence():
    assert to_sequence((1, 2)) == [1, 2]
    assert to_sequence("abc") is None
    assert to_sequence({"a": 1}) is None


class TestComparisons:

    def test_loose_equality(self):
        assert loose_equals(1, 1.0)
        assert loose_equals("2", 2)
        assert not loose_equals("two", 2)
        assert loose_equals(None, MISSING)
        assert not loose_equals(None, 0)
        assert not loose_equals(True, 1)

    def test_strict_equality(self):
        assert strict_equals(1, 1.0)
        assert not strict_equals("1", 1)
        assert strict_equals(None, MISSING)

    def test_ordering(self):
        assert compare(">", 3, 2)
        assert compare("<=", "10", 10)
        assert compare("<", "apple", "banana")
        assert not compare(">", "abc", 1)
        assert not compare(">", None, 0)

    def test_unknown_operator(self):
        with pytest.raises(ValueError, match="Unknown comparison operator"):
            compare("<>", 1, 2)
