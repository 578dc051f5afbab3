"""Unit tests — dotted-path resolution and comparison operators."""

from __future__ import annotations

import pytest

from automation_engine.conditions.operators import MISSING, compare, resolve, strict_equal


class _Obj:
    def __init__(self) -> None:
        self.name = "obj"
        self._secret = "hidden"


@pytest.mark.unit
class TestResolve:
    def test_nested_mapping(self) -> None:
        assert resolve({"a": {"b": {"c": 1}}}, "a.b.c") == 1

    def test_sequence_index(self) -> None:
        assert resolve({"a": {"b": [10, 20, {"c": 3}]}}, "a.b.2.c") == 3

    def test_sequence_out_of_range(self) -> None:
        assert resolve({"a": [1]}, "a.5") is MISSING

    def test_non_integer_sequence_segment(self) -> None:
        assert resolve({"a": [1]}, "a.x") is MISSING

    def test_length_of_list_and_string(self) -> None:
        assert resolve({"items": [1, 2, 3]}, "items.length") == 3
        assert resolve({"name": "abcd"}, "name.length") == 4

    def test_missing_key(self) -> None:
        assert resolve({"a": 1}, "b") is MISSING

    def test_none_intermediate(self) -> None:
        assert resolve({"a": None}, "a.b") is MISSING

    def test_attribute_access(self) -> None:
        assert resolve({"o": _Obj()}, "o.name") == "obj"

    def test_private_attribute_blocked(self) -> None:
        assert resolve({"o": _Obj()}, "o._secret") is MISSING

    def test_missing_is_falsy(self) -> None:
        assert not MISSING


@pytest.mark.unit
class TestStrictEqual:
    def test_int_float(self) -> None:
        assert strict_equal(1, 1.0)

    def test_bool_is_not_int(self) -> None:
        assert not strict_equal(True, 1)

    def test_string_is_not_number(self) -> None:
        assert not strict_equal("1", 1)

    def test_lists(self) -> None:
        assert strict_equal([1, 2], [1, 2])


@pytest.mark.unit
class TestCompare:
    def test_eq_ne(self) -> None:
        assert compare("open", "eq", "open")
        assert not compare("1", "eq", 1)
        assert compare("1", "ne", 1)

    def test_contains_string_and_list(self) -> None:
        assert compare("hello world", "contains", "world")
        assert compare(["a", "b"], "contains", "b")
        assert not compare(["1"], "contains", 1)
        assert not compare(42, "contains", "4")

    def test_starts_and_ends_with(self) -> None:
        assert compare("invoice-42", "startsWith", "invoice")
        assert compare("invoice-42", "endsWith", "42")
        assert not compare(42, "startsWith", "4")

    def test_ordering_numbers(self) -> None:
        assert compare(5, "gt", 3)
        assert compare(3, "gte", 3)
        assert compare(2, "lt", 3.5)
        assert compare(3, "lte", 3)

    def test_ordering_strings(self) -> None:
        assert compare("b", "gt", "a")

    def test_ordering_mixed_types_is_false(self) -> None:
        assert not compare("5", "gt", 3)
        assert not compare(MISSING, "lt", 3)
        assert not compare(None, "gte", 0)

    def test_regex(self) -> None:
        assert compare("order #123", "regex", r"#\d+")
        assert not compare("order", "regex", r"\d")

    def test_invalid_regex_is_false(self) -> None:
        assert not compare("abc", "regex", "(")

    def test_exists(self) -> None:
        assert compare("x", "exists", True)
        assert not compare(None, "exists", True)
        assert not compare(MISSING, "exists", True)
        assert compare(MISSING, "exists", False)

    def test_in_nin(self) -> None:
        assert compare("a", "in", ["a", "b"])
        assert not compare("c", "in", ["a", "b"])
        assert not compare("a", "in", "abc")
        assert compare("c", "nin", ["a", "b"])
        assert compare("a", "nin", "not-a-list")

    def test_unknown_operator_is_false(self) -> None:
        assert not compare(1, "approximately", 1)
