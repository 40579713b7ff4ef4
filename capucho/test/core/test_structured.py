"""Tests for capucho.core.structured module."""

from capucho.core.structured import as_obj_list, as_str_dict, get_bool, get_int, get_str, get_table


def test_as_str_dict_rejects_non_string_keys() -> None:
    assert as_str_dict({"a": 1}) == {"a": 1}
    assert as_str_dict({1: "a"}) is None
    assert as_str_dict([1]) is None


def test_as_obj_list() -> None:
    assert as_obj_list([1, "a"]) == [1, "a"]
    assert as_obj_list({"a": 1}) is None


def test_get_str_strips_and_stringifies_numbers() -> None:
    table: dict[str, object] = {"a": "  x ", "b": 12, "c": True, "d": "   "}
    assert get_str(table, "a") == "x"
    assert get_str(table, "b") == "12"
    assert get_str(table, "c") is None
    assert get_str(table, "d") is None
    assert get_str(table, "missing") is None


def test_get_int_parses_digit_strings() -> None:
    table: dict[str, object] = {"a": 3, "b": " 42 ", "c": "4.2", "d": False}
    assert get_int(table, "a") == 3
    assert get_int(table, "b") == 42
    assert get_int(table, "c") is None
    assert get_int(table, "d") is None


def test_get_bool_and_table() -> None:
    table: dict[str, object] = {"flag": True, "nested": {"k": "v"}, "text": "true"}
    assert get_bool(table, "flag") is True
    assert get_bool(table, "text") is None
    assert get_table(table, "nested") == {"k": "v"}
    assert get_table(table, "flag") is None
