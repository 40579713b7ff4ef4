"""Tests for capucho.core.errors module."""

from capucho.core.errors import ErrorCode


def test_exit_code_values_are_stable() -> None:
    assert [int(code) for code in ErrorCode] == [0, 1, 2, 3, 4, 5]


def test_str_and_success() -> None:
    assert str(ErrorCode.NETWORK_ERROR) == "network error"
    assert ErrorCode.OK.is_success
    assert not ErrorCode.IO_ERROR.is_success
