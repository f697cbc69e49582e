"""Tests for kr.core.result module."""

import pytest

from kr.core.result import Err, Ok, Result


class TestOk:
    def test_ok_map(self) -> None:
        assert Ok(21).map(lambda x: x * 2) == Ok(42)

    def test_ok_repr(self) -> None:
        assert repr(Ok("v1.0.0")) == "Ok('v1.0.0')"

    def test_ok_frozen(self) -> None:
        with pytest.raises(AttributeError):
            Ok(1).value = 2  # type: ignore[misc]


class TestErr:
    def test_err_map_is_identity(self) -> None:
        err: Err[str] = Err("boom")
        assert err.map(lambda x: x * 2) is err

    def test_err_repr(self) -> None:
        assert repr(Err("boom")) == "Err('boom')"


def test_match_dispatch() -> None:
    def describe(result: Result[int, str]) -> str:
        match result:
            case Ok(value):
                return f"ok {value}"
            case Err(error):
                return f"err {error}"

    assert describe(Ok(3)) == "ok 3"
    assert describe(Err("no")) == "err no"
