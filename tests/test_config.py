"""Tests for console settings and engine import."""

import pytest

from satutoko.config import (
    DEFAULT_DB_PATH,
    ConsoleSettings,
    import_engine,
)
from tests.utils import sample_engine


def test_defaults() -> None:
    settings = ConsoleSettings()

    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.history_key == "satutoko.history"
    assert settings.history_capacity == 20
    assert settings.stream_timeout == 600.0
    assert settings.default_limit == 20
    assert settings.engine is None


@pytest.mark.parametrize("timeout", [0, 0.0, None])
def test_falsy_timeout_disables(timeout: float | None) -> None:
    assert ConsoleSettings(stream_timeout=timeout).stream_timeout is None


@pytest.mark.parametrize(
    "kwargs", [{"history_capacity": 0}, {"default_limit": 0}]
)
def test_invalid_values(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        ConsoleSettings(**kwargs)


def test_import_engine() -> None:
    assert import_engine("tests.utils:sample_engine") is sample_engine


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("tests.utils.sample_engine", "Expected format"),
        ("tests.no_such_module:engine", "Could not import"),
        ("tests.utils:missing", "has no 'missing'"),
        ("tests.utils:FIXED_NOW", "is not callable"),
    ],
)
def test_import_engine_errors(path: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        import_engine(path)
