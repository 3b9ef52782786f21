import pytest

from binfetch.exceptions import (
    BinFetchError,
    ConfigError,
    ConfigParseError,
    FormulaConflictError,
    FormatError,
    InstallIOError,
    IntegrityError,
    NetworkError,
    VerificationError,
)


@pytest.mark.parametrize(
    "error_class, code, exit_code, stage",
    [
        (ConfigError, "E100", 2, "resolve"),
        (ConfigParseError, "E101", 2, "resolve"),
        (NetworkError, "E300", 3, "fetch"),
        (IntegrityError, "E400", 4, "verify"),
        (FormatError, "E500", 5, "stage"),
        (InstallIOError, "E600", 6, "install"),
        (VerificationError, "E700", 7, "self-check"),
    ],
)
def test_error_classes_map_to_distinct_exit_codes(error_class, code, exit_code, stage):
    error = error_class("boom")

    assert isinstance(error, BinFetchError)
    assert error.code == code
    assert error.exit_code == exit_code
    assert error.stage == stage
    assert str(error) == f"[{code}] boom"


def test_to_dict():
    error = NetworkError("connection refused", context={"url": "https://example.com"})

    assert error.to_dict() == {
        "error": True,
        "code": "E300",
        "stage": "fetch",
        "message": "connection refused",
        "context": {"url": "https://example.com"},
        "type": "NetworkError",
    }


def test_conflict_is_a_config_error():
    definitions = [{"version": "1.0.0"}, {"version": "1.0.1"}]
    error = FormulaConflictError("two definitions", definitions)

    assert isinstance(error, ConfigError)
    assert error.exit_code == 2
    assert error.definitions == definitions
    assert error.context["definitions"] == definitions
