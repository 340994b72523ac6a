from __future__ import annotations

import pytest

from mdmlink.config import (
    MissingConfigurationError,
    require_env_vars,
    split_env_list,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_reports_missing_and_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_split_env_list_strips_items_and_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIST_VAR", " a, b ,,c ")
    monkeypatch.setenv("EMPTY_VAR", " ")

    assert split_env_list("LIST_VAR") == ("a", "b", "c")
    assert split_env_list("EMPTY_VAR", "x,y") == ("x", "y")
    assert split_env_list("UNSET_LIST_VAR") == ()

