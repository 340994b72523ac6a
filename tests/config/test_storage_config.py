from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from mdmlink.config import get_database_config, get_storage_config
from mdmlink.config.storage import DATABASE_FILENAME, MATCHER_CACHE_FILENAME


def test_data_dir_prefers_explicit_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("MDMLINK_DATA_DIR", str(custom))

    config = get_storage_config()

    assert config.matcher_cache_path(ensure=False) == custom.resolve() / MATCHER_CACHE_FILENAME
    assert config.policy_path() == custom.resolve() / "policy.toml"
    assert not custom.exists()


def test_data_dir_falls_back_to_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("MDMLINK_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    assert get_storage_config().data_dir == tmp_path / "mdmlink"


def test_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://mdm@db/linkage")
    monkeypatch.setenv("MDMLINK_SQL_ECHO", "yes")

    database = get_database_config()

    assert database.uri == "postgresql+psycopg://mdm@db/linkage"
    assert database.echo
    assert not database.is_sqlite


def test_database_uri_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.delenv("MDMLINK_SQL_ECHO", raising=False)
    monkeypatch.setenv("MDMLINK_DATA_DIR", str(tmp_path / "data-dir"))

    database = get_database_config()

    expected_path = (tmp_path / "data-dir" / DATABASE_FILENAME).resolve()
    assert database.uri == f"sqlite+pysqlite:///{expected_path}"
    assert database.is_sqlite
    assert not database.echo
    assert expected_path.parent.exists()
