from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

from lyceum_db.client.sqlalchemy_client import SqlAlchemyDocumentClient
from lyceum_db.config import get_settings
from lyceum_db.db.engine import create_engine

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "provision.py"


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _load_script():
    spec = importlib.util.spec_from_file_location("provision_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_provision_script_creates_requested_tables(tmp_path: Path):
    db_path = tmp_path / "lyceum.db"
    script = _load_script()

    exit_code = script.main(
        ["--db-url", f"sqlite+pysqlite:///{db_path.as_posix()}", "--table", "item", "--table", "role", "--quiet"]
    )

    assert exit_code == 0
    client = SqlAlchemyDocumentClient.from_engine(create_engine(sqlite_path=db_path))
    try:
        assert client.list_tables("lyceum") == ["item", "role"]
    finally:
        client.close()


def test_provision_script_reports_invalid_table_names(tmp_path: Path):
    db_path = tmp_path / "lyceum.db"
    script = _load_script()

    exit_code = script.main(
        ["--db-url", f"sqlite+pysqlite:///{db_path.as_posix()}", "--table", "bad-name", "--quiet"]
    )

    assert exit_code == 1
    client = SqlAlchemyDocumentClient.from_engine(create_engine(sqlite_path=db_path))
    try:
        assert client.list_databases() == []
    finally:
        client.close()


def test_provision_script_reports_invalid_settings(monkeypatch):
    monkeypatch.setenv("LYCEUM_DB_CON_INITIAL", "0")
    script = _load_script()

    assert script.main(["--quiet"]) == 1
