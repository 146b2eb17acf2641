import sqlite3

import pytest

from logvault_service.__main__ import main  # type: ignore[import]


def test_usage_without_command(capsys):
  with pytest.raises(SystemExit) as exc_info:
    main([])
  assert exc_info.value.code == 1
  assert "serve" in capsys.readouterr().err


def test_init_db_creates_sqlite_schema(tmp_path, capsys):
  db_path = tmp_path / "logs.db"

  with pytest.raises(SystemExit) as exc_info:
    main(["init-db", "--database-url", f"sqlite:///{db_path}"])
  assert exc_info.value.code == 0
  assert "Schema initialized" in capsys.readouterr().out

  conn = sqlite3.connect(str(db_path))
  try:
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    indexes = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
  finally:
    conn.close()
  assert "logdata" in tables
  assert {"idx_logdata_tenant", "idx_logdata_system", "idx_logdata_user"} <= indexes


def test_serve_refuses_to_start_without_tenant_secrets(monkeypatch, capsys):
  monkeypatch.delenv("LOGVAULT_TENANT_SECRETS", raising=False)

  with pytest.raises(SystemExit) as exc_info:
    main(["serve"])
  assert exc_info.value.code == 1
  assert "LOGVAULT_TENANT_SECRETS" in capsys.readouterr().err


def test_status_reports_unreachable_server(capsys):
  with pytest.raises(SystemExit) as exc_info:
    main(["status", "--host", "127.0.0.1", "--port", "1"])
  assert exc_info.value.code == 2
  assert "UNREACHABLE" in capsys.readouterr().err
