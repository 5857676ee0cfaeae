import os
import re

import pytest

from core_models import ENDPOINT
from folder_sync import FolderSyncConnector, cli
from folder_sync.catalog import DEFAULT_TYPES, StaticSchemaProvider


def test_once_prints_one_summary_line(settings, sink, capsys):
    rc = cli.run_once(connector=FolderSyncConnector(settings, sink=sink))
    assert rc == cli.EXIT_OK
    out = [line for line in capsys.readouterr().out.splitlines() if line.startswith("Synced ")]
    assert len(out) == 1
    assert re.search(r"files=2 skipped=1 nodes\(w=8,r=0\) edges\(w=6,r=0\) batches\(p=2,f=0\)", out[0])


def test_main_once_with_directory_argument(sync_dir, monkeypatch, capsys):
    monkeypatch.delenv("FOLDER_SYNC_DIRECTORY", raising=False)
    with pytest.raises(SystemExit) as ei:
        cli.main(["once", str(sync_dir)])
    assert ei.value.code == cli.EXIT_OK
    assert f"Synced {sync_dir}" in capsys.readouterr().out


def test_main_once_missing_directory(tmp_path, capsys):
    with pytest.raises(SystemExit) as ei:
        cli.main(["once", str(tmp_path / "missing")])
    assert ei.value.code == cli.EXIT_SYNC_ERROR
    assert "directory_not_found" in capsys.readouterr().err


def test_main_once_without_any_directory(monkeypatch, capsys):
    monkeypatch.delenv("FOLDER_SYNC_DIRECTORY", raising=False)
    with pytest.raises(SystemExit) as ei:
        cli.main(["once"])
    assert ei.value.code == cli.EXIT_CONFIG_ERROR
    assert "config_invalid" in capsys.readouterr().err


def test_main_rejects_invalid_settings(sync_dir, monkeypatch, capsys):
    monkeypatch.setenv("FOLDER_SYNC_POLL_INTERVAL", "-1")
    with pytest.raises(SystemExit) as ei:
        cli.main(["once", str(sync_dir)])
    assert ei.value.code == cli.EXIT_CONFIG_ERROR
    assert "invalid configuration" in capsys.readouterr().err


def test_parser_commands():
    parser = cli.build_parser()
    assert parser.parse_args(["run", "/data"]).dir == "/data"
    assert parser.parse_args(["serve", "--port", "9000"]).port == 9000
    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_run_forever_returns_error_when_scheduler_stops_itself(settings, sink):
    cfg = settings.model_copy(update={"stop_on_persistent_failure": True, "persistent_failure_threshold": 1})
    no_endpoint = {k: v for k, v in DEFAULT_TYPES.items() if k != ENDPOINT}
    conn = FolderSyncConnector(cfg, sink=sink, schema_provider=StaticSchemaProvider(types=no_endpoint))
    assert cli.run_forever(connector=conn) == cli.EXIT_SYNC_ERROR
    assert conn.status()["scheduler"]["last_error"]["kind"] == "types_unavailable"


def test_serve_enables_polling_and_hands_off_to_uvicorn(sync_dir, monkeypatch):
    monkeypatch.delenv("FOLDER_SYNC_AUTOSTART", raising=False)
    monkeypatch.delenv("FOLDER_SYNC_DIRECTORY", raising=False)
    calls = []
    monkeypatch.setattr(cli, "_uvicorn_run", lambda app_path, port: calls.append((app_path, port)))
    assert cli.serve(str(sync_dir), port=9001) == cli.EXIT_OK
    assert calls == [("folder_sync.app:app", 9001)]
    assert os.environ["FOLDER_SYNC_AUTOSTART"] == "1"
    assert os.environ["FOLDER_SYNC_DIRECTORY"] == str(sync_dir)
