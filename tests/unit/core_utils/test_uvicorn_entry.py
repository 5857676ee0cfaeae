from core_utils import uvicorn_entry


def test_serve_options_defaults():
    opts = uvicorn_entry.serve_options(8085, env={})
    assert opts == {
        "host": "0.0.0.0",
        "port": 8085,
        "log_level": "info",
        "access_log": False,
        "log_config": None,
    }


def test_serve_options_read_environment_and_overrides():
    env = {"FOLDER_SYNC_HOST": "127.0.0.1", "LOG_LEVEL": "DEBUG", "ACCESS_LOG": "yes"}
    opts = uvicorn_entry.serve_options("9000", env=env, access_log=None, log_level="warning")
    assert opts["host"] == "127.0.0.1"
    assert opts["port"] == 9000
    assert opts["access_log"] is True
    assert opts["log_level"] == "warning"


def test_run_hands_options_to_uvicorn(monkeypatch):
    seen = {}

    def fake_run(app_path, **kwargs):
        seen["app"] = app_path
        seen.update(kwargs)

    monkeypatch.setattr(uvicorn_entry.uvicorn, "run", fake_run)
    uvicorn_entry.run("folder_sync.app:app", 8123, env={"ACCESS_LOG": "1"})
    assert seen["app"] == "folder_sync.app:app"
    assert seen["port"] == 8123 and seen["access_log"] is True
