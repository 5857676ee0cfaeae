import pytest
from pydantic import ValidationError

from core_config import Settings


def test_embedded_identity_defaults_to_suffix():
    s = Settings(FOLDER_SYNC_COLLECTION_ID="landing")
    assert s.embedded_collection_id == "landing-embedded"
    s = Settings(FOLDER_SYNC_COLLECTION_ID="landing", FOLDER_SYNC_EMBEDDED_COLLECTION_ID="inner")
    assert s.embedded_collection_id == "inner"


def test_environment_aliases(monkeypatch):
    monkeypatch.setenv("FOLDER_SYNC_DIRECTORY", "/data/in")
    monkeypatch.setenv("FOLDER_SYNC_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("FOLDER_SYNC_EMBEDDED_STORE", "arango")
    s = Settings()
    assert s.sync_directory == "/data/in"
    assert s.poll_interval_seconds == 2.5
    assert s.embedded_store == "arango"


@pytest.mark.parametrize("field,value", [
    ("FOLDER_SYNC_POLL_INTERVAL", -1),
    ("FOLDER_SYNC_TYPE_RETRY_MAX", 0),
    ("FOLDER_SYNC_PERSISTENT_FAILURE_THRESHOLD", 0),
    ("FOLDER_SYNC_EMBEDDED_STORE", "redis"),
])
def test_rejects_invalid_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})
