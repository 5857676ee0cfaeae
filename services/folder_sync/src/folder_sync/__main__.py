from __future__ import annotations

from core_config.constants import HEALTH_PORT
from core_utils.uvicorn_entry import run

if __name__ == "__main__":
    run("folder_sync.app:app", port=HEALTH_PORT)
