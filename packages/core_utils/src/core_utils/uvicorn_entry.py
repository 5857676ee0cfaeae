import os
from typing import Any, Dict, Mapping, Optional

import uvicorn

_TRUTHY = ("1", "true", "True", "yes", "on")


def serve_options(port: int, env: Optional[Mapping[str, str]] = None, **overrides: Any) -> Dict[str, Any]:
    """
    uvicorn keyword arguments for a folder-sync API process.

    ``FOLDER_SYNC_HOST``, ``LOG_LEVEL`` and ``ACCESS_LOG`` come from *env*
    (default: the process environment); non-None *overrides* win.
    ``log_config`` stays None so uvicorn leaves the JSON handlers alone.
    """
    env = os.environ if env is None else env
    opts: Dict[str, Any] = {
        "host": env.get("FOLDER_SYNC_HOST", "0.0.0.0"),
        "port": int(port),
        "log_level": env.get("LOG_LEVEL", "info").lower(),
        "access_log": env.get("ACCESS_LOG", "0") in _TRUTHY,
        "log_config": None,
    }
    opts.update({k: v for k, v in overrides.items() if v is not None})
    return opts


def run(app_path: str, port: int, env: Optional[Mapping[str, str]] = None, **overrides: Any) -> None:
    """Serve *app_path* ("module:attr"); blocks until shutdown."""
    uvicorn.run(app_path, **serve_options(port, env, **overrides))

__all__ = ["run", "serve_options"]
