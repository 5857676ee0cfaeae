import argparse
import os
import signal
import sys
import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from core_config import Settings, get_settings
from core_config.constants import HEALTH_PORT
from core_logging import get_logger, log_stage, trace_span
from core_logging.error_codes import ErrorCode
from core_storage import StoreConfigError
from core_utils.uvicorn_entry import run as _uvicorn_run

from .connector import FolderSyncConnector
from .errors import SyncError
from .watcher import SchedulerState

logger = get_logger("folder_sync.cli")

EXIT_OK = 0
EXIT_SYNC_ERROR = 1
EXIT_CONFIG_ERROR = 2


def _load_settings(directory: Optional[str]) -> Settings:
    cfg = get_settings()
    if directory:
        cfg = cfg.model_copy(update={"sync_directory": directory})
    return cfg


def _exit_code(err: SyncError) -> int:
    return EXIT_CONFIG_ERROR if err.kind is ErrorCode.config_invalid else EXIT_SYNC_ERROR


def _summary_line(summary: Dict[str, Any]) -> str:
    up = summary.get("upsert") or {}
    nodes, edges = up.get("nodes") or {}, up.get("edges") or {}
    emit = summary.get("emit") or {}
    return (
        f"Synced {summary.get('directory')} snapshot {summary.get('snapshot_etag')}: "
        f"files={summary.get('files', 0)} skipped={summary.get('skipped', 0)} "
        f"nodes(w={nodes.get('written', 0)},r={nodes.get('rejected', 0)}) "
        f"edges(w={edges.get('written', 0)},r={edges.get('rejected', 0)}) "
        f"batches(p={emit.get('published', 0)},f={emit.get('failed', 0)})"
    )


def run_once(directory: Optional[str] = None, *, connector: Optional[FolderSyncConnector] = None) -> int:
    """One synchronous cycle; prints a single human-readable summary line."""
    conn = connector or FolderSyncConnector(_load_settings(directory))
    try:
        with trace_span("cli.once", logger=logger, stage="cli", directory=conn.directory):
            summary = conn.run_once()
    finally:
        if connector is None:
            conn.close()
    log_stage(logger, "cli", "once_completed",
              directory=summary.get("directory"), snapshot_etag=summary.get("snapshot_etag"))
    print(_summary_line(summary))
    return EXIT_OK


def run_forever(directory: Optional[str] = None, *, connector: Optional[FolderSyncConnector] = None) -> int:
    """Poll until SIGINT/SIGTERM, or until the scheduler stops itself."""
    conn = connector or FolderSyncConnector(_load_settings(directory))
    done = threading.Event()

    def _on_signal(signum, _frame):
        log_stage(logger, "cli", "signal_received", signal=signum)
        done.set()

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        conn.start()
        scheduler = conn.get_scheduler()
        while not done.wait(0.5):
            if scheduler.state is SchedulerState.STOPPED:
                break
    finally:
        conn.stop()
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    last_error = conn.status()["scheduler"].get("last_error")
    if connector is None:
        conn.close()
    if last_error and not done.is_set():
        print(f"ERROR: polling stopped: {last_error.get('kind')}: {last_error.get('message')}", file=sys.stderr)
        return EXIT_SYNC_ERROR
    return EXIT_OK


def serve(directory: Optional[str] = None, *, port: int = HEALTH_PORT) -> int:
    """Run the read API with polling enabled for the lifetime of the server."""
    os.environ["FOLDER_SYNC_AUTOSTART"] = "1"
    if directory:
        os.environ["FOLDER_SYNC_DIRECTORY"] = directory
    _uvicorn_run("folder_sync.app:app", port=port)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("folder-sync", description="Synchronize a folder into a metadata graph.")
    sub = ap.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("once", "Run a single sync cycle and exit."),
        ("run", "Poll the folder until interrupted."),
        ("serve", "Serve the read API and poll in the background."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("dir", nargs="?", default=None,
                       help="Folder to synchronize (overrides FOLDER_SYNC_DIRECTORY).")
        if name == "serve":
            p.add_argument("--port", type=int, default=HEALTH_PORT)
    return ap


def main(argv: Optional[list] = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    try:
        if args.command == "once":
            rc = run_once(args.dir)
        elif args.command == "run":
            rc = run_forever(args.dir)
        else:
            rc = serve(args.dir, port=args.port)
    except SyncError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(_exit_code(e))
    except (ValidationError, StoreConfigError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
    sys.exit(rc)


if __name__ == "__main__":
    main()
