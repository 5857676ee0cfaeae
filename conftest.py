"""
Project-wide PyTest bootstrap

Puts every `*/src` directory on sys.path so tests can import the project's
packages without an editable install.
"""

from pathlib import Path
import os, sys

# Keep test output as plain per-event JSON lines
os.environ.setdefault("LOG_EMIT_MODE", "verbose")

ROOT = Path(__file__).parent.resolve()
_paths = (
    [str(ROOT)]                                           # project root
    + [str(p) for p in (ROOT / "packages").glob("*/src")] # packages/*/src
    + [str(p) for p in (ROOT / "services").glob("*/src")] # services/*/src
)
# Preserve order but ensure local paths take precedence
for _p in reversed(_paths):
    if _p not in sys.path:
        sys.path.insert(0, _p)
