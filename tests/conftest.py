"""
Global conftest for folder-sync tests.

This file combines:
1. A pretty unified-diff assertion helper for clearer dict-vs-dict failures
   (cycle summaries and status snapshots are large nested dicts).
2. An autouse fixture that clears the process-wide logging context a sync
   cycle leaves behind (snapshot etag, per-cycle aggregator), so tests that
   inspect log lines do not see another test's cycle.
"""

import json
import difflib

import pytest

from core_logging import reset_cycle_summary, set_snapshot_etag


# --------------------------------------------------------------------------- #
# Pretty diff for dict comparisons                                            #
# --------------------------------------------------------------------------- #
def pytest_assertrepr_compare(op, left, right):
    """Pretty unified-diff output when comparing two dicts with ==."""
    if isinstance(left, dict) and isinstance(right, dict) and op == "==":
        lhs = json.dumps(left, indent=2, sort_keys=True, default=str).splitlines()
        rhs = json.dumps(right, indent=2, sort_keys=True, default=str).splitlines()
        return [""] + list(
            difflib.unified_diff(lhs, rhs, fromfile="left", tofile="right")
        )


# --------------------------------------------------------------------------- #
# Isolation fixture for process-wide logging context                          #
# --------------------------------------------------------------------------- #
@pytest.fixture(autouse=True)
def _isolate_log_context():
    """Reset the bound snapshot etag and the cycle aggregator after each test."""
    yield
    set_snapshot_etag(None)
    reset_cycle_summary()
