import hashlib
import os
from typing import Iterable

def compute_snapshot_etag_for_entries(paths: Iterable[str]) -> str:
    """
    Deterministic ETag for a directory listing.
    - Binds each path to its size and mtime (no content reads, so large
      files stay cheap to poll).
    - Paths are sorted so listing order does not matter.
    - Entries that vanish between listing and stat still contribute their
      path, keeping the tag stable for the listing that was observed.
    """
    h = hashlib.sha256()
    for p in sorted(paths):
        h.update(os.fsencode(p))
        h.update(b"\x00")
        try:
            st = os.stat(p)
        except FileNotFoundError:
            continue
        h.update(f"{st.st_size}:{st.st_mtime_ns}".encode("ascii"))
        h.update(b"\x00")
    return h.hexdigest()

__all__ = ["compute_snapshot_etag_for_entries"]
