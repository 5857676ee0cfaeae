from .client import inject_headers, build_timeout, make_sync_client

__all__ = ["inject_headers", "build_timeout", "make_sync_client"]
