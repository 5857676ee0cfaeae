from .errors import StoreError, StoreErrorKind, StoreConfigError
from .base import EmbeddedStore
from .memory import InMemoryGraphStore
from .dual_tier import DualTierStore
from .factory import build_embedded_store, build_dual_tier_store

__all__ = [
    "StoreError", "StoreErrorKind", "StoreConfigError",
    "EmbeddedStore", "InMemoryGraphStore", "DualTierStore",
    "build_embedded_store", "build_dual_tier_store",
]
