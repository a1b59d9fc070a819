from .case_store import CaseStore, counts_by_source
from .page_cache import CacheCorruptedError, CacheDecision, CacheEntry, IncrementalCache

__all__ = [
    "CacheCorruptedError",
    "CacheDecision",
    "CacheEntry",
    "CaseStore",
    "IncrementalCache",
    "counts_by_source",
]
