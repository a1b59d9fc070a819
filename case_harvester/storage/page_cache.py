"""
Incremental Cache - content fingerprints per source URL

Decides whether a source needs to go through extraction again. A source is
reprocessed when it is new, when its normalized content hash changed, or when
the number of cases currently stored for it differs from the count recorded
last time. The cache never extracts anything itself.

Files (both written atomically):
- cache document:  {url: {contentHash, caseCount, lastProcessedAt}}
- stats document:  {totalPages, processedPages, skippedPages, savedAPI, lastUpdate}
"""

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from case_harvester.extractors.text_utils import normalize_text
from case_harvester.models.case_schema import utc_now_iso
from case_harvester.utils.cache import atomic_write_json
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

CACHE_FILE = "page-cache.json"
STATS_FILE = "page-cache-stats.json"
DEFAULT_MAX_ENTRIES = 500
EVICTION_RATIO = 0.5


class CacheCorruptedError(Exception):
    """The cache file exists but cannot be parsed; reset it to continue."""


@dataclass
class CacheEntry:
    url: str
    content_hash: str
    case_count: int
    last_processed_at: str

    def to_json(self) -> Dict:
        return {
            "contentHash": self.content_hash,
            "caseCount": self.case_count,
            "lastProcessedAt": self.last_processed_at,
        }

    @classmethod
    def from_json(cls, url: str, data) -> "CacheEntry":
        if not isinstance(data, dict):
            raise CacheCorruptedError(f"entry for {url} is not an object")
        content_hash = data.get("contentHash")
        case_count = data.get("caseCount")
        if not isinstance(content_hash, str) or not isinstance(case_count, int) or isinstance(case_count, bool):
            raise CacheCorruptedError(f"entry for {url} has no valid contentHash/caseCount")
        return cls(url=url, content_hash=content_hash, case_count=case_count, last_processed_at=str(data.get("lastProcessedAt", "")))


@dataclass(frozen=True)
class CacheDecision:
    process: bool
    reason: str  # new | changed | unchanged


def content_hash(content: str) -> str:
    return hashlib.md5(normalize_text(content or "").encode("utf-8")).hexdigest()


def _empty_stats() -> Dict:
    return {"totalPages": 0, "processedPages": 0, "skippedPages": 0, "savedAPI": 0, "lastUpdate": None}


class IncrementalCache:
    def __init__(self, cache_dir=".cache", max_entries=DEFAULT_MAX_ENTRIES):
        self.cache_dir = Path(cache_dir)
        self.cache_path = self.cache_dir / CACHE_FILE
        self.stats_path = self.cache_dir / STATS_FILE
        self.max_entries = max_entries
        self.entries: Dict[str, CacheEntry] = {}
        self.stats = _empty_stats()

    @classmethod
    def from_settings(cls, settings):
        settings = settings or {}
        cache_dir = settings.get("paths", {}).get("cache_dir", ".cache")
        max_entries = settings.get("cache", {}).get("max_entries", DEFAULT_MAX_ENTRIES)
        return cls(cache_dir=cache_dir, max_entries=int(max_entries))

    def load(self) -> "IncrementalCache":
        """
        Read both documents. Missing files mean an empty cache; an unreadable
        cache file is logged and treated as empty; a malformed one raises
        CacheCorruptedError.
        """
        self.entries = {}
        self.stats = _empty_stats()
        if self.cache_path.exists():
            try:
                raw = self.cache_path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning(f"Cache file unreadable, starting empty: {e}")
                raw = None
            if raw is not None:
                try:
                    data = json.loads(raw)
                except ValueError as e:
                    raise CacheCorruptedError(f"{self.cache_path}: {e}") from e
                if not isinstance(data, dict):
                    raise CacheCorruptedError(f"{self.cache_path}: top level is not an object")
                self.entries = {url: CacheEntry.from_json(url, entry) for url, entry in data.items()}

        if self.stats_path.exists():
            try:
                stats = json.loads(self.stats_path.read_text(encoding="utf-8"))
                if isinstance(stats, dict):
                    self.stats.update({k: stats[k] for k in self.stats if k in stats})
            except (OSError, ValueError) as e:
                logger.warning(f"Cache stats unreadable, resetting them: {e}")

        logger.info(f"Loaded page cache: {len(self.entries)} entries")
        return self

    def should_process(self, url: str, content: str, observed_case_count: int) -> CacheDecision:
        self.stats["totalPages"] += 1
        entry = self.entries.get(url)
        if entry is None:
            decision = CacheDecision(True, "new")
        elif entry.content_hash != content_hash(content) or entry.case_count != observed_case_count:
            decision = CacheDecision(True, "changed")
        else:
            decision = CacheDecision(False, "unchanged")

        if decision.process:
            self.stats["processedPages"] += 1
        else:
            self.stats["skippedPages"] += 1
            self.stats["savedAPI"] += 1
        return decision

    def update(self, url: str, content: str, case_count: int) -> CacheEntry:
        entry = CacheEntry(
            url=url,
            content_hash=content_hash(content),
            case_count=int(case_count),
            last_processed_at=utc_now_iso(),
        )
        self.entries[url] = entry
        if len(self.entries) > self.max_entries:
            self.evict()
        return entry

    def evict(self) -> int:
        """Drop the oldest half of the entries by lastProcessedAt."""
        remove = int(len(self.entries) * EVICTION_RATIO)
        if remove <= 0:
            return 0
        oldest = sorted(self.entries.values(), key=lambda e: e.last_processed_at)[:remove]
        for entry in oldest:
            del self.entries[entry.url]
        logger.info(f"Evicted {remove} cache entries")
        return remove

    def get(self, url: str) -> Optional[CacheEntry]:
        return self.entries.get(url)

    def save(self):
        self.stats["lastUpdate"] = utc_now_iso()
        atomic_write_json(self.cache_path, {url: e.to_json() for url, e in self.entries.items()})
        atomic_write_json(self.stats_path, self.stats)
        logger.info(f"Saved page cache: {len(self.entries)} entries")

    def reset(self):
        self.entries = {}
        self.stats = _empty_stats()
        for path in (self.cache_path, self.stats_path):
            if path.exists():
                path.unlink()
        logger.info("Page cache reset")

    def get_stats(self) -> Dict:
        total = self.stats["totalPages"]
        return {
            **self.stats,
            "entries": len(self.entries),
            "hitRate": round(self.stats["skippedPages"] / total, 3) if total else 0.0,
        }
