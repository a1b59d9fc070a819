"""
Case Harvest Pipeline

1. Collect: GitHub search, web search, important articles
2. Gate: skip sources whose content and stored case count are unchanged
3. Extract: strategy chain over the remaining sources, in paced batches
4. Merge: existing cases first, new cases appended, deduplicated, sorted
5. Persist: case set, collected items, page cache
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from case_harvester.collectors import ArticleFetcher, GitHubCollector, WebSearchCollector, merge_sources
from case_harvester.extractors.text_utils import normalize_source_path
from case_harvester.models import CaseRecord, SourceItem
from case_harvester.processors.categorizer import reclassify_other
from case_harvester.processors.dedupe import CaseDeduper
from case_harvester.processors.strategies import build_strategies
from case_harvester.processors.strategy_chain import ExtractionChain, ExtractionOutcome
from case_harvester.processors.validator import build_similarity, build_validator
from case_harvester.storage import CaseStore, IncrementalCache, counts_by_source
from case_harvester.storage.case_store import sort_key
from case_harvester.utils.cache import atomic_write_json
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


class CaseHarvestPipeline:
    """
    Orchestrates one harvesting run. Every collaborator is passed in (or built
    once by from_settings) so runs can be driven with fakes.
    """

    def __init__(
        self,
        settings: Dict,
        chain: ExtractionChain,
        cache: IncrementalCache,
        store: CaseStore,
        collectors: Optional[Dict] = None,
        deduper: Optional[CaseDeduper] = None,
        validator=None,
    ):
        self.settings = settings or {}
        self.chain = chain
        self.cache = cache
        self.store = store
        self.collectors = collectors or {}
        self.deduper = deduper or CaseDeduper.from_settings(self.settings)
        self.validator = validator

        batch = self.settings.get("batch", {})
        self.concurrency = int(batch.get("concurrency", 3))
        self.pacing_delay = float(batch.get("pacing_delay", 1.0))
        self.min_confidence = float(self.settings.get("extraction", {}).get("min_output_confidence", 0.6))
        paths = self.settings.get("paths", {})
        self.items_path = Path(paths.get("output_dir", "public")) / paths.get("items_file", "data.json")

        self.start_time = datetime.now()
        self.stats = self._empty_stats()
        self.failed_urls = set()

    @staticmethod
    def _empty_stats() -> Dict:
        return {
            "sources": 0,
            "processed": 0,
            "skipped": 0,
            "failed": 0,
            "empty": 0,
            "new_cases": 0,
            "total_cases": 0,
        }

    @classmethod
    def from_settings(cls, settings, github=True, web=True, articles=True):
        validator = build_validator(settings)
        similarity = build_similarity(settings, validator)
        # within-source dedupe runs without the similarity oracle
        chain = ExtractionChain(build_strategies(settings, validator), deduper=CaseDeduper.from_settings(settings))

        cache_dir = settings.get("paths", {}).get("cache_dir", ".cache")
        crawler = settings.get("crawler", {})
        collectors = {}
        if github and settings.get("github", {}).get("enabled", True):
            collectors["github"] = GitHubCollector(settings.get("github", {}))
        if web and settings.get("web", {}).get("enabled", True):
            collectors["web"] = WebSearchCollector(settings.get("web", {}), cache_dir=f"{cache_dir}/api")
        if articles and settings.get("articles", {}).get("enabled", True):
            page_fetcher = None
            if crawler.get("use_browser"):
                from case_harvester.probers import PageFetcher

                page_fetcher = PageFetcher(crawler)
            collectors["articles"] = ArticleFetcher(
                settings.get("articles", {}), crawler, page_fetcher=page_fetcher, cache_dir=f"{cache_dir}/raw"
            )

        return cls(
            settings,
            chain=chain,
            cache=IncrementalCache.from_settings(settings),
            store=CaseStore.from_settings(settings),
            collectors=collectors,
            deduper=CaseDeduper.from_settings(settings, similarity=similarity),
            validator=validator,
        )

    def log_stage(self, stage: str):
        elapsed = (datetime.now() - self.start_time).seconds
        logger.info("=" * 60)
        logger.info(f"[{elapsed}s] STAGE: {stage}")
        logger.info("=" * 60)

    # =========================================================================
    # STAGE 1: COLLECT
    # =========================================================================

    async def collect(self) -> List[SourceItem]:
        self.log_stage("COLLECT - Gathering Sources")
        groups = []
        for name, collector in self.collectors.items():
            try:
                items = await asyncio.to_thread(collector.collect)
            except Exception as e:
                logger.error(f"Collector {name} failed: {e}")
                continue
            logger.info(f"  {name}: {len(items)} items")
            groups.append(items)
        sources = merge_sources(*groups)
        logger.info(f"Collected {len(sources)} unique sources")
        return sources

    # =========================================================================
    # STAGE 2: CACHE GATE
    # =========================================================================

    def gate(self, sources: List[SourceItem], existing: List[CaseRecord]) -> List[SourceItem]:
        self.log_stage("GATE - Incremental Cache")
        stored_counts = counts_by_source(existing)
        pending = []
        for source in sources:
            if not source.description.strip():
                self.stats["empty"] += 1
                continue
            observed = stored_counts.get(normalize_source_path(source.url), 0)
            decision = self.cache.should_process(source.url, source.description, observed)
            if decision.process:
                logger.debug(f"  process ({decision.reason}): {source.url}")
                pending.append(source)
            else:
                self.stats["skipped"] += 1
        logger.info(f"{len(pending)} to process, {self.stats['skipped']} unchanged")
        return pending

    # =========================================================================
    # STAGE 3: EXTRACT
    # =========================================================================

    def _accepted(self, outcome: ExtractionOutcome) -> List[CaseRecord]:
        return [r for r in outcome.records if r.confidence >= self.min_confidence]

    def _is_failure(self, outcome: ExtractionOutcome) -> bool:
        if outcome.result is not None:
            return False
        return any(a.outcome == "timeout" for a in outcome.attempts) or any(e.startswith("chain:") for e in outcome.errors)

    async def extract(self, sources: List[SourceItem]) -> List[CaseRecord]:
        self.log_stage("EXTRACT - Strategy Chain")
        jobs = [
            (s.description, {"url": s.url, "title": s.title, "source": s.source, "type": s.type})
            for s in sources
        ]
        outcomes = await self.chain.extract_many(jobs, concurrency=self.concurrency, pacing_delay=self.pacing_delay)

        new_cases = []
        for source, outcome in zip(sources, outcomes):
            self.stats["processed"] += 1
            accepted = self._accepted(outcome)
            if accepted:
                logger.info(
                    f"  {source.url}: {len(accepted)} cases via {outcome.strategy_used} "
                    f"({outcome.confidence:.2f}{', fallback' if outcome.fallback_used else ''})"
                )
                new_cases.extend(accepted)
            elif self._is_failure(outcome):
                self.stats["failed"] += 1
                self.failed_urls.add(source.url)
                logger.warning(f"  {source.url}: failed ({'; '.join(outcome.errors)})")
            else:
                self.stats["empty"] += 1
        logger.info(f"Extracted {len(new_cases)} cases from {len(sources)} sources")
        return new_cases

    # =========================================================================
    # STAGE 4-5: MERGE AND PERSIST
    # =========================================================================

    def merge(self, existing: List[CaseRecord], new_cases: List[CaseRecord]) -> List[CaseRecord]:
        self.log_stage("MERGE - Deduplicating Case Set")
        self.deduper.reset_stats()
        merged = self.store.merge(existing, new_cases, self.deduper)
        logger.info(f"Dedupe: {self.deduper.stats}")
        return merged

    def persist(self, existing, merged, processed_sources, all_sources):
        self.log_stage("PERSIST - Writing Outputs")
        counts = counts_by_source(merged)
        for source in processed_sources:
            # failed sources stay uncached so the next run retries them
            if source.url in self.failed_urls:
                continue
            self.cache.update(source.url, source.description, counts.get(normalize_source_path(source.url), 0))
        self.cache.save()

        if [c.id for c in merged] != [c.id for c in existing]:
            self.store.save(merged)
        else:
            logger.info("Case set unchanged")

        if all_sources:
            atomic_write_json(self.items_path, [s.model_dump(by_alias=True) for s in all_sources])

    async def run_async(self) -> Dict:
        self.start_time = datetime.now()
        self.stats = self._empty_stats()
        self.failed_urls = set()

        self.cache.load()
        existing = self.store.load()

        sources = await self.collect()
        self.stats["sources"] = len(sources)
        pending = self.gate(sources, existing)
        new_cases = await self.extract(pending)
        merged = self.merge(existing, new_cases)

        self.persist(existing, merged, pending, sources)
        self.stats["new_cases"] = len({c.id for c in merged} - {c.id for c in existing})
        self.stats["total_cases"] = len(merged)
        self._print_final_report()
        return self.stats

    def run(self) -> Dict:
        return asyncio.run(self.run_async())

    def _print_final_report(self):
        elapsed = (datetime.now() - self.start_time).seconds
        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Duration: {elapsed} seconds")
        for key, value in self.stats.items():
            logger.info(f"  {key}: {value}")
        for name, stats in self.chain.get_stats()["strategies"].items():
            logger.info(f"  strategy {name}: {stats}")
        cache_stats = self.cache.get_stats()
        logger.info(f"  cache: {cache_stats['entries']} entries, hit rate {cache_stats['hitRate']:.0%}")
        if self.validator is not None and hasattr(self.validator, "stats"):
            logger.info(f"  validator: {self.validator.stats.to_dict()}")

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def reclassify(self) -> int:
        self.log_stage("RECLASSIFY - Re-running categorizer on 'other' cases")
        cases = self.store.load()
        updated, changed = reclassify_other(cases)
        if changed:
            self.store.save(sorted(updated, key=sort_key))
        logger.info(f"Reclassified {changed} of {sum(1 for c in cases if c.category == 'other')} 'other' cases")
        return changed

    def status(self) -> Dict:
        self.cache.load()
        cases = self.store.load()
        by_category: Dict[str, int] = {}
        for case in cases:
            by_category[case.category] = by_category.get(case.category, 0) + 1

        logger.info("=" * 60)
        logger.info("CASE HARVESTER - STATUS")
        logger.info("=" * 60)
        logger.info(f"Cases: {len(cases)} in {self.store.path}")
        for category, count in sorted(by_category.items(), key=lambda kv: -kv[1]):
            logger.info(f"  {category}: {count}")
        cache_stats = self.cache.get_stats()
        logger.info(f"Cache: {cache_stats['entries']} entries, last update {cache_stats['lastUpdate']}")
        logger.info(
            f"  pages {cache_stats['totalPages']}, processed {cache_stats['processedPages']}, "
            f"skipped {cache_stats['skippedPages']}"
        )
        return {"cases": len(cases), "categories": by_category, "cache": cache_stats}

    def reset_cache(self):
        self.cache.reset()
