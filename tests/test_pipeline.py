"""
End-to-end tests for the harvest pipeline with in-memory collectors.
"""

import json
import time

import pytest
import yaml

import run_pipeline
from case_harvester.models import SourceItem
from case_harvester.pipeline import CaseHarvestPipeline
from case_harvester.processors.strategies import ExtractionStrategy, build_strategies
from case_harvester.processors.strategy_chain import ExtractionChain
from case_harvester.storage import CacheCorruptedError, CaseStore, IncrementalCache
from case_harvester.utils.config import DEFAULT_SETTINGS, _deep_merge

README = "\n".join(
    [
        "Case 1: Vintage Poster",
        "```",
        "Transform this photo into a vintage travel poster style illustration",
        "```",
        "Case 2: Comic Hero",
        "```",
        "Turn the person in this photo into a retro comic character",
        "```",
    ]
)

ARTICLE = "Prompt: ```\nCreate a 3D figurine of the uploaded photo\n```"


class FakeCollector:
    def __init__(self, items):
        self.items = items

    def collect(self):
        return list(self.items)


def make_sources(article_text=ARTICLE):
    return [
        SourceItem(id="readme:1", title="demo README", url="https://github.com/demo/prompts", description=README, source="github", type="readme"),
        SourceItem(id="article:1", title="Figurine tips", url="https://example.com/figurine", description=article_text, source="article"),
    ]


@pytest.fixture
def settings(tmp_path):
    return _deep_merge(
        DEFAULT_SETTINGS,
        {
            "paths": {"output_dir": str(tmp_path / "public"), "cache_dir": str(tmp_path / "cache")},
            "batch": {"pacing_delay": 0},
        },
    )


class SlowStrategy(ExtractionStrategy):
    name = "slow"

    def extract(self, content, source_info):
        time.sleep(0.5)
        return []


def make_pipeline(settings, sources, chain=None):
    return CaseHarvestPipeline(
        settings,
        chain=chain or ExtractionChain(build_strategies(settings)),
        cache=IncrementalCache.from_settings(settings),
        store=CaseStore.from_settings(settings),
        collectors={"fake": FakeCollector(sources)},
    )


class TestRun:
    """Test full runs over fake sources."""

    def test_first_run(self, settings, tmp_path):
        stats = make_pipeline(settings, make_sources()).run()

        assert stats["sources"] == 2
        assert stats["processed"] == 2
        assert stats["new_cases"] == 3
        assert stats["total_cases"] == 3

        document = json.loads((tmp_path / "public" / "cases.json").read_text(encoding="utf-8"))
        assert document["version"] == "2.0"
        assert document["total"] == 3
        assert sum(c["count"] for c in document["categories"]) == 3
        assert all(case["id"].startswith("case:") for case in document["cases"])
        assert {"sourceUrl", "extractedAt"} <= set(document["cases"][0])

        items = json.loads((tmp_path / "public" / "data.json").read_text(encoding="utf-8"))
        assert len(items) == 2

    def test_second_run_is_idempotent(self, settings, tmp_path):
        make_pipeline(settings, make_sources()).run()
        cases_path = tmp_path / "public" / "cases.json"
        before = cases_path.read_bytes()

        stats = make_pipeline(settings, make_sources()).run()

        assert stats["skipped"] == 2
        assert stats["processed"] == 0
        assert stats["new_cases"] == 0
        assert stats["total_cases"] == 3
        assert cases_path.read_bytes() == before

    def test_changed_source_reprocessed(self, settings):
        make_pipeline(settings, make_sources()).run()

        changed = make_sources("Prompt: ```\nCreate a 3D figurine of my dog photo standing on a desk\n```")
        stats = make_pipeline(settings, changed).run()

        assert stats["skipped"] == 1
        assert stats["processed"] == 1
        assert stats["new_cases"] == 1
        assert stats["total_cases"] == 4

    def test_empty_source_counted(self, settings):
        sources = make_sources()
        sources.append(SourceItem(id="article:2", title="Empty", url="https://example.com/empty", description="  "))

        stats = make_pipeline(settings, sources).run()

        assert stats["empty"] == 1
        assert stats["processed"] == 2

    def test_source_without_prompts_is_empty(self, settings):
        sources = [SourceItem(id="a", title="News", url="https://example.com/news", description="Release notes for this week.")]
        stats = make_pipeline(settings, sources).run()
        assert stats["empty"] == 1
        assert stats["failed"] == 0
        assert stats["total_cases"] == 0

    def test_collector_failure_is_isolated(self, settings):
        class Broken:
            def collect(self):
                raise RuntimeError("rate limited")

        pipeline = make_pipeline(settings, make_sources())
        pipeline.collectors["broken"] = Broken()
        assert pipeline.run()["total_cases"] == 3

    def test_failed_source_retried_next_run(self, settings):
        """A source whose extraction timed out is not cached as processed."""
        source = make_sources()[1]

        def slow_pipeline():
            return make_pipeline(settings, [source], chain=ExtractionChain([SlowStrategy(0.5, 0.05)]))

        first = slow_pipeline()
        stats = first.run()
        assert stats["failed"] == 1
        assert first.cache.get(source.url) is None

        stats = slow_pipeline().run()
        assert stats["skipped"] == 0
        assert stats["processed"] == 1
        assert stats["failed"] == 1

    def test_cached_after_successful_run(self, settings):
        pipeline = make_pipeline(settings, make_sources())
        pipeline.run()
        entry = pipeline.cache.get("https://github.com/demo/prompts")
        assert entry.case_count == 2

    def test_corrupted_cache_raises(self, settings, tmp_path):
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        (cache_dir / "page-cache.json").write_text("{broken", encoding="utf-8")

        with pytest.raises(CacheCorruptedError):
            make_pipeline(settings, make_sources()).run()


class TestMaintenance:
    """Test status, reclassify and reset."""

    def test_status(self, settings):
        pipeline = make_pipeline(settings, make_sources())
        pipeline.run()
        status = pipeline.status()
        assert status["cases"] == 3
        assert sum(status["categories"].values()) == 3

    def test_reclassify_without_changes(self, settings):
        pipeline = make_pipeline(settings, make_sources())
        pipeline.run()
        assert pipeline.reclassify() == 0

    def test_reset_cache_reprocesses(self, settings):
        make_pipeline(settings, make_sources()).run()
        pipeline = make_pipeline(settings, make_sources())
        pipeline.reset_cache()
        stats = pipeline.run()
        assert stats["processed"] == 2
        assert stats["new_cases"] == 0


class TestFromSettings:
    def test_chain_deduper_uses_dedupe_settings(self, settings):
        settings["dedupe"].update({"truncation_threshold": 6, "similarity_threshold": 0.9, "similarity_provider": "fuzzy"})
        pipeline = CaseHarvestPipeline.from_settings(settings, github=False, web=False, articles=False)

        assert pipeline.chain.deduper.truncation_threshold == 6
        assert pipeline.chain.deduper.similarity_threshold == 0.9
        assert pipeline.chain.deduper.similarity is None
        assert pipeline.deduper.similarity is not None


class TestCommandLine:
    def _config(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            yaml.safe_dump({"paths": {"output_dir": str(tmp_path / "public"), "cache_dir": str(tmp_path / "cache")}}),
            encoding="utf-8",
        )
        return str(path)

    def test_corrupted_cache_exit_code(self, tmp_path):
        config = self._config(tmp_path)
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache" / "page-cache.json").write_text("[1, 2", encoding="utf-8")

        code = run_pipeline.main(["--config", config, "--no-github", "--no-web", "--no-articles"])
        assert code == 1

    def test_reset_cache_then_status(self, tmp_path):
        config = self._config(tmp_path)
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache" / "page-cache.json").write_text("[1, 2", encoding="utf-8")

        code = run_pipeline.main(["--config", config, "--reset-cache", "--status"])
        assert code == 0
        assert not (tmp_path / "cache" / "page-cache.json").exists()
