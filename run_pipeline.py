#!/usr/bin/env python3
"""
Case Harvester - Full Pipeline

End-to-end usage-case harvesting:
1. Collect: GitHub READMEs/issues, web search snippets, important articles
2. Gate: skip unchanged sources (incremental cache)
3. Extract: format -> generic -> semantic strategy chain
4. Merge: categorize, dedupe against the stored case set
5. Export: public/cases.json

Usage:
    python run_pipeline.py                  # Full pipeline
    python run_pipeline.py --status         # Show current status
    python run_pipeline.py --reclassify     # Re-categorize 'other' cases
    python run_pipeline.py --reset-cache    # Forget all fingerprints
    python run_pipeline.py --no-web --concurrency 5
"""

import argparse
import sys

from case_harvester.utils.config import load_env, load_settings

# Load .env before anything reads LOG_LEVEL or API keys
load_env()

from case_harvester.pipeline import CaseHarvestPipeline  # noqa: E402
from case_harvester.storage import CacheCorruptedError  # noqa: E402
from case_harvester.utils.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Case Harvester - usage case pipeline")
    parser.add_argument("--config", type=str, help="Path to settings.yaml")
    parser.add_argument("--status", action="store_true", help="Show cache and case-set status")
    parser.add_argument("--reclassify", action="store_true", help="Re-categorize cases labelled 'other'")
    parser.add_argument("--reset-cache", action="store_true", help="Delete the page cache before running")
    parser.add_argument("--no-github", action="store_true", help="Skip GitHub search")
    parser.add_argument("--no-web", action="store_true", help="Skip web search")
    parser.add_argument("--no-articles", action="store_true", help="Skip important articles")
    parser.add_argument("--concurrency", type=int, help="Sources extracted concurrently per batch")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config)
    if args.concurrency:
        settings.setdefault("batch", {})["concurrency"] = args.concurrency

    pipeline = CaseHarvestPipeline.from_settings(
        settings,
        github=not args.no_github,
        web=not args.no_web,
        articles=not args.no_articles,
    )

    try:
        if args.reset_cache:
            pipeline.reset_cache()
        if args.status:
            pipeline.status()
        elif args.reclassify:
            pipeline.reclassify()
        else:
            pipeline.run()
    except CacheCorruptedError as e:
        logger.error(f"Page cache is corrupted: {e}")
        logger.error("Run with --reset-cache to start over.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
