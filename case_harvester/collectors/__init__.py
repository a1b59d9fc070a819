# case_harvester/collectors/__init__.py
"""
Collectors Package
Source acquisition: GitHub search, web search, important articles
"""

from typing import Iterable, List

from case_harvester.models import SourceItem

from .article_fetcher import ArticleFetcher
from .github_search import GitHubCollector
from .web_search import WebSearchCollector


def merge_sources(*groups: Iterable[SourceItem]) -> List[SourceItem]:
    """Unique by URL (first wins), then most-starred and most recently updated first."""
    seen = set()
    unique = []
    for group in groups:
        for item in group or []:
            if not item.url or item.url in seen:
                continue
            seen.add(item.url)
            unique.append(item)
    # two stable passes: recency, then stars
    unique.sort(key=lambda i: i.updated_at or "", reverse=True)
    unique.sort(key=lambda i: i.stars, reverse=True)
    return unique


__all__ = [
    "ArticleFetcher",
    "GitHubCollector",
    "WebSearchCollector",
    "merge_sources",
]
