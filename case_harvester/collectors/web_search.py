import os
import time
from typing import Dict, List

import requests

from case_harvester.models import SourceItem
from case_harvester.utils.cache import load_json_cache, save_json_cache
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

SERPAPI_URL = "https://serpapi.com/search"
RESULTS_PER_PAGE = 10
# a day; search results for tutorial terms change slowly
CACHE_MAX_AGE = 24 * 3600


class WebSearchCollector:
    def __init__(self, settings=None, api_key=None, session=None, cache_dir=".cache/api"):
        settings = settings or {}
        self.api_key = api_key or os.environ.get("SERPAPI_KEY")
        self.terms = list(settings.get("terms", []))
        self.pages = int(settings.get("pages", 1))
        self.timeout = settings.get("timeout", 30)
        self.delay = float(settings.get("delay", 1.0))
        self.cache_dir = cache_dir
        self.session = session or requests.Session()
        self._last = 0.0

    def _rate_limit(self):
        if self.delay <= 0:
            return
        elapsed = time.time() - self._last
        if elapsed < self.delay:
            time.sleep(self.delay - elapsed)

    def search(self, query: str, page: int = 0) -> List[Dict]:
        cache_key = f"serpapi:{query}:{page}"
        cached = load_json_cache(cache_key, self.cache_dir, max_age=CACHE_MAX_AGE)
        if cached:
            return cached.get("results", [])

        self._rate_limit()
        params = {
            "q": query,
            "api_key": self.api_key,
            "engine": "google",
            "start": page * RESULTS_PER_PAGE,
            "num": RESULTS_PER_PAGE,
        }
        try:
            resp = self.session.get(SERPAPI_URL, params=params, headers={"Accept": "application/json"}, timeout=self.timeout)
            if resp.status_code != 200:
                logger.error(f"SerpAPI error {resp.status_code}: {resp.text[:200]}")
                return []
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"SerpAPI request failed: {exc}")
            return []
        finally:
            self._last = time.time()

        results = [
            {
                "title": r.get("title", ""),
                "url": r.get("link", ""),
                "description": r.get("snippet", ""),
                "author": r.get("source", ""),
            }
            for r in data.get("organic_results", []) or []
            if r.get("link")
        ]
        save_json_cache(cache_key, {"results": results}, self.cache_dir)
        return results

    def collect(self) -> List[SourceItem]:
        if not self.api_key:
            logger.warning("SERPAPI_KEY not set; skipping web search.")
            return []
        items = []
        for term in self.terms:
            for page in range(self.pages):
                for result in self.search(term, page):
                    items.append(
                        SourceItem(
                            id=f"web:{result['url']}",
                            title=result["title"],
                            url=result["url"],
                            description=result["description"],
                            type="snippet",
                            source="web",
                            author=result.get("author", ""),
                        )
                    )
        logger.info(f"Web search: collected {len(items)} snippets for {len(self.terms)} terms")
        return items
