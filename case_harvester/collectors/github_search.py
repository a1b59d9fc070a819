import os
import time
from typing import Dict, List, Optional

import requests

from case_harvester.models import SourceItem
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

GITHUB_API = "https://api.github.com"
PER_PAGE = 20
MAX_ISSUE_BODY = 5000


class GitHubCollector:
    """
    Repository and issue search on the GitHub REST API.

    Repository hits are replaced by their README text when `fetch_readme` is
    on, since READMEs are where curated prompt collections live.
    """

    def __init__(self, settings=None, token=None, session=None):
        settings = settings or {}
        self.terms = list(settings.get("terms", []))
        self.pages = int(settings.get("pages", 1))
        self.fetch_readmes = bool(settings.get("fetch_readme", True))
        self.timeout = settings.get("timeout", 30)
        self.delay = float(settings.get("delay", 1.0))
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.session = session or requests.Session()
        self._last = 0.0

    def _headers(self, accept="application/vnd.github+json") -> Dict[str, str]:
        headers = {"Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _rate_limit(self):
        if self.delay <= 0:
            return
        elapsed = time.time() - self._last
        if elapsed < self.delay:
            time.sleep(self.delay - elapsed)

    def _get(self, url, params=None, accept="application/vnd.github+json"):
        self._rate_limit()
        try:
            resp = self.session.get(url, headers=self._headers(accept), params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"GitHub request failed: {exc}")
            return None
        finally:
            self._last = time.time()
        if resp.status_code != 200:
            logger.error(f"GitHub API error {resp.status_code}: {resp.text[:200]}")
            return None
        return resp

    @staticmethod
    def _items(resp) -> List[Dict]:
        if resp is None:
            return []
        try:
            return resp.json().get("items") or []
        except ValueError as exc:
            logger.error(f"GitHub returned invalid JSON: {exc}")
            return []

    def search_repos(self, query: str, page: int = 1) -> List[Dict]:
        resp = self._get(
            f"{GITHUB_API}/search/repositories",
            params={"q": f"{query} in:name,description,readme", "sort": "updated", "order": "desc", "per_page": PER_PAGE, "page": page},
        )
        return self._items(resp)

    def search_issues(self, query: str, page: int = 1) -> List[Dict]:
        resp = self._get(
            f"{GITHUB_API}/search/issues",
            params={"q": query, "sort": "updated", "order": "desc", "per_page": PER_PAGE, "page": page},
        )
        return self._items(resp)

    def fetch_readme(self, full_name: str) -> Optional[str]:
        resp = self._get(f"{GITHUB_API}/repos/{full_name}/readme", accept="application/vnd.github.raw")
        return resp.text if resp is not None else None

    def _repo_item(self, repo: Dict) -> SourceItem:
        return SourceItem(
            id=f"repo:{repo.get('id')}",
            title=repo.get("full_name", ""),
            url=repo.get("html_url", ""),
            description=repo.get("description") or "",
            type="repo",
            source="github",
            author=(repo.get("owner") or {}).get("login", ""),
            stars=repo.get("stargazers_count") or 0,
            updated_at=repo.get("updated_at"),
        )

    def _issue_item(self, issue: Dict) -> SourceItem:
        return SourceItem(
            id=f"issue:{issue.get('id')}",
            title=issue.get("title", ""),
            url=issue.get("html_url", ""),
            description=(issue.get("body") or "")[:MAX_ISSUE_BODY],
            type="pull" if issue.get("pull_request") else "issue",
            source="github",
            author=(issue.get("user") or {}).get("login", ""),
            updated_at=issue.get("updated_at"),
        )

    def collect(self) -> List[SourceItem]:
        items: List[SourceItem] = []
        for term in self.terms:
            for page in range(1, self.pages + 1):
                for repo in self.search_repos(term, page):
                    item = self._repo_item(repo)
                    if self.fetch_readmes and repo.get("full_name"):
                        readme = self.fetch_readme(repo["full_name"])
                        if readme:
                            item = item.model_copy(
                                update={
                                    "id": f"readme:{repo.get('id')}",
                                    "title": f"{repo['full_name']} README",
                                    "description": readme,
                                    "type": "readme",
                                }
                            )
                    items.append(item)
                for issue in self.search_issues(term, page):
                    items.append(self._issue_item(issue))
        logger.info(f"GitHub: collected {len(items)} items for {len(self.terms)} terms")
        return items
