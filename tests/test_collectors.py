"""
Tests for the source collectors, with HTTP faked at the session level.
"""

import requests

from case_harvester.collectors import ArticleFetcher, GitHubCollector, WebSearchCollector, merge_sources
from case_harvester.collectors.github_search import GITHUB_API
from case_harvester.models import SourceItem

README_TEXT = "### 例 1: Figurine\n```\nCreate a 3D figurine of the uploaded photo\n```"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "params": params or {}})
        response = self.routes.get(url)
        if isinstance(response, Exception):
            raise response
        return response or FakeResponse(404, text="not found")


REPO = {
    "id": 7,
    "full_name": "demo/prompts",
    "html_url": "https://github.com/demo/prompts",
    "description": "Prompt collection",
    "owner": {"login": "demo"},
    "stargazers_count": 42,
    "updated_at": "2025-09-01T00:00:00Z",
}

ISSUE = {
    "id": 9,
    "title": "Figurine prompt",
    "html_url": "https://github.com/demo/prompts/issues/1",
    "body": "Prompt: Create a 3D figurine of the uploaded photo",
    "user": {"login": "bob"},
    "updated_at": "2025-09-02T00:00:00Z",
}


def github_routes():
    return {
        f"{GITHUB_API}/search/repositories": FakeResponse(payload={"items": [REPO]}),
        f"{GITHUB_API}/search/issues": FakeResponse(payload={"items": [ISSUE]}),
        f"{GITHUB_API}/repos/demo/prompts/readme": FakeResponse(text=README_TEXT),
    }


class TestGitHubCollector:
    """Test repository and issue search."""

    def _collector(self, routes, **settings):
        session = FakeSession(routes)
        conf = {"terms": ["nano banana"], "delay": 0, **settings}
        return GitHubCollector(conf, token="secret", session=session), session

    def test_readme_replaces_repo(self):
        collector, _ = self._collector(github_routes())
        items = collector.collect()

        readme, issue = items
        assert readme.id == "readme:7"
        assert readme.type == "readme"
        assert readme.title == "demo/prompts README"
        assert readme.description == README_TEXT
        assert readme.stars == 42
        assert issue.id == "issue:9"
        assert issue.type == "issue"
        assert issue.author == "bob"

    def test_repo_kept_without_readme(self):
        routes = github_routes()
        del routes[f"{GITHUB_API}/repos/demo/prompts/readme"]
        collector, _ = self._collector(routes)

        repo = collector.collect()[0]
        assert repo.id == "repo:7"
        assert repo.description == "Prompt collection"

    def test_auth_and_raw_accept_headers(self):
        collector, session = self._collector(github_routes())
        collector.collect()

        assert all(c["headers"]["Authorization"] == "Bearer secret" for c in session.calls)
        readme_call = [c for c in session.calls if c["url"].endswith("/readme")][0]
        assert readme_call["headers"]["Accept"] == "application/vnd.github.raw"

    def test_rate_limited_returns_empty(self):
        routes = {
            f"{GITHUB_API}/search/repositories": FakeResponse(403, text="rate limit exceeded"),
            f"{GITHUB_API}/search/issues": FakeResponse(403, text="rate limit exceeded"),
        }
        collector, _ = self._collector(routes)
        assert collector.collect() == []

    def test_network_error_returns_empty(self):
        routes = {
            f"{GITHUB_API}/search/repositories": requests.ConnectionError("down"),
            f"{GITHUB_API}/search/issues": FakeResponse(200, payload=None),
        }
        collector, _ = self._collector(routes)
        assert collector.collect() == []


class TestWebSearchCollector:
    """Test SerpAPI search."""

    def test_no_key_skips(self, monkeypatch):
        monkeypatch.delenv("SERPAPI_KEY", raising=False)
        session = FakeSession({})
        collector = WebSearchCollector({"terms": ["nano banana"]}, session=session)

        assert collector.collect() == []
        assert session.calls == []

    def test_results_cached(self, tmp_path):
        payload = {
            "organic_results": [
                {"title": "Guide", "link": "https://example.com/guide", "snippet": "Turn a photo into a figurine", "source": "Example"},
                {"title": "No link"},
            ]
        }
        session = FakeSession({"https://serpapi.com/search": FakeResponse(payload=payload)})
        conf = {"terms": ["nano banana"], "delay": 0}
        collector = WebSearchCollector(conf, api_key="key", session=session, cache_dir=str(tmp_path))

        first = collector.collect()
        second = collector.collect()

        assert [i.url for i in first] == ["https://example.com/guide"]
        assert first[0].type == "snippet"
        assert first[0].description == "Turn a photo into a figurine"
        assert second == first
        assert len(session.calls) == 1


class FakeClient:
    def __init__(self, pages):
        self.pages = pages

    def get(self, url):
        return self.pages.get(url)


class FakePageFetcher:
    def __init__(self, text):
        self.text = text
        self.calls = 0

    def fetch_text_sync(self, url):
        self.calls += 1
        return self.text


class TestArticleFetcher:
    """Test the important-article collector."""

    LONG_PROMPT = (
        "Create a 3D figurine of the uploaded photo, standing on a round acrylic base on a wooden desk, "
        "with the packaging box behind it printed with the same character artwork and a computer screen "
        "showing the modelling process."
    )

    def test_inline_content_when_fetch_fails(self):
        articles = {"items": [{"url": "https://example.com/a", "title": "Retro", "content": "Prompt: stored text"}]}
        fetcher = ArticleFetcher(articles, client=FakeClient({}))

        items = fetcher.collect()

        assert len(items) == 1
        assert items[0].description == "Prompt: stored text"
        assert items[0].title == "Retro"
        assert items[0].id.startswith("article:")
        assert items[0].source == "article"

    def test_article_without_any_text_skipped(self):
        fetcher = ArticleFetcher({"items": [{"url": "https://example.com/a"}, {"title": "no url"}]}, client=FakeClient({}))
        assert fetcher.collect() == []

    def test_html_text(self):
        html = (
            "<html><head><title>Figurine Guide</title></head><body><nav>Home | Blog</nav>"
            f"<article><h1>Figurine Guide</h1><p>Try this one.</p><pre>{self.LONG_PROMPT}</pre></article>"
            "</body></html>"
        )
        fetcher = ArticleFetcher({"items": [{"url": "https://example.com/a"}]}, client=FakeClient({"https://example.com/a": html}))

        item = fetcher.collect()[0]

        assert item.title == "Figurine Guide"
        assert "Create a 3D figurine of the uploaded photo" in item.description

    def test_browser_used_for_thin_pages(self):
        rendered = "Rendered " + self.LONG_PROMPT
        page_fetcher = FakePageFetcher(rendered)
        fetcher = ArticleFetcher(
            {"items": [{"url": "https://example.com/a", "title": "SPA"}]},
            client=FakeClient({"https://example.com/a": "<html><body><div id='app'></div></body></html>"}),
            page_fetcher=page_fetcher,
        )

        item = fetcher.collect()[0]

        assert page_fetcher.calls == 1
        assert item.description == rendered


class TestMergeSources:
    def test_unique_by_url_and_ordered(self):
        a = SourceItem(id="a", url="https://x/a", stars=1, updated_at="2025-01-01")
        b = SourceItem(id="b", url="https://x/b", stars=5, updated_at="2024-01-01")
        c = SourceItem(id="c", url="https://x/c", stars=1, updated_at="2025-06-01")
        dup = SourceItem(id="dup", url="https://x/a", stars=99)
        no_url = SourceItem(id="n")

        merged = merge_sources([a, b], [c, dup, no_url])

        assert [i.id for i in merged] == ["b", "c", "a"]


class TestPageFetcher:
    """Test the headless page fetcher without launching a browser."""

    def test_text_from_rendered_html(self, monkeypatch):
        from case_harvester.probers import PageFetcher

        html = f"<html><body><pre>{TestArticleFetcher.LONG_PROMPT}</pre></body></html>"

        async def rendered(self, url):
            return html

        monkeypatch.setattr(PageFetcher, "fetch_html", rendered)
        text = PageFetcher({"browser_timeout": 5}).fetch_text_sync("https://example.com/spa")

        assert "Create a 3D figurine of the uploaded photo" in text

    def test_render_failure_gives_empty_text(self, monkeypatch):
        from case_harvester.probers import PageFetcher

        async def failed(self, url):
            return ""

        monkeypatch.setattr(PageFetcher, "fetch_html", failed)
        assert PageFetcher().fetch_text_sync("https://example.com/spa") == ""


class TestHttpClient:
    """Test retries and the page-body cache."""

    class Reply:
        def __init__(self, status_code, text="", content_type="text/html"):
            self.status_code = status_code
            self.text = text
            self.headers = {"Content-Type": content_type}

        def raise_for_status(self):
            if self.status_code >= 400:
                raise requests.HTTPError(f"{self.status_code}", response=self)

    class Session:
        def __init__(self, replies):
            self.replies = list(replies)
            self.calls = 0

        def get(self, url, headers=None, params=None, timeout=None):
            self.calls += 1
            return self.replies.pop(0)

    def _client(self, replies, tmp_path, **settings):
        from case_harvester.utils.http_client import HttpClient

        conf = {"respect_robots": False, "retry_delay": 0, "max_retries": 2, **settings}
        client = HttpClient(conf, cache_dir=str(tmp_path))
        client.session = self.Session(replies)
        return client

    def test_retries_server_errors(self, tmp_path):
        client = self._client([self.Reply(503), self.Reply(200, "<p>ok</p>")], tmp_path)
        assert client.get("https://example.com/a") == "<p>ok</p>"
        assert client.session.calls == 2

    def test_client_error_not_retried(self, tmp_path):
        client = self._client([self.Reply(404), self.Reply(200, "late")], tmp_path)
        assert client.get("https://example.com/a") is None
        assert client.session.calls == 1

    def test_binary_content_ignored(self, tmp_path):
        client = self._client([self.Reply(200, "%PDF", content_type="application/pdf")], tmp_path)
        assert client.get("https://example.com/a.pdf") is None

    def test_page_cache(self, tmp_path):
        client = self._client([self.Reply(200, "<p>cached</p>")], tmp_path, cache_pages=True)
        assert client.get("https://example.com/a") == "<p>cached</p>"
        assert client.get("https://example.com/a") == "<p>cached</p>"
        assert client.session.calls == 1
