import hashlib
import os
import time
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests

from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


class HttpClient:
    """
    Small requests wrapper shared by the source collectors.

    Per-domain pacing, retries, optional robots.txt checks and an on-disk
    cache of fetched page bodies.
    """

    def __init__(self, settings=None, cache_dir=".cache/raw"):
        settings = settings or {}
        user_agent = settings.get("user_agent")
        self.headers = {"User-Agent": user_agent} if user_agent else {}
        self.timeout = settings.get("timeout", 30)
        self.max_retries = int(settings.get("max_retries", 2))
        self.retry_delay = float(settings.get("retry_delay", 1.0))
        self.min_delay = float(settings.get("rate_limit_delay", 0) or 0)
        self.respect_robots = bool(settings.get("respect_robots", True))
        self.cache_pages = bool(settings.get("cache_pages", False))

        self.page_cache_dir = os.path.join(cache_dir, "pages")
        self.domain_last_request = {}
        self.robots_cache = {}
        self.session = requests.Session()

    def _rate_limit(self, domain):
        if self.min_delay <= 0:
            return
        last = self.domain_last_request.get(domain)
        if last is None:
            return
        elapsed = time.time() - last
        if elapsed < self.min_delay:
            time.sleep(self.min_delay - elapsed)

    def _cache_path(self, url):
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return os.path.join(self.page_cache_dir, f"{digest}.html")

    def _can_fetch(self, url):
        if not self.respect_robots:
            return True
        parsed = urlparse(url)
        base = f"{parsed.scheme}://{parsed.netloc}"
        if base not in self.robots_cache:
            rp = RobotFileParser()
            try:
                rp.set_url(f"{base}/robots.txt")
                rp.read()
            except Exception:
                rp = None
            self.robots_cache[base] = rp
        rp = self.robots_cache[base]
        if rp is None:
            return True
        try:
            return rp.can_fetch(self.headers.get("User-Agent", "*"), url)
        except Exception:
            return True

    def _request(self, url, params=None, headers=None):
        domain = urlparse(url).netloc
        merged_headers = dict(self.headers)
        merged_headers.update(headers or {})
        self._rate_limit(domain)

        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.get(url, headers=merged_headers, params=params, timeout=self.timeout)
                self.domain_last_request[domain] = time.time()
                response.raise_for_status()
                return response
            except requests.RequestException as e:
                last_error = e
                status = getattr(getattr(e, "response", None), "status_code", None)
                # client errors other than rate limiting will not improve on retry
                if status is not None and 400 <= status < 500 and status != 429:
                    break
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)

        logger.error(f"Error fetching {url}: {last_error}")
        return None

    def get(self, url, params=None, headers=None, force=False):
        """Fetch a page body as text; None on failure or robots block."""
        cache_path = self._cache_path(url)
        if self.cache_pages and not force and os.path.exists(cache_path):
            try:
                with open(cache_path, "r", encoding="utf-8", errors="ignore") as f:
                    return f.read()
            except OSError:
                pass

        if not self._can_fetch(url):
            logger.warning(f"Blocked by robots.txt: {url}")
            return None

        logger.info(f"Fetching URL: {url}")
        response = self._request(url, params=params, headers=headers)
        if response is None:
            return None
        content_type = response.headers.get("Content-Type", "")
        if "application/pdf" in content_type or content_type.startswith("image/"):
            return None

        text = response.text
        if self.cache_pages:
            os.makedirs(self.page_cache_dir, exist_ok=True)
            with open(cache_path, "w", encoding="utf-8", errors="ignore") as f:
                f.write(text)
        return text
