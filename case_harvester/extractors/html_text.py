from typing import Dict

import trafilatura
from bs4 import BeautifulSoup

from case_harvester.extractors.text_utils import normalize_text
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

MIN_MAIN_TEXT_LENGTH = 200


class HtmlTextExtractor:
    """
    Main text of an article page.

    - Trafilatura for the main content
    - BeautifulSoup full-text fallback when trafilatura finds nothing useful;
      <pre> blocks are kept as fenced blocks so prompt rules still see them
    """

    def extract(self, html: str, url: str = "") -> Dict[str, str]:
        data = {"title": "", "text": ""}
        if not html:
            return data

        soup = BeautifulSoup(html, "html.parser")
        if soup.title and soup.title.string:
            data["title"] = soup.title.string.strip()

        try:
            data["text"] = trafilatura.extract(html, url=url or None, include_comments=False) or ""
        except Exception as e:
            logger.warning(f"Trafilatura failed for {url}: {e}")

        if len(data["text"]) < MIN_MAIN_TEXT_LENGTH:
            fallback = self._soup_text(soup)
            if len(fallback) > len(data["text"]):
                data["text"] = fallback

        data["text"] = normalize_text(data["text"])
        return data

    def _soup_text(self, soup) -> str:
        for tag in soup(["script", "style", "nav", "footer", "header", "noscript"]):
            tag.decompose()
        for pre in soup.find_all("pre"):
            pre.replace_with(f"\n```\n{pre.get_text()}\n```\n")
        return soup.get_text("\n")
