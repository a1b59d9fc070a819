# case_harvester/extractors/__init__.py
"""
Extractors Package
Pattern extraction of usage cases from raw text
"""

from typing import List

from case_harvester.extractors.generic import GenericExtractor
from case_harvester.extractors.readme_formats import detect_format, extract_sections
from case_harvester.extractors.text_utils import normalize_text
from case_harvester.models import CandidateCase
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


def _hint_title(source_hint) -> str:
    if not source_hint:
        return ""
    if isinstance(source_hint, dict):
        return source_hint.get("title", "") or ""
    return getattr(source_hint, "title", "") or ""


def extract_structured(text, source_hint=None, image_base_url="") -> List[CandidateCase]:
    """Candidates from a recognised README section layout; [] when none is detected."""
    try:
        text = normalize_text(text)
        fmt = detect_format(text)
        if not fmt:
            return []
        return extract_sections(text, fmt, image_base_url)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Structured extraction failed for {_hint_title(source_hint)!r}: {e}")
        return []


def extract_generic(text, source_hint=None, image_base_url="", relaxed=False) -> List[CandidateCase]:
    try:
        text = normalize_text(text)
        return GenericExtractor(relaxed=relaxed, image_base_url=image_base_url).extract(text, _hint_title(source_hint))
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Generic extraction failed for {_hint_title(source_hint)!r}: {e}")
        return []


def extract(text, source_hint=None, image_base_url="", relaxed=False) -> List[CandidateCase]:
    """
    Candidate cases found in text.

    The first detected README format runs alone; otherwise the generic rule
    table applies. Malformed input yields [].
    """
    if detect_format(normalize_text(text) if isinstance(text, str) else ""):
        return extract_structured(text, source_hint, image_base_url)
    return extract_generic(text, source_hint, image_base_url, relaxed)


__all__ = [
    "GenericExtractor",
    "detect_format",
    "extract",
    "extract_generic",
    "extract_structured",
]
