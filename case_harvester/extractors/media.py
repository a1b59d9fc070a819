"""Effect lines and image references found next to a prompt."""

from typing import List
from urllib.parse import urljoin

from case_harvester.extractors.patterns import (
    EFFECT_PATTERNS,
    IMAGE_PATTERNS,
    MAX_EFFECT_LENGTH,
    MIN_EFFECT_LENGTH,
    RELATIVE_IMAGE_PREFIXES,
)


def _unique(values):
    seen = set()
    out = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


def extract_effects(text: str) -> List[str]:
    """Labelled effect/result lines, in order of appearance."""
    if not text:
        return []
    found = []
    for pattern in EFFECT_PATTERNS:
        for match in pattern.finditer(text):
            effect = match.group(1).strip().strip("*").strip()
            if MIN_EFFECT_LENGTH <= len(effect) <= MAX_EFFECT_LENGTH:
                found.append((match.start(), effect))
    found.sort(key=lambda pair: pair[0])
    return _unique(effect for _, effect in found)


def resolve_image_url(url: str, base_url: str = "") -> str:
    """Absolute http(s) URL for an image reference, or "" when it cannot be resolved."""
    url = (url or "").strip()
    if url.startswith(("http://", "https://")):
        return url
    if base_url and url.startswith(RELATIVE_IMAGE_PREFIXES):
        relative = url[2:] if url.startswith("./") else url
        return urljoin(base_url if base_url.endswith("/") else base_url + "/", relative)
    return ""


def extract_images(text: str, base_url: str = "") -> List[str]:
    if not text:
        return []
    found = []
    for pattern in IMAGE_PATTERNS:
        for match in pattern.finditer(text):
            resolved = resolve_image_url(match.group(1), base_url)
            if resolved:
                found.append((match.start(), resolved))
    found.sort(key=lambda pair: pair[0])
    return _unique(url for _, url in found)
