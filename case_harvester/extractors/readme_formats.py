"""
Structured README formats

Curated prompt collections follow a handful of section layouts. When one of
them is detected, each section becomes one candidate: the section heading is
the title, the prompt blocks inside it are the prompts, and effects/images are
taken from the same section only.
"""

from typing import Dict, List, Optional

from case_harvester.extractors.media import extract_effects, extract_images
from case_harvester.extractors.patterns import (
    FORMAT_RULES,
    SAMPLE_BLOCK_MARKERS,
    SECTION_PROMPTS,
    SECTION_SPLITTERS,
    SECTION_TITLES,
    score_prompts,
    validate_prompt,
)
from case_harvester.extractors.text_utils import clean_title, normalize_prompt
from case_harvester.models import CandidateCase, PromptText


def detect_format(text: str) -> Optional[str]:
    """Name of the first format whose marker occurs in text, else None."""
    if not text:
        return None
    for rule in FORMAT_RULES:
        if any(marker in text for marker in rule.markers):
            return rule.name
    return None


def _is_sample_block(body: str, start: int, prompt: str) -> bool:
    # "输入:" / "输出:" either labels the fence from the line above or opens the block
    if prompt.startswith(SAMPLE_BLOCK_MARKERS):
        return True
    preceding = body[:start].rstrip()
    last_line = preceding.rsplit("\n", 1)[-1].strip()
    return last_line.endswith(SAMPLE_BLOCK_MARKERS)


def _section_prompts(fmt: str, body: str) -> List[PromptText]:
    rule = SECTION_PROMPTS[fmt]
    prompts = []
    seen = set()
    for match in rule.pattern.finditer(body):
        text = (match.group(rule.group) or "").strip()
        if not text or _is_sample_block(body, match.start(), text):
            continue
        if not validate_prompt(text):
            continue
        key = normalize_prompt(text)
        if key in seen:
            continue
        seen.add(key)
        prompts.append(PromptText(text=text, rule=f"{fmt}:{rule.name}", fenced=rule.fenced))
    return prompts


def unique_title(title: str, title_counts: Dict[str, int]) -> str:
    """Suffix repeated titles with " (#n)", n starting at 2."""
    count = title_counts.get(title, 0) + 1
    title_counts[title] = count
    return title if count == 1 else f"{title} (#{count})"


def extract_sections(text: str, fmt: str, image_base_url: str = "") -> List[CandidateCase]:
    splitter = SECTION_SPLITTERS[fmt]
    title_re = SECTION_TITLES[fmt]

    candidates = []
    title_counts: Dict[str, int] = {}
    for index, section in enumerate(splitter.split(text)):
        match = title_re.match(section.strip())
        if not match:
            continue
        body = match.group(2)
        prompts = _section_prompts(fmt, body)
        if not prompts:
            continue

        effects = extract_effects(body)
        images = extract_images(body, image_base_url)
        confidence, checks = score_prompts([p.text for p in prompts], effects, images, structural=True)
        title = clean_title(match.group(1)) or f"Case {index}"
        candidates.append(
            CandidateCase(
                title=unique_title(title, title_counts),
                prompts=prompts,
                effects=effects,
                images=images,
                confidence=confidence,
                checks=checks,
            )
        )
    return candidates
