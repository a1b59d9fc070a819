import re
from typing import Dict, List, Tuple

from case_harvester.extractors.media import extract_effects, extract_images
from case_harvester.extractors.patterns import PROMPT_RULES, score_prompts, validate_prompt
from case_harvester.extractors.readme_formats import unique_title
from case_harvester.extractors.text_utils import clean_title, normalize_prompt
from case_harvester.models import CandidateCase, PromptText

# markdown headings and bold-only lines ("**1. Moody Studio Portrait**")
_HEADING = re.compile(r"^(?:#{1,6}[ \t]+([^\n]+?)|\*\*([^*\n]+?)\*\*)[ \t]*$", re.MULTILINE)
_LABEL_HEADING = re.compile(r"[：:]\s*$")

FALLBACK_TITLE_LENGTH = 40


class GenericExtractor:
    """
    Rule-table extractor for free-form text (articles, snippets, READMEs
    without a recognised section layout).

    Every prompt rule runs in priority order; a later rule never adds a prompt
    that an earlier one already produced, and a prompt contained in an already
    kept one is skipped (a longer prompt that contains a kept one replaces it).
    """

    def __init__(self, relaxed=False, image_base_url=""):
        self.relaxed = relaxed
        self.image_base_url = image_base_url

    def _headings(self, text) -> List[Tuple[int, str]]:
        headings = []
        for match in _HEADING.finditer(text):
            label = (match.group(1) or match.group(2) or "").strip()
            if not label or _LABEL_HEADING.search(label):
                continue
            headings.append((match.start(), label))
        return headings

    def _collect(self, text) -> List[Dict]:
        kept: List[Dict] = []
        for rule in PROMPT_RULES:
            for match in rule.pattern.finditer(text):
                value = (match.group(rule.group) or "").strip()
                if not validate_prompt(value, relaxed=self.relaxed):
                    continue
                norm = normalize_prompt(value)
                if not norm:
                    continue

                contained = False
                for item in kept:
                    if norm in item["norm"]:
                        contained = True
                        break
                if contained:
                    continue

                wider = [item for item in kept if item["norm"] in norm]
                if wider:
                    position = min(item["pos"] for item in wider)
                    kept = [item for item in kept if item not in wider]
                else:
                    position = match.start()
                kept.append({"pos": position, "text": value, "norm": norm, "rule": rule.name, "fenced": rule.fenced})

        kept.sort(key=lambda item: item["pos"])
        return kept

    def _section(self, text, position, headings) -> Tuple[str, str]:
        """(heading, section text) around a position; heading is "" before the first heading."""
        title = ""
        start = 0
        end = len(text)
        for offset, label in headings:
            if offset <= position:
                title = label
                start = offset
            else:
                end = offset
                break
        return title, text[start:end]

    def extract(self, text, source_title="") -> List[CandidateCase]:
        if not text:
            return []
        headings = self._headings(text)
        candidates = []
        title_counts: Dict[str, int] = {}
        for item in self._collect(text):
            heading, section = self._section(text, item["pos"], headings)
            effects = extract_effects(section)
            images = extract_images(section, self.image_base_url)
            confidence, checks = score_prompts([item["text"]], effects, images)

            title = clean_title(heading) or clean_title(source_title) or item["text"][:FALLBACK_TITLE_LENGTH].strip()
            candidates.append(
                CandidateCase(
                    title=unique_title(title, title_counts),
                    prompts=[PromptText(text=item["text"], rule=item["rule"], fenced=item["fenced"])],
                    effects=effects,
                    images=images,
                    confidence=confidence,
                    checks=checks,
                )
            )
        return candidates
