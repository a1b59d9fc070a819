from typing import Dict, List, Optional, Tuple

from case_harvester.extractors.text_utils import (
    clean_title,
    is_truncated_prompt,
    normalize_prompt,
    normalize_source_path,
)
from case_harvester.models import CaseRecord
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

KEY_PROMPT_CHARS = 60


def case_key(case: CaseRecord) -> Tuple[str, str, str]:
    """Record-level identity: cleaned title, source path, start of the first prompt."""
    return (
        clean_title(case.title).lower(),
        normalize_source_path(case.source_url),
        normalize_prompt(case.leading_prompt)[:KEY_PROMPT_CHARS],
    )


def dedupe_by_case_key(cases: List[CaseRecord]) -> List[CaseRecord]:
    seen = set()
    unique = []
    for case in cases:
        key = case_key(case)
        if key in seen:
            continue
        seen.add(key)
        unique.append(case)
    return unique


class CaseDeduper:
    """
    Order-preserving duplicate removal for cases and prompt lists.

    Checks, in order: exact normalized prompt, truncated prefix (the longer
    version wins and takes the shorter one's slot), record key, then semantic
    similarity when an oracle is available. Oracle errors count as "not
    similar".
    """

    def __init__(self, truncation_threshold=10, similarity_threshold=0.8, similarity=None):
        self.truncation_threshold = truncation_threshold
        self.similarity_threshold = similarity_threshold
        self.similarity = similarity
        self.stats = self._empty_stats()

    @classmethod
    def from_settings(cls, settings, similarity=None):
        section = (settings or {}).get("dedupe", {})
        return cls(
            truncation_threshold=int(section.get("truncation_threshold", 10)),
            similarity_threshold=float(section.get("similarity_threshold", 0.8)),
            similarity=similarity,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {"total": 0, "exact": 0, "truncation": 0, "semantic": 0, "key": 0, "unique": 0}

    def reset_stats(self):
        self.stats = self._empty_stats()

    @property
    def duplicates(self) -> int:
        return self.stats["exact"] + self.stats["truncation"] + self.stats["semantic"] + self.stats["key"]

    def _truncates(self, norm_a: str, norm_b: str) -> bool:
        return is_truncated_prompt(norm_a, norm_b, self.truncation_threshold, normalized=True)

    def dedupe_prompts(self, prompts: List[str]) -> List[str]:
        """Exact and truncation dedupe inside one prompt list; original text is kept."""
        kept: List[Optional[str]] = []
        norms: List[Optional[str]] = []
        for prompt in prompts:
            norm = normalize_prompt(prompt)
            if not norm or norm in norms:
                continue
            matches = [i for i, other in enumerate(norms) if other is not None and self._truncates(norm, other)]
            if not matches:
                kept.append(prompt)
                norms.append(norm)
                continue
            if any(len(norms[i]) > len(norm) for i in matches):
                continue
            kept[matches[0]] = prompt
            norms[matches[0]] = norm
            for i in matches[1:]:
                kept[i] = None
                norms[i] = None
        return [p for p in kept if p is not None]

    def _is_similar(self, text_a: str, text_b: str) -> bool:
        try:
            return self.similarity.similarity(text_a, text_b) > self.similarity_threshold
        except Exception as e:
            logger.warning(f"Similarity check failed, treating as distinct: {e}")
            return False

    def dedupe(self, cases: List[CaseRecord]) -> List[CaseRecord]:
        accepted: List[Optional[CaseRecord]] = []
        norms: List[Optional[str]] = []
        keys = set()

        for case in cases:
            self.stats["total"] += 1
            prompts = self.dedupe_prompts(case.prompts)
            if prompts != case.prompts:
                case = case.model_copy(update={"prompts": prompts})
            norm = normalize_prompt(case.leading_prompt)

            if norm in norms:
                self.stats["exact"] += 1
                continue

            matches = [i for i, other in enumerate(norms) if other is not None and self._truncates(norm, other)]
            if matches:
                self.stats["truncation"] += 1
                if any(len(norms[i]) > len(norm) for i in matches):
                    continue
                # strictly longer version: take the first shorter slot, drop the rest
                accepted[matches[0]] = case
                norms[matches[0]] = norm
                for i in matches[1:]:
                    accepted[i] = None
                    norms[i] = None
                    self.stats["truncation"] += 1
                keys = {case_key(c) for c in accepted if c is not None}
                continue

            key = case_key(case)
            if key in keys:
                self.stats["key"] += 1
                continue

            if self.similarity is not None and any(
                self._is_similar(case.leading_prompt, other.leading_prompt) for other in accepted if other is not None
            ):
                self.stats["semantic"] += 1
                continue

            accepted.append(case)
            norms.append(norm)
            keys.add(key)

        unique = [c for c in accepted if c is not None]
        self.stats["unique"] = len(unique)
        return unique
