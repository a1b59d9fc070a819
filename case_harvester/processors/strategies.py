"""
Extraction strategies, in the order the chain tries them:

- format:   structured README section layouts (cheap, high precision)
- generic:  prompt rule table over free-form text
- semantic: relaxed rule table, every candidate rescored by the validator
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from case_harvester.extractors import extract, extract_generic, extract_structured
from case_harvester.models import CandidateCase
from case_harvester.processors.validator import SemanticValidator, ValidatorUnavailable
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


class ExtractionStrategy(ABC):
    name = "base"

    def __init__(self, threshold: float, timeout: float, image_base_url: str = ""):
        self.threshold = threshold
        self.timeout = timeout
        self.image_base_url = image_base_url

    @abstractmethod
    def extract(self, content: str, source_info: Dict) -> List[CandidateCase]:
        """Candidates for one source; may raise, the chain records the error."""

    def confidence(self, candidates: List[CandidateCase]) -> float:
        if not candidates:
            return 0.0
        return round(sum(c.confidence for c in candidates) / len(candidates), 4)

    def __repr__(self):
        return f"{self.__class__.__name__}(threshold={self.threshold}, timeout={self.timeout})"


class FormatStrategy(ExtractionStrategy):
    name = "format"

    def extract(self, content, source_info):
        return extract_structured(content, source_info, self.image_base_url)


class GenericStrategy(ExtractionStrategy):
    name = "generic"

    def extract(self, content, source_info):
        return extract_generic(content, source_info, self.image_base_url)


class SemanticStrategy(ExtractionStrategy):
    name = "semantic"

    def __init__(self, threshold, timeout, validator: Optional[SemanticValidator] = None, min_score=0.6, image_base_url=""):
        super().__init__(threshold, timeout, image_base_url)
        self.validator = validator
        self.min_score = min_score

    def extract(self, content, source_info):
        if self.validator is None:
            raise ValidatorUnavailable("semantic strategy needs a validator")

        scored = []
        for candidate in extract(content, source_info, self.image_base_url, relaxed=True):
            value = max(self.validator.score(p.text) for p in candidate.prompts)
            if value >= self.min_score:
                scored.append(candidate.model_copy(update={"confidence": value, "checks": candidate.checks + ["validator"]}))
        logger.debug(f"Validator kept {len(scored)} candidates for {source_info.get('url', '')}")
        return scored


def build_strategies(settings, validator: Optional[SemanticValidator] = None) -> List[ExtractionStrategy]:
    """Default strategy list from the "extraction" settings section."""
    section = (settings or {}).get("extraction", {})
    base_url = section.get("image_base_url", "")
    conf = section.get("strategies", {})

    format_conf = conf.get("format", {})
    generic_conf = conf.get("generic", {})
    semantic_conf = conf.get("semantic", {})
    return [
        FormatStrategy(format_conf.get("threshold", 0.6), format_conf.get("timeout", 5.0), base_url),
        GenericStrategy(generic_conf.get("threshold", 0.75), generic_conf.get("timeout", 10.0), base_url),
        SemanticStrategy(
            semantic_conf.get("threshold", 0.8),
            semantic_conf.get("timeout", 15.0),
            validator=validator,
            min_score=semantic_conf.get("min_score", 0.6),
            image_base_url=base_url,
        ),
    ]
