"""
Semantic Validator - optional scoring / similarity oracle

The pipeline never depends on a particular oracle: anything with
score(text) and similarity(a, b) returning floats in [0, 1] can be plugged in.
Two adapters ship here:
- LLMValidator: OpenAI-compatible chat-completions endpoint (requests)
- FuzzySimilarity: local rapidfuzz token-set ratio, similarity only
"""

import json
import os
import re
import time
from typing import Dict, Optional, Protocol, runtime_checkable

import requests
from rapidfuzz import fuzz

from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


class ValidatorUnavailable(RuntimeError):
    """No validator is configured, or the configured one cannot score."""


@runtime_checkable
class SemanticValidator(Protocol):
    def score(self, text: str) -> float: ...

    def similarity(self, text_a: str, text_b: str) -> float: ...


def _clamp(value) -> float:
    return max(0.0, min(1.0, float(value)))


class ValidatorStats:
    def __init__(self):
        self.total = 0
        self.success = 0
        self.failure = 0
        self.total_time = 0.0

    def record(self, ok: bool, elapsed: float):
        self.total += 1
        self.total_time += elapsed
        if ok:
            self.success += 1
        else:
            self.failure += 1

    def to_dict(self) -> Dict:
        return {
            "total": self.total,
            "success": self.success,
            "failure": self.failure,
            "avg_time": round(self.total_time / self.total, 3) if self.total else 0.0,
        }


class FuzzySimilarity:
    """Local similarity oracle; it cannot judge whether text is a prompt."""

    def __init__(self):
        self.stats = ValidatorStats()

    def score(self, text: str) -> float:
        raise ValidatorUnavailable("FuzzySimilarity provides similarity only")

    def similarity(self, text_a: str, text_b: str) -> float:
        start = time.time()
        value = fuzz.token_set_ratio(text_a or "", text_b or "") / 100.0
        self.stats.record(True, time.time() - start)
        return _clamp(value)


SCORE_INSTRUCTIONS = (
    "You review text extracted from image-generation tutorials. Decide whether the text "
    "is a usable image-editing prompt: a concrete instruction telling the model what to "
    "do to which subject. Reply with JSON only: {\"confidence\": <0.0-1.0>}."
)

SIMILARITY_INSTRUCTIONS = (
    "Compare two image-generation prompts. Rate how likely they describe the same usage "
    "case (same transformation of the same kind of subject), ignoring wording. "
    "Reply with JSON only: {\"similarity\": <0.0-1.0>}."
)

_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)


class LLMValidator:
    """
    Chat-completions backed oracle.

    Args:
        settings: the "validator" settings section (model, base_url, timeout)
        api_key: defaults to LLM_API_KEY from the environment
    """

    def __init__(self, settings=None, api_key: Optional[str] = None, session=None):
        settings = settings or {}
        self.model = settings.get("model", "gpt-4o-mini")
        self.base_url = settings.get("base_url", "https://api.openai.com/v1/chat/completions")
        self.timeout = settings.get("timeout", 30)
        self.api_key = api_key or os.getenv("LLM_API_KEY")
        if not self.api_key:
            raise ValidatorUnavailable("LLM_API_KEY is not set")
        self.session = session or requests.Session()
        self.stats = ValidatorStats()

    def _ask(self, instructions: str, content: str, field: str) -> float:
        start = time.time()
        try:
            response = self.session.post(
                self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                json={
                    "model": self.model,
                    "temperature": 0.1,
                    "messages": [
                        {"role": "system", "content": instructions},
                        {"role": "user", "content": content},
                    ],
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            message = response.json()["choices"][0]["message"]["content"]
            value = self._parse(message, field)
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            self.stats.record(False, time.time() - start)
            logger.warning(f"Validator call failed: {e}")
            raise
        self.stats.record(True, time.time() - start)
        return value

    @staticmethod
    def _parse(message: str, field: str) -> float:
        match = _JSON_OBJECT.search(message or "")
        if not match:
            raise ValueError(f"no JSON object in validator reply: {message!r}")
        payload = json.loads(match.group(0))
        if field not in payload:
            raise ValueError(f"validator reply has no {field!r}")
        return _clamp(payload[field])

    def score(self, text: str) -> float:
        return self._ask(SCORE_INSTRUCTIONS, text, "confidence")

    def similarity(self, text_a: str, text_b: str) -> float:
        return self._ask(SIMILARITY_INSTRUCTIONS, f"A: {text_a}\n\nB: {text_b}", "similarity")


def build_validator(settings) -> Optional[SemanticValidator]:
    """Validator from the "validator" settings section; None when disabled or unusable."""
    section = (settings or {}).get("validator", {})
    provider = section.get("provider", "none")
    if provider == "llm":
        try:
            return LLMValidator(section)
        except ValidatorUnavailable as e:
            logger.warning(f"LLM validator disabled: {e}")
            return None
    if provider not in ("none", None):
        logger.warning(f"Unknown validator provider: {provider}")
    return None


def build_similarity(settings, validator: Optional[SemanticValidator] = None):
    """Similarity oracle for semantic dedupe, per dedupe.similarity_provider."""
    provider = (settings or {}).get("dedupe", {}).get("similarity_provider", "none")
    if provider == "fuzzy":
        return FuzzySimilarity()
    if provider == "validator":
        if validator is None:
            logger.warning("similarity_provider is 'validator' but no validator is configured")
        return validator
    return None
