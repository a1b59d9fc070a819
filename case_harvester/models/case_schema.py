"""
Case schema - Pydantic models for extracted usage cases

CaseRecord is the persisted shape (camelCase on disk); PromptText and
CandidateCase are what the pattern extractors hand to the strategy chain;
SourceItem is what the collectors hand to the pipeline.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def new_case_id() -> str:
    return f"case:{uuid.uuid4().hex}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class PromptText(BaseModel):
    """A prompt as found in the source, normalized once at the extractor boundary."""

    model_config = ConfigDict(frozen=True)

    text: str
    rule: str = "unknown"
    fenced: bool = False

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class CandidateCase(BaseModel):
    """One (prompts, effects, images) tuple produced by a pattern extractor."""

    title: str
    prompts: List[PromptText]
    effects: List[str] = []
    images: List[str] = []
    confidence: float = 0.0
    checks: List[str] = []

    @property
    def prompt(self) -> PromptText:
        return self.prompts[0]

    def prompt_texts(self) -> List[str]:
        return [p.text for p in self.prompts]


class SourceItem(BaseModel):
    """A raw source as returned by a collector."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    url: str = ""
    description: str = ""
    type: str = "article"
    source: str = "web"
    author: str = ""
    stars: int = 0
    updated_at: Optional[str] = None


class CaseRecord(BaseModel):
    """Canonical usage case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_case_id)
    title: str
    category: str = "other"
    prompts: List[str]
    effects: List[str] = []
    images: List[str] = []
    source_url: str = ""
    source: str = "web"
    extracted_at: str = Field(default_factory=utc_now_iso)
    confidence: float = 0.0
    extractor: Optional[str] = None

    @field_validator("prompts")
    @classmethod
    def prompts_not_empty(cls, v: List[str]) -> List[str]:
        cleaned = [p.strip() for p in v if p and p.strip()]
        if not cleaned:
            raise ValueError("a case needs at least one prompt")
        return cleaned

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(1.0, float(v)))

    @property
    def leading_prompt(self) -> str:
        return self.prompts[0]

    def with_category(self, category: str) -> "CaseRecord":
        return self.model_copy(update={"category": category})

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)
