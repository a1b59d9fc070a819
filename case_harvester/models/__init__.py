from .case_schema import CandidateCase, CaseRecord, PromptText, SourceItem

__all__ = [
    "CandidateCase",
    "CaseRecord",
    "PromptText",
    "SourceItem",
]
