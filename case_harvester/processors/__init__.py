# case_harvester/processors/__init__.py
"""
Processors Package
Categorization, deduplication, validation and the extraction strategy chain
"""

from .categorizer import CATEGORY_NAMES, categorize, reclassify_other
from .dedupe import CaseDeduper, case_key, dedupe_by_case_key
from .strategies import FormatStrategy, GenericStrategy, SemanticStrategy, build_strategies
from .strategy_chain import ChainState, ExtractionAttempt, ExtractionChain, ExtractionOutcome
from .validator import FuzzySimilarity, LLMValidator, SemanticValidator, ValidatorUnavailable

__all__ = [
    "CATEGORY_NAMES",
    "CaseDeduper",
    "ChainState",
    "ExtractionAttempt",
    "ExtractionChain",
    "ExtractionOutcome",
    "FormatStrategy",
    "FuzzySimilarity",
    "GenericStrategy",
    "LLMValidator",
    "SemanticStrategy",
    "SemanticValidator",
    "ValidatorUnavailable",
    "build_strategies",
    "case_key",
    "categorize",
    "dedupe_by_case_key",
    "reclassify_other",
]
