"""
Case Store - the persisted case-set document

{version, generatedAt, total, categories: [{id, name, count}], cases: [CaseRecord]}

Repeated runs merge: cases already on disk come first, new ones are appended,
and the combined list goes through the deduper, so an existing case is never
displaced by a re-extracted copy of itself.
"""

import json
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from case_harvester.extractors.text_utils import normalize_source_path
from case_harvester.models import CaseRecord
from case_harvester.models.case_schema import utc_now_iso
from case_harvester.processors.categorizer import CATEGORY_NAMES, category_name
from case_harvester.processors.dedupe import CaseDeduper
from case_harvester.utils.cache import atomic_write_json
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

DOCUMENT_VERSION = "2.0"


def sort_key(case: CaseRecord):
    return (case.category, case.source_url, case.title, case.leading_prompt)


def counts_by_source(cases: List[CaseRecord]) -> Dict[str, int]:
    """Stored case count per normalized source path."""
    return dict(Counter(normalize_source_path(c.source_url) for c in cases))


class CaseStore:
    def __init__(self, output_dir="public", cases_file="cases.json"):
        self.path = Path(output_dir) / cases_file

    @classmethod
    def from_settings(cls, settings):
        paths = (settings or {}).get("paths", {})
        return cls(paths.get("output_dir", "public"), paths.get("cases_file", "cases.json"))

    def load(self) -> List[CaseRecord]:
        if not self.path.exists():
            return []
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            backup = self.path.with_suffix(self.path.suffix + ".bak")
            logger.error(f"Could not read {self.path} ({e}); moving it to {backup} and starting empty")
            self.path.replace(backup)
            return []

        raw_cases = document.get("cases", []) if isinstance(document, dict) else []
        cases = []
        for raw in raw_cases:
            try:
                cases.append(CaseRecord.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid stored case {raw.get('id', '?') if isinstance(raw, dict) else raw!r}: {e}")
        logger.info(f"Loaded {len(cases)} stored cases from {self.path}")
        return cases

    @staticmethod
    def merge(existing: List[CaseRecord], new: List[CaseRecord], deduper: Optional[CaseDeduper] = None) -> List[CaseRecord]:
        deduper = deduper or CaseDeduper()
        merged = deduper.dedupe(list(existing) + list(new))
        return sorted(merged, key=sort_key)

    @staticmethod
    def build_document(cases: List[CaseRecord]) -> Dict:
        counts = Counter(c.category for c in cases)
        categories = [
            {"id": category, "name": category_name(category), "count": counts[category]}
            for category in CATEGORY_NAMES
            if counts.get(category)
        ]
        return {
            "version": DOCUMENT_VERSION,
            "generatedAt": utc_now_iso(),
            "total": len(cases),
            "categories": categories,
            "cases": [c.to_json_dict() for c in cases],
        }

    def save(self, cases: List[CaseRecord]) -> Path:
        atomic_write_json(self.path, self.build_document(cases))
        logger.info(f"Saved {len(cases)} cases to {self.path}")
        return self.path
