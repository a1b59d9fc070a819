"""
Extraction Strategy Chain

Runs strategies for one source strictly in priority order. Each attempt runs
in a worker thread under its own timeout; a timeout or an exception is
recorded on the attempt and the chain moves on. The first attempt whose
confidence reaches its strategy's threshold is accepted; otherwise the best
completed attempt is returned as a fallback.

Per-source states: PENDING -> TRYING(strategy) -> ACCEPTED | EXHAUSTED
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from case_harvester.models import CandidateCase, CaseRecord
from case_harvester.processors.categorizer import categorize
from case_harvester.processors.dedupe import CaseDeduper
from case_harvester.processors.strategies import ExtractionStrategy
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)


class ChainState(str, Enum):
    PENDING = "pending"
    TRYING = "trying"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


@dataclass
class ExtractionAttempt:
    strategy_name: str
    started_at: float
    duration_ms: float = 0.0
    outcome: str = "failure"  # success | failure | timeout
    produced_records: List[CaseRecord] = field(default_factory=list)
    confidence: float = 0.0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.outcome == "success"


@dataclass
class ExtractionOutcome:
    result: Optional[List[CaseRecord]]
    strategy_used: str
    confidence: float
    fallback_used: bool = False
    alternatives: List[ExtractionAttempt] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    attempts: List[ExtractionAttempt] = field(default_factory=list)
    state: ChainState = ChainState.PENDING
    source_url: str = ""

    @property
    def records(self) -> List[CaseRecord]:
        return list(self.result or [])


class ExtractionChain:
    def __init__(self, strategies: Sequence[ExtractionStrategy], deduper: Optional[CaseDeduper] = None):
        self.strategies = list(strategies)
        self.deduper = deduper or CaseDeduper()
        self.stats: Dict[str, Dict] = {
            s.name: {"success": 0, "failure": 0, "timeout": 0, "total_time": 0.0} for s in self.strategies
        }
        self.outcome_counts = {ChainState.ACCEPTED.value: 0, ChainState.EXHAUSTED.value: 0, "fallback": 0}

    def _to_records(self, candidates: List[CandidateCase], strategy: ExtractionStrategy, source_info: Dict) -> List[CaseRecord]:
        records = []
        for candidate in candidates:
            prompts = candidate.prompt_texts()
            records.append(
                CaseRecord(
                    title=candidate.title,
                    category=categorize(candidate.title, " ".join(candidate.effects), prompts),
                    prompts=prompts,
                    effects=candidate.effects,
                    images=candidate.images,
                    source_url=source_info.get("url", ""),
                    source=source_info.get("source", "web"),
                    confidence=candidate.confidence,
                    extractor=strategy.name,
                )
            )
        return self.deduper.dedupe(records)

    async def _attempt(self, strategy: ExtractionStrategy, content: str, source_info: Dict) -> ExtractionAttempt:
        attempt = ExtractionAttempt(strategy_name=strategy.name, started_at=time.time())
        start = time.perf_counter()
        try:
            candidates = await asyncio.wait_for(
                asyncio.to_thread(strategy.extract, content, source_info), timeout=strategy.timeout
            )
            if not candidates:
                attempt.error = "no candidates"
            else:
                attempt.confidence = strategy.confidence(candidates)
                attempt.produced_records = self._to_records(candidates, strategy, source_info)
                attempt.outcome = "success"
        except asyncio.TimeoutError:
            attempt.outcome = "timeout"
            attempt.error = f"timed out after {strategy.timeout}s"
        except Exception as e:
            attempt.error = f"{type(e).__name__}: {e}"

        attempt.duration_ms = round((time.perf_counter() - start) * 1000, 2)
        stats = self.stats.setdefault(strategy.name, {"success": 0, "failure": 0, "timeout": 0, "total_time": 0.0})
        stats[attempt.outcome] += 1
        stats["total_time"] += attempt.duration_ms / 1000
        return attempt

    async def extract_intelligently(self, content: str, source_info: Optional[Dict] = None) -> ExtractionOutcome:
        source_info = source_info or {}
        url = source_info.get("url", "")
        attempts: List[ExtractionAttempt] = []
        state = ChainState.PENDING

        for strategy in self.strategies:
            state = ChainState.TRYING
            logger.debug(f"[{url}] trying {strategy.name}")
            attempt = await self._attempt(strategy, content, source_info)
            attempts.append(attempt)

            if attempt.completed and attempt.confidence >= strategy.threshold:
                state = ChainState.ACCEPTED
                self.outcome_counts[state.value] += 1
                return ExtractionOutcome(
                    result=attempt.produced_records,
                    strategy_used=strategy.name,
                    confidence=attempt.confidence,
                    fallback_used=False,
                    alternatives=[a for a in attempts if a is not attempt and a.completed],
                    errors=[f"{a.strategy_name}: {a.error}" for a in attempts if a.error],
                    attempts=attempts,
                    state=state,
                    source_url=url,
                )
            if attempt.completed:
                logger.debug(f"[{url}] {strategy.name} below threshold ({attempt.confidence:.2f} < {strategy.threshold})")
            else:
                logger.debug(f"[{url}] {strategy.name} failed: {attempt.error}")

        state = ChainState.EXHAUSTED
        self.outcome_counts[state.value] += 1
        errors = [f"{a.strategy_name}: {a.error}" for a in attempts if a.error]
        completed = [a for a in attempts if a.completed]
        if not completed:
            return ExtractionOutcome(
                result=None, strategy_used="none", confidence=0.0, errors=errors, attempts=attempts, state=state, source_url=url
            )

        # earliest strategy wins ties
        best = max(completed, key=lambda a: (a.confidence, -attempts.index(a)))
        self.outcome_counts["fallback"] += 1
        return ExtractionOutcome(
            result=best.produced_records,
            strategy_used=best.strategy_name,
            confidence=best.confidence,
            fallback_used=True,
            alternatives=[a for a in completed if a is not best],
            errors=errors,
            attempts=attempts,
            state=state,
            source_url=url,
        )

    async def extract_many(
        self, sources: Sequence[Tuple[str, Dict]], concurrency: int = 3, pacing_delay: float = 1.0
    ) -> List[ExtractionOutcome]:
        """
        Run the chain over (content, source_info) pairs, at most `concurrency`
        at a time, sleeping `pacing_delay` between batches. Results keep the
        input order; an item that raises becomes an empty EXHAUSTED outcome.
        """
        concurrency = max(1, int(concurrency))
        outcomes: List[ExtractionOutcome] = []
        for start in range(0, len(sources), concurrency):
            batch = sources[start:start + concurrency]
            results = await asyncio.gather(
                *(self.extract_intelligently(content, info) for content, info in batch), return_exceptions=True
            )
            for (_, info), result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Extraction crashed for {info.get('url', '')}: {result}")
                    result = ExtractionOutcome(
                        result=None,
                        strategy_used="none",
                        confidence=0.0,
                        errors=[f"chain: {type(result).__name__}: {result}"],
                        state=ChainState.EXHAUSTED,
                        source_url=info.get("url", ""),
                    )
                outcomes.append(result)
            if start + concurrency < len(sources) and pacing_delay > 0:
                await asyncio.sleep(pacing_delay)
        return outcomes

    def get_stats(self) -> Dict:
        strategies = {}
        for name, stats in self.stats.items():
            runs = stats["success"] + stats["failure"] + stats["timeout"]
            strategies[name] = {
                **stats,
                "total_time": round(stats["total_time"], 3),
                "success_rate": round(stats["success"] / runs, 3) if runs else 0.0,
            }
        return {"strategies": strategies, "outcomes": dict(self.outcome_counts)}
