#!/usr/bin/env python3
"""
Candidate Ranker - scores the full candidate pool for a brief.

Filters by a minimum score, sorts by score (candidate id breaks ties),
truncates, and records exactly one MatchingRun per call, including
calls that find nobody and calls for a brief that does not exist.

"widen" is recorded for the audit trail only: the caller lowers
min_score itself when re-running a ranking that came back too thin.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from core.config_loader import MatchingConfig, ScoringConfig
from core.matcher import BriefRequirements, CandidateCapabilities, parse_brief, parse_candidate
from core.scorer import ScoringService, MatchCandidateResult
from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)

SCORE_DECIMALS = 3


@dataclass
class RankingResult:
    """Ranked shortlist for one brief plus run metadata."""
    brief_id: Any
    candidates: List[MatchCandidateResult] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    brief_found: bool = True
    run_id: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'brief_id': str(self.brief_id),
            'brief_found': self.brief_found,
            'run_id': str(self.run_id) if self.run_id is not None else None,
            'candidates': [c.to_dict() for c in self.candidates],
            'metadata': dict(self.metadata),
        }


class CandidateRanker:
    """
    Runs the scoring engine over a candidate pool.

    Scoring is pure, so large pools are fanned out over a bounded thread
    pool; the only write is the MatchingRun after aggregation.
    """

    def __init__(
        self,
        scoring_config: Optional[ScoringConfig] = None,
        min_score: float = 0.65,
        max_results: int = 5,
        max_workers: int = 8,
        parallel_threshold: int = 50
    ):
        self.scoring_config = scoring_config or ScoringConfig()
        self.scoring_service = ScoringService(self.scoring_config)
        self.min_score = min_score
        self.max_results = max_results
        self.max_workers = max(1, max_workers)
        self.parallel_threshold = parallel_threshold

    @classmethod
    def from_config(
        cls,
        matching_config: MatchingConfig,
        scoring_config: Optional[ScoringConfig] = None,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None
    ) -> "CandidateRanker":
        return cls(
            scoring_config=scoring_config or matching_config.scoring,
            min_score=matching_config.min_score if min_score is None else min_score,
            max_results=matching_config.max_results if max_results is None else max_results,
            max_workers=matching_config.max_workers,
            parallel_threshold=matching_config.parallel_threshold,
        )

    def _weights_snapshot(self) -> Dict[str, Any]:
        snapshot = self.scoring_config.weights.model_dump()
        snapshot['cert_bonus'] = self.scoring_config.cert_bonus if self.scoring_config.boost_verified_certs else 0.0
        return snapshot

    def _evaluate_one(self, brief: BriefRequirements, candidate: CandidateCapabilities) -> MatchCandidateResult:
        return self.scoring_service.evaluate(brief, candidate)

    def score_pool(
        self,
        brief: BriefRequirements,
        pool: List[CandidateCapabilities]
    ) -> Tuple[List[MatchCandidateResult], int]:
        """
        Score every candidate. Returns (results, number of candidates that failed to score).

        A candidate that cannot be scored is logged and left out; it never
        aborts the run.
        """
        results: List[MatchCandidateResult] = []
        errors = 0

        if len(pool) >= self.parallel_threshold and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="score") as executor:
                futures = [(c, executor.submit(self._evaluate_one, brief, c)) for c in pool]
                for candidate, future in futures:
                    try:
                        results.append(future.result())
                    except Exception as e:
                        errors += 1
                        logger.warning(f"Failed to score candidate {candidate.candidate_id}: {e}")
        else:
            for candidate in pool:
                try:
                    results.append(self._evaluate_one(brief, candidate))
                except Exception as e:
                    errors += 1
                    logger.warning(f"Failed to score candidate {candidate.candidate_id}: {e}")

        return results, errors

    def select_top(
        self,
        scored: List[MatchCandidateResult],
        min_score: float,
        max_results: int
    ) -> List[MatchCandidateResult]:
        """Threshold on the exact score, order, truncate, then round for output."""
        qualified = [c for c in scored if c.score >= min_score]
        qualified.sort(key=lambda c: (-c.score, str(c.candidate_id)))
        top = qualified[:max(0, max_results)]

        for candidate in top:
            candidate.score = round(candidate.score, SCORE_DECIMALS)
            candidate.cert_bonus = round(candidate.cert_bonus, SCORE_DECIMALS)
            candidate.components = {k: round(v, SCORE_DECIMALS) for k, v in candidate.components.items()}
        return top

    def rank(
        self,
        repo: MarketplaceRepository,
        brief_id: Any,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
        widen: bool = False
    ) -> RankingResult:
        """
        Rank the candidate pool for a brief.

        Args:
            repo: Repository bound to the caller's unit of work
            brief_id: Brief to rank for
            min_score: Threshold (defaults to the ranker's configured value)
            max_results: Maximum candidates returned
            widen: Caller signal that this is a re-run with a lowered threshold

        Returns:
            RankingResult; a missing brief gives brief_found=False and no candidates
        """
        min_score = self.min_score if min_score is None else min_score
        max_results = self.max_results if max_results is None else max_results
        weights = self._weights_snapshot()

        brief = repo.briefs.get_by_id(brief_id)
        if brief is None:
            logger.warning(f"Ranking skipped: brief {brief_id} not found")
            run = repo.runs.record_run(
                brief_id=brief_id,
                min_score=min_score,
                max_results=max_results,
                widen=widen,
                weights=weights,
                pool_size=0,
                result_count=0,
                brief_found=False,
            )
            return RankingResult(
                brief_id=brief_id,
                brief_found=False,
                run_id=run.id,
                metadata={
                    'total_evaluated': 0,
                    'candidates_found': 0,
                    'min_score_used': min_score,
                    'widen_applied': widen,
                    'weights': weights,
                    'error': 'brief_not_found',
                },
            )

        requirements = parse_brief(brief, self.scoring_config)
        pool = [parse_candidate(expert) for expert in repo.experts.get_candidate_pool()]

        scored, errors = self.score_pool(requirements, pool)
        top = self.select_top(scored, min_score, max_results)

        run = repo.runs.record_run(
            brief_id=brief_id,
            min_score=min_score,
            max_results=max_results,
            widen=widen,
            weights=weights,
            pool_size=len(pool),
            result_count=len(top),
            brief_found=True,
            scoring_errors=errors,
        )

        logger.info(
            f"Ranked brief {brief_id}: {len(pool)} evaluated, {len(top)} returned "
            f"(min_score={min_score}, widen={widen}, errors={errors})"
        )

        return RankingResult(
            brief_id=brief_id,
            candidates=top,
            brief_found=True,
            run_id=run.id,
            metadata={
                'total_evaluated': len(pool),
                'candidates_found': len(top),
                'min_score_used': min_score,
                'widen_applied': widen,
                'weights': weights,
                'scoring_errors': errors,
            },
        )
