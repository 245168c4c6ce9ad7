#!/usr/bin/env python3
"""
Scoring Service - weighted multi-factor candidate scoring.

total = sum(weight_i * component_i) + cert_bonus

The total is deliberately left unclamped: a score above 1.0 is how an
admin notices that weights plus bonus add up to more than intended.

score() is a pure function of (brief, candidate, config), so the ranker
can fan it out over a thread pool without locking.
"""

from typing import Optional
import logging
import numpy as np

from core.config_loader import ScoringConfig
from core.matcher import BriefRequirements, CandidateCapabilities

from core.scorer.models import ScoreBreakdown, MatchCandidateResult
from core.scorer.components import COMPONENTS, calculate_components, certification_bonus
from core.scorer.explain import build_reasons, build_flags

logger = logging.getLogger(__name__)


def _weight_vector(config: ScoringConfig) -> np.ndarray:
    weights = config.weights
    return np.array([getattr(weights, name) for name in COMPONENTS], dtype=float)


def score(
    brief: BriefRequirements,
    candidate: CandidateCapabilities,
    config: ScoringConfig
) -> ScoreBreakdown:
    """
    Score one candidate against one brief.

    Args:
        brief: Parsed brief requirements
        candidate: Parsed candidate capabilities
        config: Weights, bonus, urgency hours and synonym tables

    Returns:
        ScoreBreakdown with the unclamped total, each component and the bonus
    """
    components = calculate_components(brief, candidate, config)
    bonus, _ = certification_bonus(brief, candidate, config)

    values = np.array([components[name] for name in COMPONENTS], dtype=float)
    total = float(np.dot(_weight_vector(config), values)) + bonus

    return ScoreBreakdown(total=total, components=components, cert_bonus=bonus)


class ScoringService:
    """
    Scores candidates and explains the result.

    Holds the effective ScoringConfig for one ranking run; every call is
    otherwise stateless.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score(self, brief: BriefRequirements, candidate: CandidateCapabilities) -> ScoreBreakdown:
        return score(brief, candidate, self.config)

    def evaluate(self, brief: BriefRequirements, candidate: CandidateCapabilities) -> MatchCandidateResult:
        """Score a candidate and attach reasons, flags and the rendering snapshot.

        The returned score is unrounded; rounding happens once ranking is done.
        """
        breakdown = self.score(brief, candidate)
        _, certified_tools = certification_bonus(brief, candidate, self.config)

        return MatchCandidateResult(
            candidate_id=candidate.candidate_id,
            score=breakdown.total,
            components=breakdown.components,
            cert_bonus=breakdown.cert_bonus,
            reasons=build_reasons(brief, candidate, breakdown.components, certified_tools, self.config),
            flags=build_flags(brief, candidate, breakdown.components, self.config),
            snapshot={
                'band_min': candidate.band_min,
                'band_max': candidate.band_max,
                'tools': list(candidate.tools),
            },
        )
