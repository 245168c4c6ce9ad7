"""Scorer Module - weighted component scoring with reasons and flags."""
from core.scorer.models import ScoreBreakdown, MatchCandidateResult
from core.scorer.service import ScoringService, score
from core.scorer.components import COMPONENTS, NEUTRAL_SCORE
from core.scorer.explain import (
    FLAG_BUDGET_EXCEEDS_BAND, FLAG_AVAILABILITY_SHORTFALL, FLAG_UNVERIFIED_TOOL_CLAIM, describe_flag
)

__all__ = [
    'ScoringService', 'score', 'ScoreBreakdown', 'MatchCandidateResult',
    'COMPONENTS', 'NEUTRAL_SCORE',
    'FLAG_BUDGET_EXCEEDS_BAND', 'FLAG_AVAILABILITY_SHORTFALL', 'FLAG_UNVERIFIED_TOOL_CLAIM',
    'describe_flag'
]
