"""Ranker Module - ranked shortlists with an audit record per run."""
from core.ranker.service import CandidateRanker, RankingResult

__all__ = ['CandidateRanker', 'RankingResult']
