#!/usr/bin/env python3
"""
Scoring Models - Data structures for scoring results.
"""

from typing import List, Dict, Any
from dataclasses import dataclass, field


@dataclass
class ScoreBreakdown:
    """Raw output of one score() call."""
    total: float
    components: Dict[str, float] = field(default_factory=dict)
    cert_bonus: float = 0.0


@dataclass
class MatchCandidateResult:
    """
    One ranked candidate for a brief.

    Ephemeral: lives only for the duration of a ranking response and is
    never persisted as-is (invites copy the score when they are created).
    """
    candidate_id: Any
    score: float
    components: Dict[str, float] = field(default_factory=dict)
    cert_bonus: float = 0.0
    reasons: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    # band and tools the reasons/flags were rendered from
    snapshot: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'expert_id': str(self.candidate_id),
            'score': self.score,
            'components': dict(self.components),
            'cert_bonus': self.cert_bonus,
            'reasons': list(self.reasons),
            'flags': list(self.flags),
            'snapshot': dict(self.snapshot),
        }
