#!/usr/bin/env python3
"""
Component scores - each in [0, 1].

outcome, tools and industry share the fractional-match rule: the share
of required terms with at least one normalized match among the declared
terms, or a neutral 0.5 when the brief requires nothing.
"""

from typing import Dict, List, Tuple
import logging

from core.config_loader import ScoringConfig
from core.matcher import BriefRequirements, CandidateCapabilities, SynonymTable, matched_terms, normalize

logger = logging.getLogger(__name__)

COMPONENTS = ('outcome', 'tools', 'industry', 'availability', 'history')
NEUTRAL_SCORE = 0.5
HISTORY_MATCH_SCORE = 0.5

# Outcome tags are compared case/whitespace-insensitively only
NO_SYNONYMS: SynonymTable = {}


def fractional_match(required: List[str], declared: List[str], synonym_table: SynonymTable) -> float:
    if not required:
        return NEUTRAL_SCORE
    matched = matched_terms(required, declared, synonym_table)
    return len(matched) / len(required)


def outcome_score(brief: BriefRequirements, candidate: CandidateCapabilities, config: ScoringConfig) -> float:
    return fractional_match(brief.outcomes, candidate.outcomes, NO_SYNONYMS)


def tools_score(brief: BriefRequirements, candidate: CandidateCapabilities, config: ScoringConfig) -> float:
    return fractional_match(brief.tools, candidate.tools, config.tool_synonyms)


def industry_score(brief: BriefRequirements, candidate: CandidateCapabilities, config: ScoringConfig) -> float:
    return fractional_match(brief.industries, candidate.industries, config.industry_synonyms)


def required_hours(urgency: str, config: ScoringConfig) -> float:
    """Weekly hours an urgency level asks for; unknown levels fall back to the default urgency."""
    hours = config.urgency_hours.get((urgency or "").lower())
    if hours is None:
        hours = config.urgency_hours.get(config.default_urgency, 30)
    return float(hours)


def availability_score(brief: BriefRequirements, candidate: CandidateCapabilities, config: ScoringConfig) -> float:
    """
    min(candidate_hours / required_hours, 1.0).

    A candidate who never declared hours is scored neutral.
    """
    if candidate.weekly_hours is None:
        return NEUTRAL_SCORE
    needed = required_hours(brief.urgency, config)
    if needed <= 0:
        return 1.0
    return min(max(candidate.weekly_hours, 0.0) / needed, 1.0)


def history_score(brief: BriefRequirements, candidate: CandidateCapabilities, config: ScoringConfig) -> float:
    """0 without verified case studies; 0.5 if one of them shares an outcome with the brief."""
    if not candidate.verified_case_studies:
        return 0.0

    wanted = set()
    for outcome in brief.outcomes:
        wanted |= normalize(outcome, NO_SYNONYMS)

    for case_study in candidate.verified_case_studies:
        for tag in case_study.outcome_tags:
            if normalize(tag, NO_SYNONYMS) & wanted:
                return HISTORY_MATCH_SCORE
    return 0.0


def certification_bonus(
    brief: BriefRequirements,
    candidate: CandidateCapabilities,
    config: ScoringConfig
) -> Tuple[float, List[str]]:
    """
    Flat bonus when a verified certification covers any required tool.

    Returns (bonus, required tools covered by a verified certification).
    """
    if not config.boost_verified_certs or not brief.tools:
        return 0.0, []
    covered = matched_terms(brief.tools, candidate.verified_cert_tools, config.tool_synonyms)
    if not covered:
        return 0.0, []
    return config.cert_bonus, covered


def calculate_components(
    brief: BriefRequirements,
    candidate: CandidateCapabilities,
    config: ScoringConfig
) -> Dict[str, float]:
    return {
        'outcome': outcome_score(brief, candidate, config),
        'tools': tools_score(brief, candidate, config),
        'industry': industry_score(brief, candidate, config),
        'availability': availability_score(brief, candidate, config),
        'history': history_score(brief, candidate, config),
    }
