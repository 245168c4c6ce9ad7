#!/usr/bin/env python3
"""
Reasons and risk flags for a scored candidate.

Reasons are positive evidence shown to admins and in the invitation
(outcome, tools, industry, certification; at most four). Flags are
independent warnings.
"""

from typing import Dict, List

from core.config_loader import ScoringConfig
from core.matcher import BriefRequirements, CandidateCapabilities, matched_terms
from core.scorer.components import NO_SYNONYMS, NEUTRAL_SCORE

MAX_REASONS = 4

FLAG_BUDGET_EXCEEDS_BAND = 'budget-exceeds-band'
FLAG_AVAILABILITY_SHORTFALL = 'availability-shortfall'
FLAG_UNVERIFIED_TOOL_CLAIM = 'unverified-tool-claim'

FLAG_LABELS = {
    FLAG_BUDGET_EXCEEDS_BAND: "Usual engagement size is above the brief's budget",
    FLAG_AVAILABILITY_SHORTFALL: "Weekly availability is below what the timeline needs",
    FLAG_UNVERIFIED_TOOL_CLAIM: "Some required tools are declared but not certified",
}


def build_reasons(
    brief: BriefRequirements,
    candidate: CandidateCapabilities,
    components: Dict[str, float],
    certified_tools: List[str],
    config: ScoringConfig
) -> List[str]:
    reasons = []

    if components.get('outcome', 0.0) > NEUTRAL_SCORE:
        matched = matched_terms(brief.outcomes, candidate.outcomes, NO_SYNONYMS)
        if matched:
            reasons.append(f"Outcome fit: {', '.join(matched)}")

    if components.get('tools', 0.0) > NEUTRAL_SCORE:
        matched = matched_terms(brief.tools, candidate.tools, config.tool_synonyms)
        if matched:
            reasons.append(f"Tools: {', '.join(matched)}")

    if components.get('industry', 0.0) > NEUTRAL_SCORE:
        matched = matched_terms(brief.industries, candidate.industries, config.industry_synonyms)
        if matched:
            reasons.append(f"Industry: {', '.join(matched)}")

    if certified_tools:
        reasons.append(f"Verified certification: {', '.join(certified_tools)}")

    return reasons[:MAX_REASONS]


def build_flags(
    brief: BriefRequirements,
    candidate: CandidateCapabilities,
    components: Dict[str, float],
    config: ScoringConfig
) -> List[str]:
    flags = []

    if (
        candidate.band_min is not None
        and brief.budget_max is not None
        and candidate.band_min > brief.budget_max
    ):
        flags.append(FLAG_BUDGET_EXCEEDS_BAND)

    if components.get('availability', 0.0) < 0.5:
        flags.append(FLAG_AVAILABILITY_SHORTFALL)

    declared_required = matched_terms(brief.tools, candidate.tools, config.tool_synonyms)
    certified = matched_terms(declared_required, candidate.verified_cert_tools, config.tool_synonyms)
    if len(certified) < len(declared_required):
        flags.append(FLAG_UNVERIFIED_TOOL_CLAIM)

    return flags


def describe_flag(flag: str) -> str:
    return FLAG_LABELS.get(flag, flag)
