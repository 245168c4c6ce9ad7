"""Matcher Module - term normalization and typed matching inputs."""
from core.matcher.normalizer import (
    SynonymTable, normalize, terms_match, matched_terms, coerce_synonym_table
)
from core.matcher.requirements import (
    BriefRequirements, CandidateCapabilities, CaseStudyEvidence,
    parse_brief, parse_candidate, parse_budget_range
)

__all__ = [
    'SynonymTable', 'normalize', 'terms_match', 'matched_terms', 'coerce_synonym_table',
    'BriefRequirements', 'CandidateCapabilities', 'CaseStudyEvidence',
    'parse_brief', 'parse_candidate', 'parse_budget_range'
]
