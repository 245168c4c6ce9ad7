#!/usr/bin/env python3
"""
Typed matching inputs.

Briefs store their requirements as loosely structured JSON and expert
profiles spread capabilities across several tables. This module is the
single parsing step that turns both into plain dataclasses, so the
scorer never pokes at raw payloads and can run off the session thread.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.config_loader import ScoringConfig

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r'\d[\d,]*(?:\.\d+)?')


@dataclass
class BriefRequirements:
    """What a brief asks for, as read by the scorer."""
    brief_id: Any
    title: str = ""
    outcomes: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    industries: List[str] = field(default_factory=list)
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    urgency: Optional[str] = None


@dataclass
class CaseStudyEvidence:
    title: str
    outcome_tags: List[str] = field(default_factory=list)


@dataclass
class CandidateCapabilities:
    """What an expert declares, plus what has been verified."""
    candidate_id: Any
    outcomes: List[str] = field(default_factory=list)
    tools: List[str] = field(default_factory=list)
    industries: List[str] = field(default_factory=list)
    weekly_hours: Optional[float] = None
    band_min: Optional[float] = None
    band_max: Optional[float] = None
    verified_cert_tools: List[str] = field(default_factory=list)
    verified_case_studies: List[CaseStudyEvidence] = field(default_factory=list)


def _unique(terms: Iterable[Any]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first spelling and order."""
    seen = set()
    result = []
    for term in terms:
        if term is None:
            continue
        text = str(term).strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        result.append(text)
    return result


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return []


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(',', ''))
    except (TypeError, ValueError):
        return None


def _keywords_in(text: str, keywords: Iterable[str]) -> List[str]:
    lowered = text.lower()
    found = []
    for keyword in keywords:
        pattern = r'(?<![\w])' + re.escape(keyword.lower()) + r'(?![\w])'
        if re.search(pattern, lowered):
            found.append(keyword)
    return found


def parse_budget_range(budget_range: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
    """
    Read "$5,000 - $10,000" style text into (min, max).

    A single number is both bounds; no number gives (None, None).
    """
    if not budget_range:
        return None, None

    numbers = [_as_float(m) for m in _NUMBER_RE.findall(budget_range)]
    numbers = [n for n in numbers if n is not None]
    if not numbers:
        return None, None
    if len(numbers) == 1:
        return numbers[0], numbers[0]
    return numbers[0], numbers[1]


def parse_brief(brief: Any, config: Optional[ScoringConfig] = None) -> BriefRequirements:
    """
    Build BriefRequirements from a Brief row.

    Structured lists come first; outcome and tool keywords mentioned in
    the title or goal are appended.
    """
    config = config or ScoringConfig()
    structured: Dict[str, Any] = getattr(brief, 'structured_brief', None) or {}
    title = getattr(brief, 'title', None) or ""

    free_text = " ".join(str(part) for part in (title, structured.get('goal') or "") if part)

    outcomes = _unique(_as_list(structured.get('outcomes')) + _keywords_in(free_text, config.outcome_keywords))
    tools = _unique(_as_list(structured.get('tools')) + _keywords_in(free_text, config.tool_keywords))
    industries = _unique(_as_list(structured.get('industries')) + _as_list(structured.get('industry')))

    budget_min = _as_float(structured.get('budget_min'))
    budget_max = _as_float(structured.get('budget_max'))
    if budget_min is None and budget_max is None:
        budget_min, budget_max = parse_budget_range(getattr(brief, 'budget_range', None))

    urgency = getattr(brief, 'urgency', None) or structured.get('urgency')

    return BriefRequirements(
        brief_id=getattr(brief, 'id', None),
        title=title,
        outcomes=outcomes,
        tools=tools,
        industries=industries,
        budget_min=budget_min,
        budget_max=budget_max,
        urgency=urgency.strip().lower() if isinstance(urgency, str) else None,
    )


def parse_candidate(expert: Any) -> CandidateCapabilities:
    """Build CandidateCapabilities from an ExpertProfile with certifications and case studies loaded."""
    verified_tools = [
        cert.tool for cert in (getattr(expert, 'certifications', None) or [])
        if (cert.status or "").lower() == 'verified'
    ]
    case_studies = [
        CaseStudyEvidence(title=cs.title, outcome_tags=_unique(_as_list(cs.outcome_tags)))
        for cs in (getattr(expert, 'case_studies', None) or [])
        if cs.is_verified
    ]

    return CandidateCapabilities(
        candidate_id=expert.user_id,
        outcomes=_unique(_as_list(expert.outcome_preferences)),
        tools=_unique(_as_list(expert.tools) + _as_list(expert.practical_skills)),
        industries=_unique(_as_list(expert.industries)),
        weekly_hours=_as_float(expert.availability_weekly_hours),
        band_min=_as_float(expert.outcome_band_min),
        band_max=_as_float(expert.outcome_band_max),
        verified_cert_tools=_unique(verified_tools),
        verified_case_studies=case_studies,
    )
