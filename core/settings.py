#!/usr/bin/env python3
"""
Admin-tunable matching settings.

YAML config supplies defaults; rows in admin_settings override them per
key. The result is an explicit value handed to the scorer and ranker,
never consulted as global state.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.config_loader import MatchingConfig, InvitationConfig, ScoringConfig
from core.matcher import coerce_synonym_table

logger = logging.getLogger(__name__)

WEIGHT_KEYS = {
    'outcome_weight': 'outcome',
    'tools_weight': 'tools',
    'industry_weight': 'industry',
    'availability_weight': 'availability',
    'history_weight': 'history',
}

SETTING_KEYS = tuple(WEIGHT_KEYS) + (
    'cert_boost',
    'boost_verified_certs',
    'tool_synonyms',
    'industry_synonyms',
    'min_score_default',
    'max_invites_default',
    'sla_hours',
)


@dataclass
class EffectiveMatchingSettings:
    scoring: ScoringConfig
    min_score: float
    max_results: int
    response_window_hours: int

    def as_settings_dict(self) -> Dict[str, Any]:
        """Render back into the admin key/value shape."""
        weights = self.scoring.weights
        values = {key: getattr(weights, attr) for key, attr in WEIGHT_KEYS.items()}
        values.update({
            'cert_boost': self.scoring.cert_bonus,
            'boost_verified_certs': self.scoring.boost_verified_certs,
            'tool_synonyms': self.scoring.tool_synonyms,
            'industry_synonyms': self.scoring.industry_synonyms,
            'min_score_default': self.min_score,
            'max_invites_default': self.max_results,
            'sla_hours': self.response_window_hours,
        })
        return values


def _as_float(key: str, value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric admin setting {key}={value!r}")
        return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def resolve_matching_settings(
    overrides: Dict[str, Any],
    matching: Optional[MatchingConfig] = None,
    invitations: Optional[InvitationConfig] = None
) -> EffectiveMatchingSettings:
    """
    Overlay admin settings onto configured defaults.

    Args:
        overrides: Decoded admin_settings rows (unknown keys are ignored)
        matching: Configured matching defaults
        invitations: Configured invitation defaults

    Returns:
        EffectiveMatchingSettings for one ranking or invitation run
    """
    matching = matching or MatchingConfig()
    invitations = invitations or InvitationConfig()

    scoring = matching.scoring.model_copy(deep=True)
    min_score = matching.min_score
    max_results = matching.max_results
    window_hours = invitations.response_window_hours

    for key, attr in WEIGHT_KEYS.items():
        if overrides.get(key) is not None:
            value = _as_float(key, overrides[key])
            if value is not None:
                setattr(scoring.weights, attr, value)

    if overrides.get('cert_boost') is not None:
        value = _as_float('cert_boost', overrides['cert_boost'])
        if value is not None:
            scoring.cert_bonus = value

    if overrides.get('boost_verified_certs') is not None:
        scoring.boost_verified_certs = _as_bool(overrides['boost_verified_certs'])

    if overrides.get('tool_synonyms') is not None:
        scoring.tool_synonyms = coerce_synonym_table(overrides['tool_synonyms'])
    if overrides.get('industry_synonyms') is not None:
        scoring.industry_synonyms = coerce_synonym_table(overrides['industry_synonyms'])

    if overrides.get('min_score_default') is not None:
        value = _as_float('min_score_default', overrides['min_score_default'])
        if value is not None:
            min_score = value

    if overrides.get('max_invites_default') is not None:
        value = _as_float('max_invites_default', overrides['max_invites_default'])
        if value is not None and value >= 1:
            max_results = int(value)

    if overrides.get('sla_hours') is not None:
        value = _as_float('sla_hours', overrides['sla_hours'])
        if value is not None and value > 0:
            window_hours = int(value)

    return EffectiveMatchingSettings(
        scoring=scoring,
        min_score=min_score,
        max_results=max_results,
        response_window_hours=window_hours,
    )
