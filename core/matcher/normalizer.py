#!/usr/bin/env python3
"""
Term normalization against admin-configured synonym tables.

"HubSpot" and "HubSpot CRM" compare equal when the tool table has
`{"hubspot": ["hubspot crm"]}`. Pure functions, no I/O.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Set

logger = logging.getLogger(__name__)

SynonymTable = Dict[str, List[str]]


def _clean(term: Any) -> str:
    return str(term if term is not None else "").strip().lower()


def normalize(term: str, synonym_table: SynonymTable) -> Set[str]:
    """
    Map a raw term to its set of canonical forms.

    Returns the trimmed lowercase term plus, when it equals a table key
    or one of that key's synonyms, the whole equivalence class.
    """
    cleaned = _clean(term)
    forms = {cleaned}
    if not cleaned:
        return forms

    for key, synonyms in synonym_table.items():
        key_clean = _clean(key)
        synonym_clean = {_clean(s) for s in synonyms or []}
        if cleaned == key_clean or cleaned in synonym_clean:
            forms.add(key_clean)
            forms.update(synonym_clean)
    return forms


def terms_match(left: str, right: str, synonym_table: SynonymTable) -> bool:
    """Two terms match when their normalized forms overlap."""
    return bool(normalize(left, synonym_table) & normalize(right, synonym_table))


def matched_terms(required: Iterable[str], declared: Iterable[str], synonym_table: SynonymTable) -> List[str]:
    """Required terms (original spelling, in order) with a match among the declared terms."""
    declared_forms: Set[str] = set()
    for term in declared:
        declared_forms |= normalize(term, synonym_table)

    return [
        term for term in required
        if normalize(term, synonym_table) & declared_forms
    ]


def coerce_synonym_table(raw: Any) -> SynonymTable:
    """
    Turn an admin setting value into a synonym table.

    Accepts a dict (or its JSON text) mapping key -> list or
    comma-separated string. Anything unusable yields an empty table.
    """
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring synonym table that is not valid JSON")
            return {}
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring synonym table of type {type(raw).__name__}")
        return {}

    table: SynonymTable = {}
    for key, values in raw.items():
        if isinstance(values, str):
            values = [v for v in values.split(',')]
        elif not isinstance(values, (list, tuple, set)):
            continue
        cleaned = [_clean(v) for v in values if _clean(v)]
        if _clean(key):
            table[_clean(key)] = cleaned
    return table
