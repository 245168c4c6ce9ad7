#!/usr/bin/env python3
"""Invitation text shown to the expert, built from ranking reasons and flags."""

from datetime import datetime
from typing import List

from core.scorer import describe_flag


def build_invitation_message(brief_title: str, reasons: List[str], flags: List[str], expires_at: datetime) -> str:
    lines = [f'You have been matched with "{brief_title}".']
    if reasons:
        lines.append(f"Why you: {'; '.join(reasons)}.")
    if flags:
        lines.append(f"Worth checking before you respond: {'; '.join(describe_flag(f) for f in flags)}.")
    lines.append(f"Please respond by {expires_at:%d %b %Y %H:%M} UTC.")
    return "\n".join(lines)
