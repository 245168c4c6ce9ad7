"""Marketplace workflows shared by main.py and the web application."""

from .runner import (
    run_ranking,
    run_matching_and_invite,
    auto_match_pending_briefs,
    rollover_expired,
    view_invite,
    respond_to_invite,
    select_expert,
    reassign_expert,
    process_email_outbox,
    MatchAndInviteResult,
    BatchResult,
)

__all__ = [
    'run_ranking',
    'run_matching_and_invite',
    'auto_match_pending_briefs',
    'rollover_expired',
    'view_invite',
    'respond_to_invite',
    'select_expert',
    'reassign_expert',
    'process_email_outbox',
    'MatchAndInviteResult',
    'BatchResult',
]
