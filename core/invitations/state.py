#!/usr/bin/env python3
r"""
Invite and brief states.

    sent --accept--> accepted --select--> selected
      |                  \---sibling won--> not_selected
      \--decline--> declined

'expired' is never stored: a 'sent' invite at or past expires_at reads
as expired and cannot be answered.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from core.utils import ensure_utc


class InviteStatus(str, Enum):
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    SELECTED = "selected"
    NOT_SELECTED = "not_selected"


class BriefStatus(str, Enum):
    SUBMITTED = "submitted"
    PROPOSAL_READY = "proposal_ready"
    EXPERT_RESPONSES_RECEIVED = "expert_responses_received"
    NEEDS_MORE_EXPERTS = "needs_more_experts"
    EXPERT_SELECTED = "expert_selected"


EXPIRED = "expired"

RESPONSE_ACTIONS = {
    'accept': InviteStatus.ACCEPTED,
    'decline': InviteStatus.DECLINED,
}


def is_expired(invite: Any, now: datetime) -> bool:
    return invite.status == InviteStatus.SENT.value and now >= ensure_utc(invite.expires_at)


def is_respondable(invite: Any, now: datetime) -> bool:
    return invite.status == InviteStatus.SENT.value and now < ensure_utc(invite.expires_at)


def effective_status(invite: Any, now: datetime) -> str:
    return EXPIRED if is_expired(invite, now) else invite.status


def describe_invite(invite: Any, now: datetime) -> Dict[str, Any]:
    """Read model of an invite with the derived status applied."""
    def _iso(value):
        value = ensure_utc(value)
        return value.isoformat() if value else None

    return {
        'id': str(invite.id),
        'brief_id': str(invite.brief_id),
        'expert_id': str(invite.expert_user_id),
        'status': invite.status,
        'effective_status': effective_status(invite, now),
        'respondable': is_respondable(invite, now),
        'score_at_invite': invite.score_at_invite,
        'reasons': list(invite.reasons or []),
        'flags': list(invite.flags or []),
        'invitation_message': invite.invitation_message,
        'sent_at': _iso(invite.sent_at),
        'expires_at': _iso(invite.expires_at),
        'viewed_at': _iso(invite.viewed_at),
        'responded_at': _iso(invite.responded_at),
        'response_message': invite.response_message,
        'proposal_details': invite.proposal_details,
    }
