"""Invitation lifecycle: creation, viewing, responses and derived expiry."""
from core.invitations.state import (
    InviteStatus, BriefStatus, EXPIRED, RESPONSE_ACTIONS,
    is_expired, is_respondable, effective_status, describe_invite
)
from core.invitations.service import (
    InvitationService, InviteCreationResult, InviteResponseResult, ProposalDetails
)
from core.invitations.messages import build_invitation_message

__all__ = [
    'InviteStatus', 'BriefStatus', 'EXPIRED', 'RESPONSE_ACTIONS',
    'is_expired', 'is_respondable', 'effective_status', 'describe_invite',
    'InvitationService', 'InviteCreationResult', 'InviteResponseResult', 'ProposalDetails',
    'build_invitation_message'
]
