#!/usr/bin/env python3
"""
Typed lifecycle facts emitted by the invitation and selection services.

Services return these alongside their results; the caller dispatches
them only after the unit of work has committed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.utils import utcnow


class EventType(str, Enum):
    INVITE_SENT = "invite.sent"
    INVITE_ACCEPTED = "invite.accepted"
    INVITE_DECLINED = "invite.declined"
    INVITE_CHANGED = "invite.changed"
    BRIEF_NEEDS_MORE_EXPERTS = "brief.needs_more_experts"
    PROPOSAL_ACCEPTED = "proposal.accepted"
    SELECTION_NOT_SELECTED = "selection.not_selected"
    # Reminders from the scheduled cycle
    EXPERT_NUDGE_PROPOSE = "expert.nudge.propose"
    CLIENT_NUDGE_CHOOSE = "client.nudge.choose"
    # Emitted by adjacent subsystems, delivered through the same dispatcher
    PROPOSAL_SUBMITTED = "proposal.submitted"
    PAYMENT_RECEIVED = "payment.received"
    QA_PASSED = "qa.passed"
    QA_FAILED = "qa.failed"


@dataclass
class LifecycleEvent:
    event_type: EventType
    brief_id: Optional[Any] = None
    expert_id: Optional[Any] = None
    invite_id: Optional[Any] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form, used as the RQ job payload."""
        return {
            'event_type': self.event_type.value,
            'brief_id': str(self.brief_id) if self.brief_id is not None else None,
            'expert_id': str(self.expert_id) if self.expert_id is not None else None,
            'invite_id': str(self.invite_id) if self.invite_id is not None else None,
            'payload': self.payload,
            'event_id': self.event_id,
            'occurred_at': self.occurred_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LifecycleEvent":
        def _uuid(value):
            return uuid.UUID(value) if value else None

        return cls(
            event_type=EventType(data['event_type']),
            brief_id=_uuid(data.get('brief_id')),
            expert_id=_uuid(data.get('expert_id')),
            invite_id=_uuid(data.get('invite_id')),
            payload=data.get('payload') or {},
            event_id=data.get('event_id') or str(uuid.uuid4()),
            occurred_at=datetime.fromisoformat(data['occurred_at']) if data.get('occurred_at') else utcnow(),
        )


def invite_changed(invite, **extra) -> LifecycleEvent:
    """The 'invite changed' fact realtime consumers subscribe to."""
    payload = {'status': invite.status}
    payload.update(extra)
    return LifecycleEvent(
        event_type=EventType.INVITE_CHANGED,
        brief_id=invite.brief_id,
        expert_id=invite.expert_user_id,
        invite_id=invite.id,
        payload=payload,
    )
