#!/usr/bin/env python3
"""
Tests for lifecycle events and their queue payload form.
"""

import uuid
import unittest
from types import SimpleNamespace

from core.events import EventType, LifecycleEvent, invite_changed
from tests import NOW


class TestLifecycleEvent(unittest.TestCase):

    def test_queue_payload_round_trip(self):
        event = LifecycleEvent(
            event_type=EventType.PROPOSAL_ACCEPTED,
            brief_id=uuid.uuid4(),
            expert_id=uuid.uuid4(),
            invite_id=uuid.uuid4(),
            payload={'brief_title': 'CRM automation', 'reassigned': False},
            occurred_at=NOW,
        )

        data = event.to_dict()
        self.assertEqual(data['event_type'], 'proposal.accepted')
        self.assertEqual(data['brief_id'], str(event.brief_id))

        restored = LifecycleEvent.from_dict(data)
        self.assertEqual(restored, event)

    def test_optional_ids(self):
        event = LifecycleEvent(event_type=EventType.QA_PASSED, payload={'project_title': 'Bot'})
        data = event.to_dict()
        self.assertIsNone(data['brief_id'])
        self.assertIsNone(LifecycleEvent.from_dict(data).invite_id)

    def test_event_ids_are_unique(self):
        first = LifecycleEvent(event_type=EventType.INVITE_SENT)
        second = LifecycleEvent(event_type=EventType.INVITE_SENT)
        self.assertNotEqual(first.event_id, second.event_id)

    def test_invite_changed(self):
        invite = SimpleNamespace(id=uuid.uuid4(), brief_id=uuid.uuid4(), expert_user_id=uuid.uuid4(), status='accepted')
        event = invite_changed(invite, reason='response')

        self.assertEqual(event.event_type, EventType.INVITE_CHANGED)
        self.assertEqual(event.invite_id, invite.id)
        self.assertEqual(event.payload, {'status': 'accepted', 'reason': 'response'})


if __name__ == '__main__':
    unittest.main()
