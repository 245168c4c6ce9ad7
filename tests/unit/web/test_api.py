#!/usr/bin/env python3
"""
API tests with FastAPI's TestClient against an in-memory database.
"""

import uuid
import unittest
from datetime import timedelta
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from core.app_context import AppContext
from core.config_loader import AppConfig, MatchingConfig, ScoringConfig
from core.utils import utcnow
from database.repository import MarketplaceRepository
from notification.channels import NotificationChannel
from notification.dispatcher import EventDispatcher
from web.backend.app import create_app
from web.backend.config import get_config
from web.backend.dependencies import get_db, get_app_context
from tests import make_memory_engine, make_session_factory, add_brief, add_expert, add_invite


@pytest.mark.db
class TestApi(unittest.TestCase):

    def setUp(self):
        self.engine = make_memory_engine()
        self.factory = make_session_factory(self.engine)
        self.channel = Mock(spec=NotificationChannel)
        self.channel.send.return_value = 'prov-1'

        config = AppConfig(matching=MatchingConfig(
            scoring=ScoringConfig(tool_synonyms={'hubspot': ['hubspot crm']})
        ))
        dispatcher = EventDispatcher(self.channel, session_factory=self.factory, retry_wait_seconds=0)
        ctx = AppContext.build(config, session_factory=self.factory, dispatcher=dispatcher)

        def _get_db():
            session = self.factory()
            try:
                yield session
            finally:
                session.close()

        app = create_app()
        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_app_context] = lambda: ctx
        app.dependency_overrides[get_config] = lambda: config
        self.client = TestClient(app)

        session = self.factory()
        brief = add_brief(session, outcomes=['Sales Uplift'], tools=['HubSpot'], industries=['SaaS'])
        strong = add_expert(
            session,
            outcomes=['Sales Uplift'],
            tools=['HubSpot CRM'],
            industries=['SaaS'],
            verified_cert_tools=['HubSpot'],
            case_study_tags=['Sales Uplift'],
        )
        medium = add_expert(session, outcomes=['Sales Uplift'], tools=['HubSpot'])
        self.brief_id = str(brief.id)
        self.strong_id = str(strong.user_id)
        self.medium_id = str(medium.user_id)
        session.commit()
        session.close()

    def tearDown(self):
        self.engine.dispose()

    def _seed_invites(self, status='accepted', sent_at=None, window_hours=120):
        session = self.factory()
        repo = MarketplaceRepository(session)
        brief = repo.briefs.get_by_id(uuid.UUID(self.brief_id))
        ids = {}
        for expert_id in (self.strong_id, self.medium_id):
            expert = repo.experts.get_expert(uuid.UUID(expert_id))
            invite = add_invite(session, brief, expert, status=status, sent_at=sent_at or utcnow(), window_hours=window_hours)
            ids[expert_id] = str(invite.id)
        session.commit()
        session.close()
        return ids

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    def test_rank(self):
        response = self.client.post(f"/api/briefs/{self.brief_id}/matches")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['brief_found'])
        self.assertEqual([c['expert_id'] for c in data['candidates']], [self.strong_id, self.medium_id])
        self.assertEqual(data['candidates'][0]['score'], 1.075)

        runs = self.client.get(f"/api/briefs/{self.brief_id}/runs").json()
        self.assertEqual(runs['count'], 1)

    def test_rank_with_threshold(self):
        response = self.client.post(f"/api/briefs/{self.brief_id}/matches", json={'min_score': 0.9})
        self.assertEqual(len(response.json()['candidates']), 1)

    def test_rank_missing_brief(self):
        response = self.client.post(f"/api/briefs/{uuid.uuid4()}/matches")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['brief_found'])
        self.assertEqual(response.json()['metadata']['error'], 'brief_not_found')

    def test_invite_shortlist(self):
        response = self.client.post(f"/api/briefs/{self.brief_id}/invites")

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual([i['expert_id'] for i in data['invited']], [self.strong_id, self.medium_id])
        self.assertTrue(all(i['effective_status'] == 'sent' for i in data['invited']))

        pending = self.client.get(f"/api/experts/{self.strong_id}/invites/pending").json()
        self.assertEqual(pending['count'], 1)

        listed = self.client.get(f"/api/briefs/{self.brief_id}/invites").json()
        self.assertEqual(listed['count'], 2)

    def test_invite_missing_brief(self):
        response = self.client.post(f"/api/briefs/{uuid.uuid4()}/invites")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['type'], 'NotFoundError')

    def test_invalid_uuid(self):
        response = self.client.post("/api/briefs/not-a-uuid/matches")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_respond_and_view(self):
        invites = self._seed_invites(status='sent')
        invite_id = invites[self.strong_id]

        viewed = self.client.post(f"/api/invites/{invite_id}/view", json={'expert_id': self.strong_id})
        self.assertEqual(viewed.status_code, 200)
        self.assertIsNotNone(viewed.json()['invite']['viewed_at'])

        response = self.client.post(
            f"/api/invites/{invite_id}/respond",
            json={'action': 'accept', 'proposal_details': {'hourly_rate': 95}, 'expert_id': self.strong_id},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['invite']['status'], 'accepted')
        self.assertEqual(response.json()['invite']['proposal_details'], {'hourly_rate': 95.0})

        again = self.client.post(f"/api/invites/{invite_id}/respond", json={'action': 'decline'})
        self.assertEqual(again.status_code, 400)

    def test_respond_to_expired_invite(self):
        invites = self._seed_invites(status='sent', sent_at=utcnow() - timedelta(hours=200))

        response = self.client.post(f"/api/invites/{invites[self.strong_id]}/respond", json={'action': 'accept'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('expired', response.json()['error'])

        expired = self.client.get("/api/invites/expired").json()
        self.assertEqual(expired['count'], 2)
        self.assertEqual(list(expired['briefs']), [self.brief_id])

    def test_respond_with_unknown_proposal_field(self):
        invites = self._seed_invites(status='sent')

        response = self.client.post(
            f"/api/invites/{invites[self.strong_id]}/respond",
            json={'action': 'accept', 'proposal_details': {'discount': 10}},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['type'], 'ValidationError')

    def test_respond_to_unknown_invite(self):
        response = self.client.post(f"/api/invites/{uuid.uuid4()}/respond", json={'action': 'accept'})
        self.assertEqual(response.status_code, 404)

    def test_selection_and_conflict(self):
        self._seed_invites(status='accepted')

        first = self.client.post(f"/api/briefs/{self.brief_id}/selection", json={'expert_id': self.strong_id})
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()['not_selected'], [self.medium_id])

        second = self.client.post(f"/api/briefs/{self.brief_id}/selection", json={'expert_id': self.medium_id})
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json()['type'], 'ConflictError')

    def test_admin_reassign(self):
        self._seed_invites(status='accepted')

        response = self.client.post(
            f"/api/admin/briefs/{self.brief_id}/reassign",
            json={'expert_id': self.medium_id},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['expert_id'], self.medium_id)
        self.assertIsNone(response.json()['previous_expert_id'])

    def test_notifications(self):
        self.client.post(f"/api/briefs/{self.brief_id}/invites")

        listed = self.client.get(f"/api/users/{self.strong_id}/notifications").json()
        self.assertEqual((listed['count'], listed['unread']), (1, 1))
        notification = listed['notifications'][0]
        self.assertEqual(notification['type'], 'expert_invite_to_propose')

        read = self.client.post(f"/api/notifications/{notification['id']}/read")
        self.assertEqual(read.status_code, 200)
        first_read_at = read.json()['notification']['read_at']
        self.assertIsNotNone(first_read_at)

        again = self.client.post(f"/api/notifications/{notification['id']}/read")
        self.assertEqual(again.json()['notification']['read_at'], first_read_at)

        unread = self.client.get(f"/api/users/{self.strong_id}/notifications", params={'unread_only': True}).json()
        self.assertEqual((unread['count'], unread['unread']), (0, 0))

    def test_mark_unknown_notification_read(self):
        response = self.client.post(f"/api/notifications/{uuid.uuid4()}/read")
        self.assertEqual(response.status_code, 404)

    def test_queue_status(self):
        data = self.client.get("/api/notifications/queue-status").json()
        self.assertEqual(data['status'], 'sync_mode')
        self.assertFalse(data['redis_connected'])

    def test_matching_settings(self):
        current = self.client.get("/api/admin/matching-settings").json()['settings']
        self.assertEqual(current['outcome_weight'], 0.40)
        self.assertEqual(current['tool_synonyms'], {'hubspot': ['hubspot crm']})

        updated = self.client.put(
            "/api/admin/matching-settings",
            json={'outcome_weight': 0.5, 'max_invites_default': 1},
        ).json()['settings']
        self.assertEqual(updated['outcome_weight'], 0.5)
        self.assertEqual(updated['max_invites_default'], 1)
        # Untouched keys keep their defaults
        self.assertEqual(updated['tools_weight'], 0.30)

        ranked = self.client.post(f"/api/briefs/{self.brief_id}/matches").json()
        self.assertEqual(len(ranked['candidates']), 1)

    def test_matching_settings_validation(self):
        response = self.client.put("/api/admin/matching-settings", json={'max_invites_default': 0})
        self.assertEqual(response.status_code, 422)


if __name__ == '__main__':
    unittest.main()
