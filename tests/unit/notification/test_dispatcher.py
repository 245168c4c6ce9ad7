#!/usr/bin/env python3
"""
Tests for the event dispatcher: outbox bookkeeping, bounded retry,
dedup on redelivery and per-recipient isolation.
"""

import unittest
from unittest.mock import Mock, patch

import pytest
from sqlalchemy import select

from core.config_loader import NotificationConfig
from core.errors import DeliveryFailure
from core.events import EventType, LifecycleEvent
from database.models import EmailOutbox, Notification
from database.repository import MarketplaceRepository
from notification.channels import NotificationChannel, LogEmailChannel, WebhookSubscriber
from notification.dispatcher import EventDispatcher, dedup_key_for
from tests import make_memory_engine, make_session_factory, add_brief, add_expert, add_profile

SITE_URL = "https://app.example.com"


@pytest.mark.db
class _DispatcherTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = make_memory_engine()
        self.factory = make_session_factory(self.engine)

        session = self.factory()
        self.client = add_profile(session, role='client', full_name="Cleo", email="cleo@example.com")
        self.brief = add_brief(session, client=self.client, title="CRM automation")
        self.expert = add_expert(session, full_name="Ada", email="ada@example.com")
        self.ids = {
            'client': self.client.user_id,
            'brief': self.brief.id,
            'expert': self.expert.user_id,
        }
        session.commit()
        session.close()

        self.channel = Mock(spec=NotificationChannel)
        self.channel.send.return_value = 'prov-1'
        self.dispatcher = self._dispatcher()

    def tearDown(self):
        self.engine.dispose()

    def _dispatcher(self, **overrides):
        options = dict(
            channel=self.channel,
            session_factory=self.factory,
            site_url=SITE_URL,
            send_attempts=2,
            retry_wait_seconds=0,
            outbox_pause_seconds=0,
        )
        options.update(overrides)
        return EventDispatcher(**options)

    def _invite_sent(self, expert_id=None):
        return LifecycleEvent(
            event_type=EventType.INVITE_SENT,
            brief_id=self.ids['brief'],
            expert_id=expert_id or self.ids['expert'],
            invite_id=self.ids['brief'],
            payload={'brief_title': 'CRM automation', 'reasons': ['Tools: HubSpot']},
        )

    def _outbox(self):
        with self.factory() as session:
            return session.execute(select(EmailOutbox)).scalars().all()

    def _notifications(self):
        with self.factory() as session:
            return session.execute(select(Notification)).scalars().all()


class TestDispatch(_DispatcherTestCase):

    def test_email_and_in_app(self):
        event = self._invite_sent()

        report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {str(self.ids['expert']): 'sent'})
        self.assertEqual(report.in_app_written, 1)
        self.assertEqual(report.errors, [])

        args = self.channel.send.call_args.args
        self.assertEqual(args[0], 'ada@example.com')
        self.assertEqual(args[1], "You're invited to propose: CRM automation")
        self.assertEqual(args[3]['dedup_key'], dedup_key_for(event.event_id, self.ids['expert'], 'expert_invite_to_propose'))

        [row] = self._outbox()
        self.assertEqual(row.status, 'sent')
        self.assertEqual(row.attempts, 1)
        self.assertEqual(row.provider_id, 'prov-1')
        self.assertEqual(row.event_id, event.event_id)

        [notification] = self._notifications()
        self.assertEqual(notification.user_id, self.ids['expert'])
        self.assertEqual(notification.type, 'expert_invite_to_propose')
        self.assertEqual(notification.related_brief_id, self.ids['brief'])
        self.assertEqual(notification.cta_url, f"{SITE_URL}/expert/invites/{self.ids['brief']}")

    def test_proposal_accepted_reaches_expert_and_client(self):
        event = LifecycleEvent(
            event_type=EventType.PROPOSAL_ACCEPTED,
            brief_id=self.ids['brief'],
            expert_id=self.ids['expert'],
            payload={'client_user_id': str(self.ids['client'])},
        )

        report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {
            str(self.ids['expert']): 'sent',
            str(self.ids['client']): 'sent',
        })
        types = {n.user_id: n.type for n in self._notifications()}
        self.assertEqual(types, {
            self.ids['expert']: 'expert_proposal_won',
            self.ids['client']: 'client_expert_selected',
        })
        recipients = sorted(call.args[0] for call in self.channel.send.call_args_list)
        self.assertEqual(recipients, ['ada@example.com', 'cleo@example.com'])

    def test_client_resolved_from_brief(self):
        event = LifecycleEvent(
            event_type=EventType.INVITE_ACCEPTED,
            brief_id=self.ids['brief'],
            expert_id=self.ids['expert'],
        )

        report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {str(self.ids['client']): 'sent'})
        self.assertIn("Ada", self._notifications()[0].body)

    def test_event_without_recipients(self):
        event = LifecycleEvent(event_type=EventType.INVITE_CHANGED, brief_id=self.ids['brief'])

        report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {})
        self.assertEqual(self._notifications(), [])
        self.channel.send.assert_not_called()


class TestEmailFailures(_DispatcherTestCase):

    def test_permanent_failure_still_writes_in_app(self):
        self.channel.send.side_effect = DeliveryFailure("rejected", retryable=False)

        report = self.dispatcher.dispatch(self._invite_sent())

        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'failed')
        self.assertEqual(self.channel.send.call_count, 1)
        [row] = self._outbox()
        self.assertEqual((row.status, row.attempts, row.error), ('failed', 1, 'rejected'))
        self.assertEqual(len(self._notifications()), 1)

    def test_retryable_failure_is_retried_once(self):
        self.channel.send.side_effect = DeliveryFailure("503")

        report = self.dispatcher.dispatch(self._invite_sent())

        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'failed')
        self.assertEqual(self.channel.send.call_count, 2)
        self.assertEqual(self._outbox()[0].attempts, 2)

    def test_retry_then_success(self):
        self.channel.send.side_effect = [DeliveryFailure("timeout"), 'prov-2']

        report = self.dispatcher.dispatch(self._invite_sent())

        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'sent')
        row = self._outbox()[0]
        self.assertEqual((row.status, row.attempts, row.provider_id), ('sent', 2, 'prov-2'))

    def test_unexpected_channel_error_still_writes_in_app(self):
        self.channel.send.side_effect = RuntimeError("channel bug")

        report = self.dispatcher.dispatch(self._invite_sent())

        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'failed')
        self.assertEqual(report.errors, [])
        self.assertEqual(len(self._notifications()), 1)

    def test_unexpected_channel_error_is_recorded_on_the_row(self):
        self.channel.send.side_effect = ValueError("Expecting value: line 1 column 1")

        self.dispatcher.dispatch(self._invite_sent())

        # Not retried, but the attempt counts and the error is kept
        self.assertEqual(self.channel.send.call_count, 1)
        [row] = self._outbox()
        self.assertEqual((row.status, row.attempts), ('failed', 1))
        self.assertEqual(row.error, "ValueError: Expecting value: line 1 column 1")

    def test_invalid_recipient_is_not_sent(self):
        session = self.factory()
        broken = add_expert(session, email='not-an-email')
        broken_id = broken.user_id
        session.commit()
        session.close()

        report = self.dispatcher.dispatch(self._invite_sent(expert_id=broken_id))

        self.assertEqual(report.outcomes[str(broken_id)], 'failed')
        self.channel.send.assert_not_called()
        self.assertEqual(self._outbox()[0].attempts, 3)


class TestDeliveryModes(_DispatcherTestCase):

    def test_redelivered_event_is_not_resent(self):
        event = self._invite_sent()

        self.dispatcher.dispatch(event)
        again = self.dispatcher.dispatch(event)

        self.assertEqual(again.outcomes[str(self.ids['expert'])], 'duplicate')
        self.assertEqual(self.channel.send.call_count, 1)
        self.assertEqual(len(self._outbox()), 1)
        self.assertEqual(len(self._notifications()), 1)

    def test_redelivery_after_failure_reuses_outbox_row(self):
        event = self._invite_sent()
        self.channel.send.side_effect = DeliveryFailure("rejected", retryable=False)
        self.dispatcher.dispatch(event)

        self.channel.send.side_effect = None
        again = self.dispatcher.dispatch(event)

        self.assertEqual(again.outcomes[str(self.ids['expert'])], 'sent')
        [row] = self._outbox()
        self.assertEqual((row.status, row.attempts), ('sent', 2))

    def test_email_disabled(self):
        dispatcher = self._dispatcher(email_enabled=False)

        report = dispatcher.dispatch(self._invite_sent())

        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'disabled')
        self.channel.send.assert_not_called()
        self.assertEqual(self._outbox(), [])
        self.assertEqual(len(self._notifications()), 1)

    def test_recipient_without_email(self):
        session = self.factory()
        silent = add_expert(session, email='')
        silent_id = silent.user_id
        session.commit()
        session.close()

        report = self.dispatcher.dispatch(self._invite_sent(expert_id=silent_id))

        self.assertEqual(report.outcomes[str(silent_id)], 'no_email')
        self.assertEqual(len(self._notifications()), 1)

    def test_test_recipient_redirect(self):
        dispatcher = self._dispatcher(test_recipient='qa@example.com')

        dispatcher.dispatch(self._invite_sent())

        self.assertEqual(self.channel.send.call_args.args[0], 'qa@example.com')


class TestIsolation(_DispatcherTestCase):

    def test_one_recipient_failing_does_not_stop_the_other(self):
        event = LifecycleEvent(
            event_type=EventType.PROPOSAL_ACCEPTED,
            brief_id=self.ids['brief'],
            expert_id=self.ids['expert'],
            payload={'client_user_id': str(self.ids['client'])},
        )

        with patch.object(self.dispatcher, '_deliver', side_effect=[RuntimeError("db down"), 'sent']):
            report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {str(self.ids['client']): 'sent'})
        self.assertEqual(len(report.errors), 1)

    def test_malformed_client_id_does_not_stop_the_expert(self):
        event = LifecycleEvent(
            event_type=EventType.PROPOSAL_ACCEPTED,
            brief_id=self.ids['brief'],
            expert_id=self.ids['expert'],
            payload={'client_user_id': 'not-a-uuid'},
        )

        report = self.dispatcher.dispatch(event)

        self.assertEqual(report.outcomes, {str(self.ids['expert']): 'sent'})
        self.assertEqual(len(report.errors), 1)
        self.assertTrue(report.errors[0].startswith('client:'))
        self.assertEqual([n.type for n in self._notifications()], ['expert_proposal_won'])

    def test_subscribers(self):
        failing = Mock(side_effect=RuntimeError("hook down"))
        catch_all = Mock()
        unrelated = Mock()
        self.dispatcher.subscribe(EventType.INVITE_SENT, failing)
        self.dispatcher.subscribe(None, catch_all)
        self.dispatcher.subscribe(EventType.QA_PASSED, unrelated)

        event = self._invite_sent()
        report = self.dispatcher.dispatch(event)

        failing.assert_called_once_with(event)
        catch_all.assert_called_once_with(event)
        unrelated.assert_not_called()
        self.assertEqual(len(report.errors), 1)
        self.assertEqual(report.outcomes[str(self.ids['expert'])], 'sent')

    def test_dispatch_all(self):
        reports = self.dispatcher.dispatch_all([self._invite_sent(), self._invite_sent()])
        self.assertEqual(len(reports), 2)
        self.assertEqual(self.channel.send.call_count, 2)


class TestProcessOutbox(_DispatcherTestCase):

    def test_failed_rows_are_retried(self):
        self.channel.send.side_effect = DeliveryFailure("rejected", retryable=False)
        self.dispatcher.dispatch(self._invite_sent())

        self.channel.send.side_effect = None
        self.channel.send.return_value = 'prov-3'
        stats = self.dispatcher.process_outbox()

        self.assertEqual(stats, {'processed': 1, 'sent': 1, 'failed': 0})
        row = self._outbox()[0]
        self.assertEqual((row.status, row.attempts, row.provider_id), ('sent', 2, 'prov-3'))
        # Re-rendered from the stored payload
        self.assertEqual(self.channel.send.call_args.args[1], "You're invited to propose: CRM automation")

    def _queue_rows(self, *dedup_keys):
        with self.factory() as session:
            for dedup_key in dedup_keys:
                MarketplaceRepository(session).notifications.create_outbox(
                    dedup_key=dedup_key,
                    to_email='ada@example.com',
                    template_code='expert_invite_to_propose',
                    payload={'brief_title': 'CRM automation'},
                )
            session.commit()

    def test_unexpected_channel_error_does_not_stop_the_batch(self):
        self._queue_rows('evt-1:user:expert_invite_to_propose', 'evt-2:user:expert_invite_to_propose')
        self.channel.send.side_effect = [ValueError("bad body"), 'prov-4']

        stats = self.dispatcher.process_outbox()

        self.assertEqual(stats, {'processed': 2, 'sent': 1, 'failed': 1})
        statuses = sorted((row.status, row.attempts, row.error) for row in self._outbox())
        self.assertEqual(statuses, [('failed', 1, 'ValueError: bad body'), ('sent', 1, None)])

    def test_row_that_cannot_be_processed_is_counted_failed(self):
        self._queue_rows('evt-1:user:expert_invite_to_propose', 'evt-2:user:expert_invite_to_propose')

        with patch.object(self.dispatcher, '_send_outbox', side_effect=[RuntimeError("db down"), 'sent']):
            stats = self.dispatcher.process_outbox()

        self.assertEqual(stats, {'processed': 2, 'sent': 1, 'failed': 1})

    def test_exhausted_rows_are_left_alone(self):
        with self.factory() as session:
            MarketplaceRepository(session).notifications.create_outbox(
                dedup_key='evt:user:expert_invite_to_propose',
                to_email='ada@example.com',
                template_code='expert_invite_to_propose',
                payload={'brief_title': 'X'},
            )
            session.execute(EmailOutbox.__table__.update().values(status='failed', attempts=3))
            session.commit()

        self.assertEqual(self.dispatcher.process_outbox(), {'processed': 0, 'sent': 0, 'failed': 0})

    def test_unknown_template_row_fails(self):
        with self.factory() as session:
            MarketplaceRepository(session).notifications.create_outbox(
                dedup_key='evt:user:gone',
                to_email='ada@example.com',
                template_code='gone',
                payload={},
            )
            session.commit()

        stats = self.dispatcher.process_outbox()

        self.assertEqual(stats, {'processed': 1, 'sent': 0, 'failed': 1})
        self.channel.send.assert_not_called()
        self.assertEqual(self._outbox()[0].attempts, 3)


class TestFromConfig(unittest.TestCase):

    def test_builds_channel_and_webhooks(self):
        config = NotificationConfig(
            email_channel='log',
            email_enabled=False,
            send_attempts=3,
            event_webhooks={'proposal.accepted': ['https://projects.example.com/hooks']},
        )

        dispatcher = EventDispatcher.from_config(config)

        self.assertIsInstance(dispatcher.channel, LogEmailChannel)
        self.assertFalse(dispatcher.email_enabled)
        self.assertEqual(dispatcher.send_attempts, 3)
        [subscriber] = dispatcher._subscribers[EventType.PROPOSAL_ACCEPTED]
        self.assertIsInstance(subscriber, WebhookSubscriber)
        self.assertEqual(subscriber.url, 'https://projects.example.com/hooks')


if __name__ == '__main__':
    unittest.main()
