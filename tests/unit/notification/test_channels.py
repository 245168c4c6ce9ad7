#!/usr/bin/env python3
"""
Tests for email channels, the channel factory and webhook subscribers.
"""

import os
import smtplib
import unittest
from unittest.mock import patch, Mock

import requests

from core.errors import DeliveryFailure
from core.events import EventType, LifecycleEvent
from notification.channels import (
    NotificationChannel,
    ResendEmailChannel,
    SmtpEmailChannel,
    LogEmailChannel,
    WebhookSubscriber,
    NotificationChannelFactory,
    _validate_webhook_url,
    _mask_email,
    is_valid_email,
)

METADATA = {'template_code': 'expert_invite_to_propose', 'dedup_key': 'evt-1:user-1:expert_invite_to_propose'}


def _response(status_code, json_body=None, text=''):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_body or {}
    response.text = text
    return response


class TestResendEmailChannel(unittest.TestCase):

    def setUp(self):
        self.channel = ResendEmailChannel(from_email="Briefmatch <no-reply@briefmatch.app>")

    @patch.dict(os.environ, {'RESEND_API_KEY': 're_test'})
    @patch('notification.channels.requests.post')
    def test_send_success(self, mock_post):
        mock_post.return_value = _response(200, {'id': 'msg_123'})

        provider_id = self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)

        self.assertEqual(provider_id, 'msg_123')
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs['json']['to'], ['ada@example.com'])
        self.assertEqual(kwargs['json']['tags'], [{'name': 'template', 'value': 'expert_invite_to_propose'}])
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer re_test')
        self.assertEqual(kwargs['headers']['Idempotency-Key'], METADATA['dedup_key'])

    @patch.dict(os.environ, {'RESEND_API_KEY': 're_test'})
    @patch('notification.channels.requests.post')
    def test_rate_limit_and_server_errors_are_retryable(self, mock_post):
        for status in (429, 502):
            mock_post.return_value = _response(status, text='slow down')
            with self.assertRaises(DeliveryFailure) as ctx:
                self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
            self.assertTrue(ctx.exception.retryable)

    @patch.dict(os.environ, {'RESEND_API_KEY': 're_test'})
    @patch('notification.channels.requests.post')
    def test_rejection_is_not_retryable(self, mock_post):
        mock_post.return_value = _response(422, text='invalid to')

        with self.assertRaises(DeliveryFailure) as ctx:
            self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
        self.assertFalse(ctx.exception.retryable)

    @patch.dict(os.environ, {'RESEND_API_KEY': 're_test'})
    @patch('notification.channels.requests.post')
    def test_unreadable_success_body(self, mock_post):
        response = _response(200, text='<html>gateway</html>')
        response.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = response

        with self.assertRaises(DeliveryFailure) as ctx:
            self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
        self.assertFalse(ctx.exception.retryable)
        self.assertIn('unreadable', str(ctx.exception))

    @patch.dict(os.environ, {'RESEND_API_KEY': 're_test'})
    @patch('notification.channels.requests.post')
    def test_network_error_is_retryable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("reset")

        with self.assertRaises(DeliveryFailure) as ctx:
            self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
        self.assertTrue(ctx.exception.retryable)

    @patch('notification.channels.requests.post')
    def test_missing_api_key(self, mock_post):
        with patch.dict(os.environ):
            os.environ.pop('RESEND_API_KEY', None)
            with self.assertRaises(DeliveryFailure) as ctx:
                self.channel.send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)

        self.assertFalse(ctx.exception.retryable)
        mock_post.assert_not_called()


SMTP_ENV = {
    'SMTP_SERVER': 'smtp.example.com',
    'SMTP_PORT': '587',
    'SMTP_USERNAME': 'mailer',
    'SMTP_PASSWORD': 'secret',
}


class TestSmtpEmailChannel(unittest.TestCase):

    @patch.dict(os.environ, SMTP_ENV)
    @patch('notification.channels.smtplib.SMTP')
    def test_send_success(self, mock_smtp):
        server = mock_smtp.return_value.__enter__.return_value

        message_id = SmtpEmailChannel().send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)

        mock_smtp.assert_called_once_with('smtp.example.com', 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with('mailer', 'secret')
        server.send_message.assert_called_once()
        self.assertTrue(message_id.startswith('<'))

    @patch.dict(os.environ, SMTP_ENV)
    @patch('notification.channels.smtplib.SMTP')
    def test_smtp_error_is_retryable(self, mock_smtp):
        server = mock_smtp.return_value.__enter__.return_value
        server.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")

        with self.assertRaises(DeliveryFailure) as ctx:
            SmtpEmailChannel().send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
        self.assertTrue(ctx.exception.retryable)

    def test_not_configured(self):
        with patch.dict(os.environ):
            for key in SMTP_ENV:
                os.environ.pop(key, None)
            with self.assertRaises(DeliveryFailure) as ctx:
                SmtpEmailChannel().send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)
        self.assertFalse(ctx.exception.retryable)


class TestLogEmailChannel(unittest.TestCase):

    def test_send_logs_only(self):
        with self.assertLogs('notification.channels', level='INFO') as logs:
            provider_id = LogEmailChannel().send('ada@example.com', 'Subject', '<p>Hi</p>', METADATA)

        self.assertTrue(provider_id.startswith('log-'))
        self.assertIn('***@example.com', logs.output[0])
        self.assertNotIn('ada@', logs.output[0])


class TestNotificationChannelFactory(unittest.TestCase):

    def test_get_channel(self):
        self.assertIsInstance(NotificationChannelFactory.get_channel('resend'), ResendEmailChannel)
        self.assertIsInstance(NotificationChannelFactory.get_channel('SMTP'), SmtpEmailChannel)
        channel = NotificationChannelFactory.get_channel('log', from_email='x@example.com')
        self.assertEqual(channel.from_email, 'x@example.com')

    def test_unknown_channel(self):
        with self.assertRaises(ValueError):
            NotificationChannelFactory.get_channel('pigeon')

    @patch.dict(os.environ, {'NOTIFICATION_DRY_RUN': 'true'})
    def test_dry_run_forces_log_channel(self):
        self.assertIsInstance(NotificationChannelFactory.get_channel('resend'), LogEmailChannel)

    def test_register_channel(self):
        class PostcardChannel(NotificationChannel):
            @property
            def channel_type(self):
                return 'postcard'

            def send(self, recipient, subject, body, metadata):
                return 'card-1'

        try:
            NotificationChannelFactory.register_channel('postcard', PostcardChannel)
            self.assertIn('postcard', NotificationChannelFactory.list_channels())
            self.assertIsInstance(NotificationChannelFactory.get_channel('postcard'), PostcardChannel)
        finally:
            NotificationChannelFactory._channels.pop('postcard', None)

    def test_register_rejects_other_classes(self):
        with self.assertRaises(ValueError):
            NotificationChannelFactory.register_channel('bad', dict)


class TestWebhookSubscriber(unittest.TestCase):

    def setUp(self):
        self.event = LifecycleEvent(event_type=EventType.PROPOSAL_ACCEPTED, payload={'brief_title': 'Bot'})

    @patch('notification.channels._validate_webhook_url', return_value=True)
    @patch('notification.channels.requests.post')
    def test_posts_event_json(self, mock_post, mock_validate):
        mock_post.return_value = _response(200)

        WebhookSubscriber('https://projects.example.com/hooks')(self.event)

        mock_post.assert_called_once()
        self.assertEqual(mock_post.call_args.args[0], 'https://projects.example.com/hooks')
        self.assertEqual(mock_post.call_args.kwargs['json'], self.event.to_dict())
        mock_post.return_value.raise_for_status.assert_called_once()

    @patch('notification.channels._validate_webhook_url', return_value=False)
    @patch('notification.channels.requests.post')
    def test_unsafe_url_is_refused(self, mock_post, mock_validate):
        with self.assertRaises(ValueError):
            WebhookSubscriber('http://10.0.0.5/hook')(self.event)
        mock_post.assert_not_called()


class TestHelpers(unittest.TestCase):

    def test_validate_webhook_url_scheme(self):
        self.assertFalse(_validate_webhook_url('ftp://example.com/hook'))
        self.assertFalse(_validate_webhook_url('https:///nohost'))

    @patch('notification.channels.socket.getaddrinfo')
    def test_validate_webhook_url_addresses(self, mock_getaddrinfo):
        mock_getaddrinfo.return_value = [(2, 1, 6, '', ('10.1.2.3', 0))]
        self.assertFalse(_validate_webhook_url('https://internal.example.com/hook'))

        mock_getaddrinfo.return_value = [(2, 1, 6, '', ('93.184.216.34', 0))]
        self.assertTrue(_validate_webhook_url('https://example.com/hook'))

    def test_email_helpers(self):
        self.assertTrue(is_valid_email('ada@example.com'))
        self.assertFalse(is_valid_email('not-an-email'))
        self.assertFalse(is_valid_email(None))
        self.assertEqual(_mask_email('ada@example.com'), '***@example.com')
        self.assertEqual(_mask_email(''), '***')


if __name__ == '__main__':
    unittest.main()
