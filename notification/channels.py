#!/usr/bin/env python3
"""
Email channels for lifecycle notifications.

Every channel takes an already rendered message and either returns the
provider's message id or raises DeliveryFailure. Retrying is the
dispatcher's job, not the channel's.

Usage:
    from notification.channels import NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('resend', from_email='Briefmatch <no-reply@briefmatch.app>')
    provider_id = channel.send(recipient, subject, html_body, metadata)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import logging
import os
import re
import uuid

import requests
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import make_msgid
import urllib.parse
import ipaddress
import socket

from core.errors import DeliveryFailure

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email))


def _validate_webhook_url(url: str) -> bool:
    """
    Validate webhook URL to prevent SSRF attacks.

    Checks:
    - Scheme is http or https
    - Hostname resolves to public IP (not private/loopback)
    """
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError as e:
        logger.error(f"URL validation error: {e}")
        return False

    if parsed.scheme not in ('http', 'https'):
        logger.error(f"Invalid URL scheme: {parsed.scheme}")
        return False

    if not parsed.hostname:
        logger.error("URL missing hostname")
        return False

    try:
        addrinfo = socket.getaddrinfo(parsed.hostname, None)
    except socket.gaierror:
        logger.error(f"Could not resolve hostname: {parsed.hostname}")
        return False

    for _, _, _, _, sockaddr in addrinfo:
        ip = ipaddress.ip_address(sockaddr[0])
        if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local:
            logger.error(f"URL resolves to private/reserved IP: {ip}")
            return False

    return True


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def _mask_email(email: str) -> str:
    """
    Mask email address for safe logging (PII protection).

    Shows only domain, e.g., "***@example.com"
    """
    if not email or '@' not in email:
        return "***"
    local, domain = email.rsplit('@', 1)
    return f"***@{domain}"


class NotificationChannel(ABC):
    """
    Abstract base class for email channels.

    Args:
        from_email: Sender address, "Name <address>" accepted
    """

    def __init__(self, from_email: str = "Briefmatch <no-reply@briefmatch.app>"):
        self.from_email = from_email

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> Optional[str]:
        """
        Send one rendered email.

        Args:
            recipient: Destination address
            subject: Subject line
            body: HTML body
            metadata: Template code, event id and dedup key, for tagging

        Returns:
            Provider message id, if the provider returns one

        Raises:
            DeliveryFailure: When the message was not accepted
        """
        pass

    def validate_config(self) -> bool:
        return True


class ResendEmailChannel(NotificationChannel):
    """Transactional email through the Resend HTTP API."""

    @property
    def channel_type(self) -> str:
        return 'resend'

    def validate_config(self) -> bool:
        return bool(os.environ.get('RESEND_API_KEY'))

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> Optional[str]:
        if not self.validate_config():
            raise DeliveryFailure("Resend not configured - RESEND_API_KEY not set", retryable=False)

        payload = {
            'from': self.from_email,
            'to': [recipient],
            'subject': subject,
            'html': body,
        }
        template_code = metadata.get('template_code')
        if template_code:
            payload['tags'] = [{'name': 'template', 'value': template_code}]

        headers = {
            'Authorization': f"Bearer {os.environ['RESEND_API_KEY']}",
            'Content-Type': 'application/json',
        }
        dedup_key = metadata.get('dedup_key')
        if dedup_key:
            headers['Idempotency-Key'] = dedup_key

        try:
            response = requests.post(RESEND_API_URL, json=payload, headers=headers, timeout=30)
        except requests.RequestException as e:
            raise DeliveryFailure(f"Resend request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise DeliveryFailure(f"Resend returned {response.status_code}: {response.text[:200]}")
        if response.status_code >= 400:
            raise DeliveryFailure(
                f"Resend rejected message ({response.status_code}): {response.text[:200]}",
                retryable=False
            )

        try:
            provider_id = response.json().get('id')
        except (ValueError, AttributeError) as e:
            raise DeliveryFailure(
                f"Resend returned an unreadable body ({response.status_code}): {response.text[:200]}",
                retryable=False
            ) from e
        logger.info(f"Email sent to {_mask_email(recipient)} via Resend ({provider_id})")
        return provider_id


class SmtpEmailChannel(NotificationChannel):
    """Email notification channel via SMTP."""

    @property
    def channel_type(self) -> str:
        return 'smtp'

    def validate_config(self) -> bool:
        required_vars = ['SMTP_SERVER', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_PASSWORD']
        return all(os.environ.get(var) for var in required_vars)

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> Optional[str]:
        if not self.validate_config():
            raise DeliveryFailure("Email not configured - SMTP environment variables not set", retryable=False)

        smtp_server = os.environ.get('SMTP_SERVER', 'smtp.gmail.com')
        smtp_port = int(os.environ.get('SMTP_PORT', '587'))
        username = os.environ.get('SMTP_USERNAME', '')
        password = os.environ.get('SMTP_PASSWORD', '')

        message_id = make_msgid(domain=self.from_email.rsplit('@', 1)[-1].rstrip('>'))
        msg = MIMEMultipart()
        msg['From'] = self.from_email
        msg['To'] = recipient
        msg['Subject'] = subject
        msg['Message-ID'] = message_id
        msg.attach(MIMEText(body, 'html', 'utf-8'))

        try:
            with smtplib.SMTP(smtp_server, smtp_port) as server:
                server.starttls()
                server.login(username, password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(f"SMTP send failed: {e}") from e

        logger.info(f"Email sent to {_mask_email(recipient)}")
        return message_id


class LogEmailChannel(NotificationChannel):
    """Writes emails to the log instead of sending them. Used in development and dry runs."""

    @property
    def channel_type(self) -> str:
        return 'log'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> Optional[str]:
        logger.info(
            f"[DRY RUN] Email to {_mask_email(recipient)}: '{subject}' "
            f"(template={metadata.get('template_code')})"
        )
        return f"log-{uuid.uuid4()}"


class WebhookSubscriber:
    """
    Forwards lifecycle events to an HTTP endpoint as JSON.

    Registered as a dispatcher subscriber; used for collaborators such as
    project creation that live outside this service.
    """

    def __init__(self, url: str, timeout: int = 30):
        self.url = url
        self.timeout = timeout

    def __call__(self, event) -> None:
        if not _validate_webhook_url(self.url):
            raise ValueError(f"Invalid or unsafe webhook URL: {self.url}")

        response = requests.post(
            self.url,
            json=event.to_dict(),
            headers={
                'Content-Type': 'application/json',
                'User-Agent': 'Briefmatch-Events/1.0',
            },
            timeout=self.timeout
        )
        response.raise_for_status()

        parsed = urllib.parse.urlparse(self.url)
        logger.info(f"Event {event.event_type.value} forwarded to {parsed.scheme}://{parsed.hostname}{parsed.path}")


class NotificationChannelFactory:
    """
    Factory for creating email channels.

    New channels are added with register_channel() without touching
    the dispatcher.
    """

    _channels: Dict[str, type] = {
        'resend': ResendEmailChannel,
        'smtp': SmtpEmailChannel,
        'log': LogEmailChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str, **kwargs) -> NotificationChannel:
        """
        Get a channel instance by type.

        NOTIFICATION_DRY_RUN forces the log channel regardless of type.

        Raises:
            ValueError: If channel type is not registered
        """
        if _is_dry_run_mode():
            return LogEmailChannel(**kwargs)

        channel_class = cls._channels.get(channel_type.lower())
        if not channel_class:
            raise ValueError(f"Unknown channel type: {channel_type}. "
                             f"Available: {', '.join(cls._channels.keys())}")

        return channel_class(**kwargs)

    @classmethod
    def register_channel(cls, channel_type: str, channel_class: type):
        if not issubclass(channel_class, NotificationChannel):
            raise ValueError("Channel class must extend NotificationChannel")

        cls._channels[channel_type.lower()] = channel_class
        logger.info(f"Registered new channel type: {channel_type}")

    @classmethod
    def list_channels(cls) -> list:
        return list(cls._channels.keys())
