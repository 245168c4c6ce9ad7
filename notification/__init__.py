"""
Notification Module

Delivers committed lifecycle events as email (through an outbox) and
in-app notifications, inline or through Redis Queue.

Usage:
    from notification import EventDispatcher, NotificationService

    dispatcher = EventDispatcher.from_config(config.notifications)
    service = NotificationService(dispatcher, use_async_queue=False)
    service.publish_all(result.events)
"""

from notification.channels import (
    NotificationChannel,
    ResendEmailChannel,
    SmtpEmailChannel,
    LogEmailChannel,
    WebhookSubscriber,
    NotificationChannelFactory,
)

from notification.templates import (
    TEMPLATES,
    RenderedMessage,
    render,
)

from notification.dispatcher import (
    EventDispatcher,
    DispatchReport,
    ROUTES,
    dedup_key_for,
)

from notification.service import (
    NotificationService,
    process_event_task,
    process_outbox_task,
)

__all__ = [
    # Channels
    'NotificationChannel',
    'ResendEmailChannel',
    'SmtpEmailChannel',
    'LogEmailChannel',
    'WebhookSubscriber',
    'NotificationChannelFactory',
    # Templates
    'TEMPLATES',
    'RenderedMessage',
    'render',
    # Dispatcher
    'EventDispatcher',
    'DispatchReport',
    'ROUTES',
    'dedup_key_for',
    # Service
    'NotificationService',
    'process_event_task',
    'process_outbox_task',
]
