#!/usr/bin/env python3
"""
Event Dispatcher.

Fans committed lifecycle events out to email and in-app notifications.

Per recipient, in order:
1. An email_outbox row is created in 'queued' (or the existing row for
   the same dedup key is reused; a row already 'sent' is never resent).
2. The email is sent through the channel, with bounded retry.
3. The row is marked 'sent' or 'failed'.
4. An in-app notification is written, whatever happened to the email.

Each recipient and each subscriber is isolated: one failing never stops
the others, and nothing raised here reaches the code that produced the
event.
"""

import json
import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from tenacity import Retrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from core.config_loader import NotificationConfig
from core.errors import DeliveryFailure
from core.events import EventType, LifecycleEvent
from core.utils import utcnow
from database.uow import marketplace_uow
from notification.channels import (
    NotificationChannel, NotificationChannelFactory, WebhookSubscriber, _mask_email, is_valid_email
)
from notification.templates import RenderedMessage, render

logger = logging.getLogger(__name__)

EXPERT = 'expert'
CLIENT = 'client'

# Who hears about what, and with which template
ROUTES: Dict[EventType, List[Tuple[str, str]]] = {
    EventType.INVITE_SENT: [(EXPERT, 'expert_invite_to_propose')],
    EventType.INVITE_ACCEPTED: [(CLIENT, 'client_expert_accepted')],
    EventType.BRIEF_NEEDS_MORE_EXPERTS: [(CLIENT, 'client_finding_more_experts')],
    EventType.PROPOSAL_ACCEPTED: [(EXPERT, 'expert_proposal_won'), (CLIENT, 'client_expert_selected')],
    EventType.SELECTION_NOT_SELECTED: [(EXPERT, 'expert_proposal_not_selected')],
    EventType.EXPERT_NUDGE_PROPOSE: [(EXPERT, 'expert_nudge_propose')],
    EventType.CLIENT_NUDGE_CHOOSE: [(CLIENT, 'client_nudge_choose')],
    EventType.PROPOSAL_SUBMITTED: [(EXPERT, 'expert_proposal_submitted'), (CLIENT, 'client_proposals_ready')],
    EventType.PAYMENT_RECEIVED: [(EXPERT, 'payment_received_milestone'), (CLIENT, 'payment_received_milestone')],
    EventType.QA_PASSED: [(EXPERT, 'qa_passed_milestone')],
    EventType.QA_FAILED: [(EXPERT, 'qa_failed_milestone')],
}

EventSubscriber = Callable[[LifecycleEvent], None]


def dedup_key_for(event_id: str, user_id: Any, template_code: str) -> str:
    return f"{event_id}:{user_id}:{template_code}"


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _as_uuid(value: Any) -> Any:
    if isinstance(value, str):
        return uuid.UUID(value)
    return value


def _is_retryable_failure(exc: BaseException) -> bool:
    return isinstance(exc, DeliveryFailure) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"Email send attempt {retry_state.attempt_number} failed: "
        f"{retry_state.outcome.exception()} - retrying"
    )


@dataclass
class Delivery:
    """One recipient of one event."""
    user_id: Any
    email: Optional[str]
    template_code: str
    variables: Dict[str, Any]
    related_brief_id: Optional[Any] = None


@dataclass
class DispatchReport:
    event_id: str
    event_type: str
    # user_id -> email outcome: sent, failed, duplicate, no_email, disabled
    outcomes: Dict[str, str] = field(default_factory=dict)
    in_app_written: int = 0
    errors: List[str] = field(default_factory=list)


class EventDispatcher:
    """
    Delivers lifecycle events to their recipients.

    Stateless with respect to the transaction that produced the event:
    every write here happens in its own short unit of work.

    Args:
        channel: Email channel
        session_factory: Session factory (defaults to the application's)
        site_url: Base URL for links in messages
        email_enabled: When False only in-app notifications are written
        send_attempts: Total attempts per email (2 = one retry)
        retry_wait_seconds: Pause between attempts
        test_recipient: Redirect all email here
        outbox_batch_size: Rows per process_outbox() run
        outbox_max_attempts: Rows with this many attempts are left alone
        outbox_pause_seconds: Pause between sends in process_outbox()
    """

    def __init__(
        self,
        channel: NotificationChannel,
        session_factory=None,
        site_url: str = "",
        email_enabled: bool = True,
        send_attempts: int = 2,
        retry_wait_seconds: float = 1.0,
        test_recipient: Optional[str] = None,
        outbox_batch_size: int = 50,
        outbox_max_attempts: int = 3,
        outbox_pause_seconds: float = 0.6
    ):
        self.channel = channel
        self.session_factory = session_factory
        self.site_url = site_url
        self.email_enabled = email_enabled
        self.send_attempts = max(1, send_attempts)
        self.retry_wait_seconds = retry_wait_seconds
        self.test_recipient = test_recipient
        self.outbox_batch_size = outbox_batch_size
        self.outbox_max_attempts = outbox_max_attempts
        self.outbox_pause_seconds = outbox_pause_seconds
        self._subscribers: Dict[Optional[EventType], List[EventSubscriber]] = defaultdict(list)

    @classmethod
    def from_config(
        cls,
        config: NotificationConfig,
        session_factory=None,
        channel: Optional[NotificationChannel] = None
    ) -> "EventDispatcher":
        if channel is None:
            channel = NotificationChannelFactory.get_channel(config.email_channel, from_email=config.from_email)

        dispatcher = cls(
            channel=channel,
            session_factory=session_factory,
            site_url=config.site_url,
            email_enabled=config.email_enabled,
            send_attempts=config.send_attempts,
            retry_wait_seconds=config.retry_wait_seconds,
            test_recipient=config.test_recipient,
            outbox_batch_size=config.outbox_batch_size,
            outbox_max_attempts=config.outbox_max_attempts,
            outbox_pause_seconds=config.outbox_pause_seconds,
        )
        for event_name, urls in config.event_webhooks.items():
            for url in urls:
                dispatcher.subscribe(EventType(event_name), WebhookSubscriber(url))
        return dispatcher

    # ============ Subscribers ============

    def subscribe(self, event_type: Optional[EventType], callback: EventSubscriber) -> None:
        """Register a callback for one event type, or for every event when event_type is None."""
        self._subscribers[event_type].append(callback)

    def _notify_subscribers(self, event: LifecycleEvent, report: DispatchReport) -> None:
        callbacks = self._subscribers.get(event.event_type, []) + self._subscribers.get(None, [])
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Subscriber {callback!r} failed for event {event.event_id}: {e}")
                report.errors.append(f"subscriber: {e}")

    # ============ Dispatch ============

    def dispatch(self, event: LifecycleEvent) -> DispatchReport:
        """Deliver one event to every recipient and subscriber."""
        report = DispatchReport(event_id=event.event_id, event_type=event.event_type.value)

        try:
            deliveries = self._plan(event, report)
        except Exception as e:
            logger.error(f"Could not load context for event {event.event_id} ({event.event_type.value}): {e}")
            report.errors.append(f"recipients: {e}")
            deliveries = []

        for delivery in deliveries:
            try:
                outcome = self._deliver(event, delivery)
                report.outcomes[str(delivery.user_id)] = outcome
                report.in_app_written += 1
            except Exception as e:
                logger.error(f"Delivery of {event.event_type.value} to user {delivery.user_id} failed: {e}")
                report.errors.append(f"{delivery.user_id}: {e}")

        self._notify_subscribers(event, report)
        logger.info(
            f"Dispatched {event.event_type.value} ({event.event_id}): "
            f"{len(deliveries)} recipient(s), {len(report.errors)} error(s)"
        )
        return report

    def dispatch_all(self, events: List[LifecycleEvent]) -> List[DispatchReport]:
        return [self.dispatch(event) for event in events]

    def _plan(self, event: LifecycleEvent, report: DispatchReport) -> List[Delivery]:
        """
        Resolve one Delivery per route. A route whose recipient cannot be
        resolved is reported and skipped; the other routes still go out.
        """
        routes = ROUTES.get(event.event_type, [])
        if not routes:
            return []

        with marketplace_uow(self.session_factory) as repo:
            brief_id = _as_uuid(event.brief_id)
            brief = repo.briefs.get_by_id(brief_id) if brief_id is not None else None

            base = _json_safe(event.payload)
            base.update({
                'brief_id': str(event.brief_id) if event.brief_id is not None else None,
                'invite_id': str(event.invite_id) if event.invite_id is not None else None,
                'brief_title': base.get('brief_title') or (brief.title if brief is not None else ''),
                'expert_name': self._expert_name(repo, event, report),
            })

            deliveries = []
            for role, template_code in routes:
                try:
                    if role == EXPERT:
                        user_id = _as_uuid(event.expert_id)
                    else:
                        user_id = _as_uuid(
                            event.payload.get('client_user_id') or (brief.client_user_id if brief is not None else None)
                        )
                    if user_id is None:
                        logger.warning(f"No {role} recipient for {event.event_type.value} ({event.event_id})")
                        continue

                    profile = repo.experts.get_profile(user_id)
                    deliveries.append(Delivery(
                        user_id=user_id,
                        email=profile.email if profile is not None else None,
                        template_code=template_code,
                        variables=dict(base, recipient_name=profile.full_name if profile is not None else None),
                        related_brief_id=brief_id,
                    ))
                except Exception as e:
                    logger.error(f"Could not resolve {role} recipient for {event.event_type.value} ({event.event_id}): {e}")
                    report.errors.append(f"{role}: {e}")
        return deliveries

    def _expert_name(self, repo, event: LifecycleEvent, report: DispatchReport) -> Optional[str]:
        if event.expert_id is None:
            return None
        try:
            profile = repo.experts.get_profile(_as_uuid(event.expert_id))
        except ValueError as e:
            logger.error(f"Malformed expert id on event {event.event_id}: {e}")
            report.errors.append(f"expert_name: {e}")
            return None
        return profile.full_name if profile is not None else None

    def _deliver(self, event: LifecycleEvent, delivery: Delivery) -> str:
        dedup_key = dedup_key_for(event.event_id, delivery.user_id, delivery.template_code)
        message = render(delivery.template_code, delivery.variables, self.site_url)

        try:
            outcome = self._deliver_email(event, delivery, message, dedup_key)
        except Exception as e:
            # Email problems never block the in-app notification
            logger.error(f"Email step for {dedup_key} failed: {e}")
            outcome = 'failed'

        with marketplace_uow(self.session_factory) as repo:
            repo.notifications.create_notification(
                dedup_key=dedup_key,
                user_id=delivery.user_id,
                type=delivery.template_code,
                title=message.title,
                body=message.body,
                cta_text=message.cta_text,
                cta_url=message.cta_url,
                related_brief_id=delivery.related_brief_id,
            )
        return outcome

    def _deliver_email(self, event: LifecycleEvent, delivery: Delivery, message: RenderedMessage, dedup_key: str) -> str:
        if not self.email_enabled:
            return 'disabled'

        to_email = self.test_recipient or delivery.email
        if not to_email:
            logger.warning(f"User {delivery.user_id} has no email address; in-app only")
            return 'no_email'

        with marketplace_uow(self.session_factory) as repo:
            entry = repo.notifications.get_outbox_by_dedup(dedup_key)
            if entry is not None and entry.status == 'sent':
                logger.info(f"Email {dedup_key} already sent; skipping")
                return 'duplicate'
            if entry is None:
                entry = repo.notifications.create_outbox(
                    dedup_key=dedup_key,
                    to_email=to_email,
                    template_code=delivery.template_code,
                    payload=delivery.variables,
                    subject=message.subject,
                    event_id=event.event_id,
                )
            outbox_id, prior_attempts = entry.id, entry.attempts or 0

        return self._send_outbox(outbox_id, to_email, message, dedup_key, prior_attempts)

    def _send_outbox(self, outbox_id: Any, to_email: str, message: RenderedMessage, dedup_key: str, prior_attempts: int) -> str:
        """Send one outbox row and record the result on it."""
        if not is_valid_email(to_email):
            logger.warning(f"Invalid recipient {_mask_email(to_email)} for {dedup_key}")
            with marketplace_uow(self.session_factory) as repo:
                repo.notifications.mark_outbox_failed(outbox_id, "invalid recipient", max(prior_attempts, self.outbox_max_attempts))
            return 'failed'

        attempts = 0

        def _attempt() -> Optional[str]:
            nonlocal attempts
            attempts += 1
            return self.channel.send(
                to_email,
                message.subject,
                message.html,
                {'template_code': message.template_code, 'dedup_key': dedup_key},
            )

        retryer = Retrying(
            retry=retry_if_exception(_is_retryable_failure),
            stop=stop_after_attempt(self.send_attempts),
            wait=wait_fixed(self.retry_wait_seconds),
            before_sleep=_log_retry,
            reraise=True,
        )

        try:
            provider_id = retryer(_attempt)
        except DeliveryFailure as e:
            logger.error(f"Email to {_mask_email(to_email)} failed after {attempts} attempt(s): {e}")
            with marketplace_uow(self.session_factory) as repo:
                repo.notifications.mark_outbox_failed(outbox_id, str(e), prior_attempts + attempts)
            return 'failed'
        except Exception as e:
            # Not retried; recorded on the row like a DeliveryFailure
            logger.error(f"Email to {_mask_email(to_email)} raised {type(e).__name__}: {e}")
            with marketplace_uow(self.session_factory) as repo:
                repo.notifications.mark_outbox_failed(outbox_id, f"{type(e).__name__}: {e}", prior_attempts + attempts)
            return 'failed'

        with marketplace_uow(self.session_factory) as repo:
            repo.notifications.mark_outbox_sent(outbox_id, provider_id, prior_attempts + attempts, utcnow())
        return 'sent'

    # ============ Outbox processing ============

    def process_outbox(self, batch_size: Optional[int] = None) -> Dict[str, int]:
        """
        Retry queued and failed outbox rows that still have attempts left.

        Messages are re-rendered from the stored template code and payload.
        Sends are paced by outbox_pause_seconds.

        Returns:
            Counts of processed, sent and failed rows
        """
        with marketplace_uow(self.session_factory) as repo:
            rows = [
                (row.id, row.to_email, row.template_code, dict(row.payload or {}), row.attempts or 0, row.dedup_key)
                for row in repo.notifications.list_retryable_outbox(
                    batch_size or self.outbox_batch_size, self.outbox_max_attempts
                )
            ]

        stats = {'processed': 0, 'sent': 0, 'failed': 0}
        for index, (outbox_id, to_email, template_code, payload, attempts, dedup_key) in enumerate(rows):
            if index and self.outbox_pause_seconds:
                time.sleep(self.outbox_pause_seconds)

            stats['processed'] += 1
            try:
                message = render(template_code, payload, self.site_url)
            except KeyError:
                logger.error(f"Unknown template '{template_code}' on outbox row {outbox_id}")
                with marketplace_uow(self.session_factory) as repo:
                    repo.notifications.mark_outbox_failed(outbox_id, f"unknown template {template_code}", self.outbox_max_attempts)
                stats['failed'] += 1
                continue

            try:
                outcome = self._send_outbox(outbox_id, self.test_recipient or to_email, message, dedup_key, attempts)
            except Exception as e:
                logger.error(f"Outbox row {outbox_id} could not be processed: {e}")
                outcome = 'failed'
            stats['sent' if outcome == 'sent' else 'failed'] += 1

        logger.info(f"Outbox run: {stats}")
        return stats
