#!/usr/bin/env python3
"""
Notification Service - hands committed events to the dispatcher.

In async mode each event becomes an RQ job on the 'notifications' queue
and is dispatched by a worker (see notification.worker). In sync mode
the dispatcher runs inline, after the caller's commit.

Usage:
    from notification.service import NotificationService

    service = NotificationService(dispatcher, use_async_queue=False)
    service.publish(result.events)
"""

import os
import logging
from typing import Optional, Dict, Any, List

from redis import Redis
from rq import Queue, Retry

from core.config_loader import AppConfig, load_config
from core.events import LifecycleEvent
from notification.dispatcher import EventDispatcher

logger = logging.getLogger(__name__)

QUEUE_NAME = 'notifications'


class NotificationService:
    """
    Routes lifecycle events to the dispatcher, inline or through Redis Queue.

    Args:
        dispatcher: Dispatcher used in sync mode
        redis_url: Redis connection URL
        use_async_queue: Whether to use async queue or sync mode
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        redis_url: Optional[str] = None,
        use_async_queue: bool = False
    ):
        self.dispatcher = dispatcher
        self.redis_url = redis_url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

        if not use_async_queue:
            logger.info("Async queue disabled via config. Using sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False
            return

        try:
            self.redis_conn = Redis.from_url(self.redis_url)
            # Validate connection with ping before using
            self.redis_conn.ping()
            self.queue = Queue(QUEUE_NAME, connection=self.redis_conn)
            self.async_mode = True
            logger.info("Notification service connected to Redis")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False

    def publish(self, event: LifecycleEvent) -> Optional[str]:
        """
        Deliver one event.

        Returns:
            RQ job id in async mode, the event id in sync mode
        """
        if self.async_mode:
            # Dispatch is idempotent per recipient, so a retried job never double-sends
            job = self.queue.enqueue(
                process_event_task,
                event.to_dict(),
                job_timeout='5m',
                result_ttl=86400,
                retry=Retry(max=3, interval=[30, 60, 120])
            )
            logger.info(f"Queued {event.event_type.value} ({event.event_id}) as job {job.id}")
            return job.id

        self.dispatcher.dispatch(event)
        return event.event_id

    def publish_all(self, events: List[LifecycleEvent]) -> List[Optional[str]]:
        return [self.publish(event) for event in events]

    def get_queue_status(self) -> Dict[str, Any]:
        """Get queue status."""
        if not self.async_mode:
            return {'status': 'sync_mode', 'queue_length': 0}

        try:
            return {
                'status': 'active',
                'queue_length': len(self.queue),
                'redis_connected': self.redis_conn.ping()
            }
        except Exception as e:
            return {'status': 'error', 'error': str(e)}


_worker_dispatcher: Optional[EventDispatcher] = None


def configure_worker_dispatcher(config: AppConfig) -> EventDispatcher:
    """Build the dispatcher used by worker tasks (called once by notification.worker)."""
    global _worker_dispatcher
    _worker_dispatcher = EventDispatcher.from_config(config.notifications)
    return _worker_dispatcher


def _get_worker_dispatcher() -> EventDispatcher:
    if _worker_dispatcher is None:
        return configure_worker_dispatcher(load_config(os.environ.get('CONFIG_PATH', 'config.yaml')))
    return _worker_dispatcher


# Worker tasks - must be at module level for RQ
def process_event_task(event_data: Dict[str, Any]) -> str:
    """Dispatch one serialized lifecycle event (called by RQ worker)."""
    event = LifecycleEvent.from_dict(event_data)
    logger.info(f"Processing event {event.event_id} ({event.event_type.value})")
    report = _get_worker_dispatcher().dispatch(event)
    if report.errors:
        logger.warning(f"Event {event.event_id} dispatched with errors: {report.errors}")
    return event.event_id


def process_outbox_task(batch_size: Optional[int] = None) -> Dict[str, int]:
    """Retry pending outbox rows (scheduled job)."""
    return _get_worker_dispatcher().process_outbox(batch_size=batch_size)
