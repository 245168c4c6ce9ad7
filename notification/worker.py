#!/usr/bin/env python3
"""
RQ worker for the 'notifications' queue.

Builds the event dispatcher from config.yaml once, before jobs are
forked, so every process_event_task job delivers through the configured
channel. With --drain-outbox a process_outbox_task job is queued first,
which lets a cron'd burst run retry pending emails as well.

Usage:
    python -m notification.worker
    python -m notification.worker --burst --drain-outbox
    python -m notification.worker --config /etc/briefmatch/config.yaml
"""

import os
import sys
import argparse
import logging
from typing import List, Optional

from redis import Redis
from rq import Queue, Worker

from core.config_loader import load_config
from notification.service import QUEUE_NAME, configure_worker_dispatcher, process_outbox_task

logger = logging.getLogger(__name__)


def start_worker(
    config_path: str = 'config.yaml',
    burst: bool = False,
    queues: Optional[List[str]] = None,
    drain_outbox: bool = False
):
    """Connect to Redis and process notification jobs until stopped (or drained, in burst mode)."""
    config = load_config(config_path)
    redis_url = config.notifications.redis_url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    queues = queues or [QUEUE_NAME]

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
    except Exception as e:
        logger.error(f"Redis unavailable at {redis_url}: {e}")
        sys.exit(1)

    dispatcher = configure_worker_dispatcher(config)
    logger.info(
        f"Notification worker on {', '.join(queues)} "
        f"(channel={dispatcher.channel.channel_type}, email_enabled={dispatcher.email_enabled}, burst={burst})"
    )

    if drain_outbox:
        job = Queue(QUEUE_NAME, connection=redis_conn).enqueue(
            process_outbox_task, config.notifications.outbox_batch_size
        )
        logger.info(f"Queued outbox retry as job {job.id}")

    worker = Worker(queues, connection=redis_conn)
    try:
        worker.work(burst=burst)
    except KeyboardInterrupt:
        logger.info("Notification worker stopped")


def main():
    parser = argparse.ArgumentParser(description='Briefmatch notification worker')
    parser.add_argument('--config', default=os.environ.get('CONFIG_PATH', 'config.yaml'))
    parser.add_argument('--burst', action='store_true', help='Process queued jobs and exit')
    parser.add_argument('--drain-outbox', action='store_true', help='Queue an outbox retry before working')
    parser.add_argument('--queues', nargs='+', default=[QUEUE_NAME])
    parser.add_argument('--verbose', action='store_true')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    start_worker(args.config, burst=args.burst, queues=args.queues, drain_outbox=args.drain_outbox)


if __name__ == '__main__':
    main()
