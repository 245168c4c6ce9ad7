import time
import logging
import signal
import json
import argparse
import uuid

from core.app_context import AppContext
from core.config_loader import load_config
from core.invitations import InvitationService, describe_invite
from core.utils import utcnow
from database.init_db import init_db
from database.uow import marketplace_uow
from pipeline.runner import (
    run_ranking,
    run_matching_and_invite,
    auto_match_pending_briefs,
    rollover_expired,
    nudge_pending_experts,
    nudge_clients_to_choose,
    select_expert,
    reassign_expert,
    process_email_outbox,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def _print(data):
    print(json.dumps(data, indent=2, default=str))


def run_cycle(ctx: AppContext):
    """
    One scheduled cycle:
    1. Match and invite newly submitted briefs
    2. Roll briefs whose invites all expired over to fresh candidates
    3. Remind experts with unanswered invites and clients who have not chosen
    4. Retry pending outbox emails
    """
    step_start = time.time()
    logger.info("=== STEP 1: Auto-matching submitted briefs ===")
    auto = auto_match_pending_briefs(ctx)
    logger.info(f"=== STEP 1 completed in {time.time() - step_start:.2f}s ({auto.processed} briefs) ===")

    step_start = time.time()
    logger.info("=== STEP 2: Rolling over expired invitations ===")
    rollover = rollover_expired(ctx)
    logger.info(f"=== STEP 2 completed in {time.time() - step_start:.2f}s ({rollover.processed} briefs) ===")

    step_start = time.time()
    logger.info("=== STEP 3: Sending reminders ===")
    experts = nudge_pending_experts(ctx)
    clients = nudge_clients_to_choose(ctx)
    logger.info(f"=== STEP 3 completed in {time.time() - step_start:.2f}s ({experts.claimed} expert, {clients.claimed} client reminders) ===")

    step_start = time.time()
    logger.info("=== STEP 4: Processing email outbox ===")
    stats = process_email_outbox(ctx)
    logger.info(f"=== STEP 4 completed in {time.time() - step_start:.2f}s ({stats['processed']} emails) ===")


def run_loop(ctx: AppContext):
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    interval = ctx.config.schedule.interval_seconds
    cycle_count = 0
    while running:
        cycle_count += 1
        cycle_start = time.time()
        logger.info(f"=== Starting Cycle #{cycle_count} ===")
        try:
            run_cycle(ctx)
        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)

        cycle_elapsed = time.time() - cycle_start
        if running:
            logger.info(f"=== Cycle #{cycle_count} completed in {cycle_elapsed:.2f}s. Sleeping for {interval} seconds... ===")
            # Sleep in chunks to allow responsive shutdown
            for _ in range(max(1, interval // 5)):
                if not running:
                    break
                time.sleep(5)


def list_expired(ctx: AppContext):
    now = utcnow()
    with marketplace_uow(ctx.session_factory) as repo:
        grouped = InvitationService().find_expired(repo, now)
        return {
            str(brief_id): [describe_invite(invite, now) for invite in invites]
            for brief_id, invites in grouped.items()
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Briefmatch driver")
    parser.add_argument('--config', default='config.yaml', help='Path to config.yaml')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create database tables')

    rank = sub.add_parser('rank', help='Rank candidates for a brief (no invites)')
    rank.add_argument('brief_id', type=uuid.UUID)
    rank.add_argument('--min-score', type=float)
    rank.add_argument('--max-results', type=int)
    rank.add_argument('--widen', action='store_true')

    invite = sub.add_parser('invite', help='Rank a brief and invite the shortlist')
    invite.add_argument('brief_id', type=uuid.UUID)
    invite.add_argument('--min-score', type=float)
    invite.add_argument('--max-results', type=int)
    invite.add_argument('--widen', action='store_true')

    select = sub.add_parser('select', help="Finalize an accepted expert as the brief's winner")
    select.add_argument('brief_id', type=uuid.UUID)
    select.add_argument('expert_id', type=uuid.UUID)

    reassign = sub.add_parser('reassign', help='Admin: move the brief to another accepted expert')
    reassign.add_argument('brief_id', type=uuid.UUID)
    reassign.add_argument('expert_id', type=uuid.UUID)
    reassign.add_argument('--actor', type=uuid.UUID)

    sub.add_parser('auto-match', help='Match and invite recently submitted briefs')
    sub.add_parser('rollover', help='Invite fresh candidates where every invite expired')
    sub.add_parser('expired', help='List expired invites grouped by brief')
    sub.add_parser('nudge', help='Remind experts with unanswered invites and clients who have not chosen')

    outbox = sub.add_parser('process-outbox', help='Retry queued and failed emails')
    outbox.add_argument('--batch-size', type=int)

    sub.add_parser('run', help='Run auto-match, rollover, reminders and outbox on a schedule')
    return parser


def main():
    args = build_parser().parse_args()
    logger.info(f"Main driver starting: {args.command}")

    if args.command == 'init-db':
        # Initialize DB (with retry logic)
        init_db()
        return

    config = load_config(args.config)
    ctx = AppContext.build(config)

    if args.command == 'rank':
        _print(run_ranking(ctx, args.brief_id, min_score=args.min_score, max_results=args.max_results, widen=args.widen).to_dict())
    elif args.command == 'invite':
        _print(run_matching_and_invite(ctx, args.brief_id, min_score=args.min_score, max_results=args.max_results, widen=args.widen).to_dict())
    elif args.command == 'select':
        _print(select_expert(ctx, args.brief_id, args.expert_id))
    elif args.command == 'reassign':
        _print(reassign_expert(ctx, args.brief_id, args.expert_id, actor_id=args.actor))
    elif args.command == 'auto-match':
        _print(auto_match_pending_briefs(ctx).__dict__)
    elif args.command == 'rollover':
        _print(rollover_expired(ctx).__dict__)
    elif args.command == 'expired':
        _print(list_expired(ctx))
    elif args.command == 'nudge':
        _print({'experts': nudge_pending_experts(ctx).__dict__, 'clients': nudge_clients_to_choose(ctx).__dict__})
    elif args.command == 'process-outbox':
        _print(process_email_outbox(ctx, batch_size=args.batch_size))
    elif args.command == 'run':
        init_db()
        run_loop(ctx)


if __name__ == "__main__":
    main()
