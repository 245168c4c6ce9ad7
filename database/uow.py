import contextlib
import logging

from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def marketplace_uow(session_factory=None):
    """Per-unit-of-work transaction scope.

    Yields a MarketplaceRepository bound to a fresh Session. Commits on
    success, rolls back on exception, always closes.

    Events produced inside the block must be dispatched after it exits,
    so a delivery problem can never undo the committed state.

    Usage:
        with marketplace_uow() as repo:
            result = selection.select_expert(repo, brief_id, expert_id)
        # commit happens automatically on successful exit
        dispatcher.dispatch_all(result.events)
    """
    if session_factory is None:
        from database.database import SessionLocal
        session_factory = SessionLocal

    session = session_factory()
    try:
        repo = MarketplaceRepository(session)
        yield repo
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
