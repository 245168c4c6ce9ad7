from dataclasses import dataclass
from typing import Optional

from core.config_loader import AppConfig
from notification.dispatcher import EventDispatcher
from notification.service import NotificationService


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Ranking, invitation and selection services are built per call from
    the effective matching settings, so they are not held here. DB access
    should be obtained via marketplace_uow() inside each workflow.
    """
    config: AppConfig
    dispatcher: EventDispatcher
    notification_service: NotificationService
    session_factory: Optional[object] = None

    @classmethod
    def build(cls, config: AppConfig, session_factory=None, dispatcher: Optional[EventDispatcher] = None) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            session_factory: Session factory for every unit of work (defaults to SessionLocal)
            dispatcher: Pre-built dispatcher, e.g. with a test channel

        Returns:
            Fully wired AppContext instance (no DB session attached)
        """
        if dispatcher is None:
            dispatcher = EventDispatcher.from_config(config.notifications, session_factory=session_factory)

        notification_service = NotificationService(
            dispatcher,
            redis_url=config.notifications.redis_url,
            use_async_queue=config.notifications.use_async_queue
        )

        return cls(
            config=config,
            dispatcher=dispatcher,
            notification_service=notification_service,
            session_factory=session_factory,
        )
