from database.repositories.base import BaseRepository
from database.repositories.brief import BriefRepository
from database.repositories.expert import ExpertRepository
from database.repositories.invite import InviteRepository
from database.repositories.matching_run import MatchingRunRepository
from database.repositories.notification import NotificationRepository
from database.repositories.settings import SettingsRepository

__all__ = [
    'BaseRepository',
    'BriefRepository',
    'ExpertRepository',
    'InviteRepository',
    'MatchingRunRepository',
    'NotificationRepository',
    'SettingsRepository',
]
