"""Business logic services."""

from .marketplace_service import MarketplaceQueryService
from .settings_service import MatchingSettingsService
