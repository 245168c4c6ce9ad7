"""API route handlers."""

from .matching import router as matching_router
from .invites import router as invites_router
from .selection import router as selection_router
from .notifications import router as notifications_router
from .settings import router as settings_router
