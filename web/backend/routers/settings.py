#!/usr/bin/env python3
"""
Admin matching settings endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.config_loader import AppConfig
from ..config import get_config
from ..dependencies import get_db
from ..services.settings_service import MatchingSettingsService
from ..models.requests import MatchingSettingsUpdate
from ..models.responses import MatchingSettingsResponse

router = APIRouter(prefix="/api/admin", tags=["settings"])


@router.get("/matching-settings", response_model=MatchingSettingsResponse)
def get_matching_settings(
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config)
):
    """Effective weights, thresholds, synonyms and response window."""
    service = MatchingSettingsService(db, config)
    return MatchingSettingsResponse(success=True, settings=service.get_effective())


@router.put("/matching-settings", response_model=MatchingSettingsResponse)
def update_matching_settings(
    request: MatchingSettingsUpdate,
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config)
):
    """
    Update admin matching settings.

    Only the keys present in the body are written; the next ranking run
    picks them up.
    """
    service = MatchingSettingsService(db, config)
    settings = service.update(request.model_dump(exclude_none=True))
    return MatchingSettingsResponse(success=True, settings=settings)
