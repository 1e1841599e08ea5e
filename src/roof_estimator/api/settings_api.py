"""
Settings API - read and update the business settings.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from postgrest.exceptions import APIError

from ..services.settings_service import SettingsService
from .deps import get_settings_service, rate_limited, require_admin
from .schemas import SettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/settings",
    tags=["settings"],
    dependencies=[Depends(rate_limited('general')), Depends(require_admin)],
)


@router.get("")
def get_settings(service: SettingsService = Depends(get_settings_service)):
    """Current settings, or the defaults when none are stored."""
    try:
        return {"settings": service.get_business_config()}
    except APIError as e:
        logger.error("Failed to read settings: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch settings")


@router.put("")
def update_settings(payload: SettingsUpdate, service: SettingsService = Depends(get_settings_service)):
    """Write the provided sections and fields; everything else is left as stored."""
    data = payload.model_dump(exclude_unset=True, mode='json')
    try:
        settings = service.update_settings(data)
    except APIError as e:
        logger.error("Failed to update settings: %s", e)
        raise HTTPException(status_code=500, detail="Failed to update settings")
    return {"success": True, "settings": settings}
