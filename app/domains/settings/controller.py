"""Settings controller endpoints for managing user preferences and user data."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user
from app.database import get_db
from app.domains.settings.service import SettingsService
from app.exceptions.base import BaseAppException
from app.schemas.settings import (
    DeleteUserDataResponse,
    UserDataExport,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("", response_model=UserSettingsResponse)
async def get_settings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get current user's settings.

    This endpoint retrieves the authenticated user's settings,
    creating default settings if they don't exist yet.
    """
    settings_service = SettingsService(db)

    try:
        settings = await settings_service.get_user_settings(current_user.id)
        return UserSettingsResponse.model_validate(settings)
    except Exception as e:
        logger.error(f"Failed to retrieve settings for user {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve settings: {str(e)}",
        ) from e


@router.put("", response_model=UserSettingsResponse)
async def update_settings(
    update_data: UserSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Save current user's settings.

    The whole preference document is replaced; the default model must be a
    known model.
    """
    settings_service = SettingsService(db)

    try:
        updated_settings = await settings_service.update_user_settings(
            user_id=current_user.id, preferences=update_data.preferences
        )
        return UserSettingsResponse.model_validate(updated_settings)
    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to update settings for user {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update settings: {str(e)}",
        ) from e


@router.post("/reset", response_model=UserSettingsResponse)
async def reset_settings(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Reset current user's settings to defaults.

    Defaults: the default model, system theme, medium font, English,
    reasoning traces collapsed, auto-save and notifications on.
    """
    settings_service = SettingsService(db)

    try:
        reset_settings = await settings_service.reset_user_settings(current_user.id)
        return UserSettingsResponse.model_validate(reset_settings)
    except Exception as e:
        logger.error(f"Failed to reset settings for user {current_user.id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reset settings: {str(e)}",
        ) from e


@router.get("/export", response_model=UserDataExport)
async def export_user_data(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Export the current user's profile, preferences, chats and messages."""
    data = await SettingsService(db).export_user_data(current_user.id)
    return UserDataExport(**data)


@router.delete("/data", response_model=DeleteUserDataResponse)
async def delete_user_data(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete all chats, messages and settings of the current user."""
    counts = await SettingsService(db).delete_all_user_data(current_user.id)
    return DeleteUserDataResponse(**counts)
