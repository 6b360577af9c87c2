"""
Controlador de privacidad - Preferencias de aparición en leaderboards
"""

from fastapi import APIRouter, HTTPException, status

from flipapp.core.dependencies import CurrentUser, Database
from flipapp.models.privacy import PrivacySetting, PrivacyUpdate
from flipapp.services.privacy_service import EmptyPrivacyUpdateError, PrivacyService


router = APIRouter(prefix="/privacy", tags=["privacy"])


@router.get("/me", response_model=PrivacySetting)
async def get_my_privacy(user: CurrentUser, db: Database):
    """
    Obtener las preferencias de privacidad del usuario actual.
    """
    privacy_service = PrivacyService(db)
    return await privacy_service.get_settings(user.id)


@router.put("/me", response_model=PrivacySetting)
async def update_my_privacy(
    update: PrivacyUpdate,
    user: CurrentUser,
    db: Database
):
    """
    Actualizar las preferencias de privacidad.

    - opt_out: no aparecer en ningún leaderboard
    - display_mode: "anonymous" para aparecer como "Anonymous"
    """
    privacy_service = PrivacyService(db)

    try:
        return await privacy_service.update_settings(user.id, update.opt_out, update.display_mode)
    except EmptyPrivacyUpdateError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
