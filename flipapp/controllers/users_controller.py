"""
Controlador de usuarios - Perfil del usuario actual
"""

from fastapi import APIRouter, HTTPException, status

from flipapp.core.dependencies import CurrentUser, Database, Profiles
from flipapp.models.leaderboard import rank_name_for_score
from flipapp.models.user import User, UserResponse, UserUpdate
from flipapp.services.user_service import UserNotFoundError, UserService


router = APIRouter(prefix="/users", tags=["users"])


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        profile_image_url=user.profile_image_url,
        total_focus_time=user.total_focus_time,
        score=user.score,
        rank_name=rank_name_for_score(user.score),
        current_building=user.current_building
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser):
    """
    Obtener el perfil del usuario actual.
    """
    return _to_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    update: UserUpdate,
    user: CurrentUser,
    db: Database,
    profiles: Profiles
):
    """
    Actualizar username y/o foto de perfil.
    """
    user_service = UserService(db, profiles)

    try:
        updated = await user_service.update_profile(
            user.id,
            username=update.username,
            profile_image_url=update.profile_image_url
        )
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    return _to_response(updated)
