"""
Controlador de sesiones - Registro e historial de sesiones de foco
"""

from fastapi import APIRouter, HTTPException, Query, status

from flipapp.core.dependencies import CurrentUser, Database
from flipapp.models.session import SessionCreate, SessionRecord, SessionResponse
from flipapp.services.session_service import InvalidSessionError, SessionService


router = APIRouter(prefix="/sessions", tags=["sessions"])


def _to_response(s: SessionRecord) -> SessionResponse:
    return SessionResponse(
        id=s.id,
        user_id=s.user_id,
        username=s.username,
        duration_minutes=s.duration_minutes,
        planned_duration_minutes=s.planned_duration_minutes,
        was_successful=s.was_successful,
        location=s.location,
        building_id=s.building_id,
        building_name=s.building_name,
        start_time=s.start_time,
        end_time=s.end_time
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def record_session(
    session_data: SessionCreate,
    user: CurrentUser,
    db: Database
):
    """
    Registrar una sesión terminada (exitosa o fallida).
    """
    session_service = SessionService(db)

    try:
        session = await session_service.record_session(user, session_data)
    except InvalidSessionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    return _to_response(session)


@router.get("/me", response_model=list[SessionResponse])
async def get_my_sessions(
    user: CurrentUser,
    db: Database,
    limit: int = Query(50, ge=1, le=500, description="Maximum number of sessions to return")
):
    """
    Obtener el historial de sesiones del usuario actual.
    """
    session_service = SessionService(db)
    sessions = await session_service.get_user_sessions(user.id, limit)

    return [_to_response(s) for s in sessions]
