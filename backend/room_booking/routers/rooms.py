from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import PermissionDeniedError, RoomNotFoundError, UserNotFoundError
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemyRoomRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import (
    AvailabilityEnvelope,
    AvailabilitySlot,
    RoomCreate,
    RoomEnvelope,
    RoomListEnvelope,
    RoomRead,
)
from ..usecases import rooms as room_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("", response_model=RoomListEnvelope)
async def list_rooms(session: AsyncSession = Depends(get_session)) -> RoomListEnvelope:
    room_repo = SqlAlchemyRoomRepository(session)
    rows = await room_usecase.list_rooms(room_repo)
    return RoomListEnvelope(rooms=[RoomRead.from_db(room=r) for r in rows])


@router.get("/{room_id}", response_model=RoomEnvelope)
async def get_room(
    room_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> RoomEnvelope:
    room_repo = SqlAlchemyRoomRepository(session)
    try:
        room = await room_usecase.get_room(room_repo, room_id=room_id)
    except RoomNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="room not found")
    return RoomEnvelope(room=RoomRead.from_db(room=room))


@router.post("", response_model=RoomEnvelope, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> RoomEnvelope:
    room_repo = SqlAlchemyRoomRepository(session)
    user_repo = SqlAlchemyUserRepository(session)
    async with session.begin():
        try:
            room = await room_usecase.create_room(
                room_repo,
                user_repo,
                acting_user_id=user_id,
                name=payload.name,
                capacity=payload.capacity,
                has_projector=payload.has_projector,
                has_video_conference=payload.has_video_conference,
                floor=payload.floor,
            )
        except UserNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        except PermissionDeniedError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"errors": [str(exc)]})
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

        try:
            emit_audit_log(action="room.created", actor_id=user_id, room_id=room.id)
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

    return RoomEnvelope(room=RoomRead.from_db(room=room))


@router.get("/{room_id}/availability", response_model=AvailabilityEnvelope)
async def get_availability(
    room_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date", description="Local calendar date (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
) -> AvailabilityEnvelope:
    room_repo = SqlAlchemyRoomRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        slots = await room_usecase.get_room_availability(room_repo, res_repo, room_id=room_id, day=day)
    except RoomNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="room not found")
    return AvailabilityEnvelope(availability=[AvailabilitySlot(**slot) for slot in slots])
