from datetime import date
from typing import Any, Dict, List

from ..domain.errors import PermissionDeniedError, RoomNotFoundError, UserNotFoundError
from ..domain.repositories import ReservationRepository, RoomRepository, UserRepository
from ..domain.services import Occurrence, hourly_slots
from ..models import Room
from ..utils.time import LOCAL_TZ
from .reservations import detect_conflicts


async def get_room_availability(
    room_repo: RoomRepository,
    res_repo: ReservationRepository,
    *,
    room_id: int,
    day: date,
) -> List[Dict[str, Any]]:
    """Hourly business-day slots for the room. Read-only and lock-free."""
    room = await room_repo.get(room_id)
    if room is None:
        raise RoomNotFoundError("room not found")

    slots = [Occurrence(starts_at=start, ends_at=end) for start, end in hourly_slots(day, LOCAL_TZ)]
    conflicts = await detect_conflicts(res_repo, room_id=room.id, occurrences=slots)

    return [
        {
            "start_time": slot.starts_at.strftime("%H:%M"),
            "end_time": slot.ends_at.strftime("%H:%M"),
            "available": not booked,
        }
        for slot, booked in zip(slots, conflicts)
    ]


async def list_rooms(room_repo: RoomRepository) -> list[Room]:
    return await room_repo.list_all()


async def get_room(room_repo: RoomRepository, *, room_id: int) -> Room:
    room = await room_repo.get(room_id)
    if room is None:
        raise RoomNotFoundError("room not found")
    return room


async def create_room(
    room_repo: RoomRepository,
    user_repo: UserRepository,
    *,
    acting_user_id: int,
    name: str,
    capacity: int,
    has_projector: bool,
    has_video_conference: bool,
    floor: int | None,
) -> Room:
    user = await user_repo.get(acting_user_id)
    if user is None:
        raise UserNotFoundError("user not found")
    if not user.is_admin:
        raise PermissionDeniedError("Only admins can create rooms")
    if capacity < 1:
        raise ValueError("capacity must be >= 1")
    return await room_repo.create(
        name=name,
        capacity=capacity,
        has_projector=has_projector,
        has_video_conference=has_video_conference,
        floor=floor,
    )
