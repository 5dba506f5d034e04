from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from .models import RecurrenceFrequency, Reservation, Room, User
from .utils.time import utc_naive_to_local


class ReservationCreate(BaseModel):
    room_id: int
    title: Optional[str] = Field(default=None, max_length=255)
    starts_at: datetime
    ends_at: datetime
    recurring: Optional[RecurrenceFrequency] = None
    recurring_until: Optional[date] = None


class ReservationRead(BaseModel):
    id: int
    room_id: int
    user_id: int
    title: Optional[str]
    starts_at: datetime
    ends_at: datetime
    recurring: Optional[RecurrenceFrequency]
    recurring_until: Optional[date]
    cancelled_at: Optional[datetime]

    @field_serializer("starts_at", "ends_at", "cancelled_at")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt is not None else None

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            id=reservation.id,
            room_id=reservation.room_id,
            user_id=reservation.user_id,
            title=reservation.title,
            starts_at=utc_naive_to_local(reservation.starts_at),
            ends_at=utc_naive_to_local(reservation.ends_at),
            recurring=reservation.recurring,
            recurring_until=reservation.recurring_until,
            cancelled_at=(
                utc_naive_to_local(reservation.cancelled_at) if reservation.cancelled_at is not None else None
            ),
        )


class ReservationEnvelope(BaseModel):
    reservation: ReservationRead


class ReservationListEnvelope(BaseModel):
    reservations: List[ReservationRead]


class RoomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    capacity: int = Field(ge=1)
    has_projector: bool = False
    has_video_conference: bool = False
    floor: Optional[int] = None


class RoomRead(BaseModel):
    id: int
    name: str
    capacity: int
    has_projector: bool
    has_video_conference: bool
    floor: Optional[int]

    @classmethod
    def from_db(cls, *, room: Room) -> "RoomRead":
        return cls(
            id=room.id,
            name=room.name,
            capacity=room.capacity,
            has_projector=room.has_projector,
            has_video_conference=room.has_video_conference,
            floor=room.floor,
        )


class RoomEnvelope(BaseModel):
    room: RoomRead


class RoomListEnvelope(BaseModel):
    rooms: List[RoomRead]


class AvailabilitySlot(BaseModel):
    start_time: str
    end_time: str
    available: bool


class AvailabilityEnvelope(BaseModel):
    availability: List[AvailabilitySlot]


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=255)
    department: Optional[str] = None
    max_capacity_allowed: int = Field(default=0, ge=0)
    is_admin: bool = False


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    department: Optional[str]
    max_capacity_allowed: int
    is_admin: bool

    @classmethod
    def from_db(cls, *, user: User) -> "UserRead":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            department=user.department,
            max_capacity_allowed=user.max_capacity_allowed,
            is_admin=user.is_admin,
        )


class UserEnvelope(BaseModel):
    user: UserRead


class UserListEnvelope(BaseModel):
    users: List[UserRead]
