from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, Sequence

from ..models import RecurrenceFrequency, Reservation, Room, User


class RoomRepository(Protocol):
    async def get(self, room_id: int) -> Room | None: ...

    async def get_for_update(self, room_id: int) -> Room | None: ...

    async def list_all(self) -> list[Room]: ...

    async def create(
        self,
        *,
        name: str,
        capacity: int,
        has_projector: bool,
        has_video_conference: bool,
        floor: int | None,
    ) -> Room: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def list_all(self) -> list[User]: ...

    async def create(
        self,
        *,
        name: str,
        email: str,
        department: str | None,
        max_capacity_allowed: int,
        is_admin: bool,
    ) -> User: ...


class ReservationRepository(Protocol):
    """Datetime arguments and attributes are naive UTC, as stored."""

    async def count_future_for_user(
        self,
        user_id: int,
        now: datetime,
    ) -> int: ...

    async def list_active_for_room(
        self,
        room_id: int,
        start: datetime,
        end: datetime,
    ) -> list[Reservation]: ...

    async def create_many(
        self,
        *,
        room_id: int,
        user_id: int,
        title: str | None,
        intervals: Sequence[tuple[datetime, datetime]],
        recurring: RecurrenceFrequency | None,
        recurring_until: date | None,
    ) -> list[Reservation]: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def list_all(self) -> list[Reservation]: ...

    async def cancel(self, reservation: Reservation) -> Reservation: ...
